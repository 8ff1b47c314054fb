"""API endpoints for fare estimation and the trip planner relay."""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from opal_fare.config import settings
from opal_fare.models import EfaLeg, EstimateRequest, EstimateResponse, NetworkSummary
from opal_fare.services import get_fare_calculator
from opal_fare.services.fare_calculator import FareCalculatorInterface

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Fare Estimation"])

# query parameters the relay needs before it can estimate fares
REQUIRED_PARAMS = {"outputFormat": "rapidJSON", "coordOutputFormat": "EPSG:4326"}
DEBUG_PARAM = "fareDebug"


def get_calculator() -> FareCalculatorInterface:
    """
    Dependency injection for fare calculator.
    Returns a fresh implementation of FareCalculatorInterface per request.
    """
    return get_fare_calculator()


def _sum_evaluation_fares(tickets: List[Dict[str, Any]], fare_type: str) -> str:
    total = sum(
        (
            Decimal(str(ticket["properties"]["priceTotalFare"]))
            for ticket in tickets
            if ticket.get("person") == fare_type
            and ticket.get("properties", {}).get("evaluationTicket")
        ),
        Decimal(0)
    )
    return str(total.quantize(Decimal("0.01")))


def estimate_journey(journey: Dict[str, Any]) -> Optional[Dict[str, Dict[str, str]]]:
    """
    Replace the tickets of a trip planner journey with estimated Opal tickets.

    Returns:
        Upstream and estimated totals per passenger category, or None when
        the journey's fare could not be estimated
    """
    try:
        calculator = get_fare_calculator()
        for raw_leg in journey.get("legs", []):
            calculator.add_leg(EfaLeg.model_validate(raw_leg))
        tickets = calculator.to_efa_fare_object()
    except ValueError:
        logger.exception("Could not estimate the fare of a journey, keeping upstream fares")
        return None

    upstream_tickets = (journey.get("fare") or {}).get("tickets") or []
    fare_debug = {
        fare_type: {
            "efaTotalFare": _sum_evaluation_fares(upstream_tickets, fare_type),
            "estimatedTotalFare": _sum_evaluation_fares(tickets, fare_type),
        }
        for fare_type in calculator.to_object()["fares"]
    }

    journey["fare"] = {**(journey.get("fare") or {}), "tickets": tickets}
    return fare_debug


@router.get("/v1/tp/trip")
def relay_trip(request: Request) -> Response:
    """
    Forward a trip query to the upstream trip planner and estimate Opal fares.

    Every query parameter and the authorization header are passed through.
    Responses that are not JSON are returned unchanged; JSON responses in
    rapidJSON format with EPSG:4326 coordinates get estimated tickets in
    place of the upstream tickets of each journey.
    """
    auth = request.headers.get("authorization")
    upstream = requests.get(
        settings.UPSTREAM_TRIP_URL,
        params=list(request.query_params.multi_items()),
        headers={"authorization": auth} if auth else {}
    )

    content_type = upstream.headers.get("content-type", "")
    passthrough = Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=content_type or None
    )
    if "application/json" not in content_type:
        return passthrough

    try:
        payload = upstream.json()
    except ValueError:
        logger.warning(f"Upstream returned malformed JSON with status {upstream.status_code}")
        return passthrough

    can_estimate = isinstance(payload, dict) and payload.get("journeys") and all(
        request.query_params.get(name) == value for name, value in REQUIRED_PARAMS.items()
    )

    if can_estimate:
        debug_journeys = [estimate_journey(journey) for journey in payload["journeys"]]

        if DEBUG_PARAM in request.query_params:
            payload.pop("journeys")
            payload["debugJourneys"] = debug_journeys

    return JSONResponse(content=payload, status_code=upstream.status_code)


@router.post("/api/estimate", response_model=EstimateResponse)
def estimate_fare(
    request: EstimateRequest,
    calculator: FareCalculatorInterface = Depends(get_calculator)
) -> EstimateResponse:
    """
    Estimate the Opal fare of a single journey.

    Args:
        request: Legs of the journey in chronological order
        calculator: Injected fare calculator implementing FareCalculatorInterface

    Returns:
        EstimateResponse with fare components and ticket records

    Raises:
        HTTPException: If the reference data cannot price the journey
    """
    try:
        for leg in request.legs:
            calculator.add_leg(leg)

        return EstimateResponse(
            fares=calculator.to_object()["fares"],
            tickets=calculator.to_efa_fare_object()
        )

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/networks", response_model=List[NetworkSummary])
def get_networks() -> List[NetworkSummary]:
    """
    Get the fare networks of the loaded reference dataset.

    Returns:
        Validity window, timezone and passenger categories of each network
    """
    dataset = settings.get_reference_dataset()
    return [
        NetworkSummary(
            valid_from=network.config.valid_from,
            valid_to=network.config.valid_to,
            timezone=network.config.tz,
            fare_types=list(network.fare_table)
        )
        for network in dataset
    ]


@router.get("/api/health")
def health_check():
    """Health check endpoint including reference data status."""
    reference_status = "healthy"
    try:
        network_count = len(settings.get_reference_dataset())
    except (OSError, ValueError) as e:
        reference_status = f"unhealthy: {str(e)}"
        network_count = 0

    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "reference_data_status": reference_status,
        "reference_source": settings.REFERENCE_SOURCE,
        "network_count": network_count
    }
