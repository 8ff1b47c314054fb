"""Export of fare components as trip planner ticket records."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from opal_fare.models import (
    EfaTicket,
    EfaTicketProperties,
    FareComponent,
    JourneySegmentGroup,
    OpalNetwork,
)
from opal_fare.services.calendar import OPAL_DAY_OFFSET
from opal_fare.services.fares import get_fare_parameters

TICKET_ID_PREFIX = "OPAL-EST"
EVALUATION_TICKET = "nswFareEnabled"
CENT = Decimal("0.01")


def format_cents(cents: int) -> str:
    """Format cents as a dollar string with two decimals, e.g. 379 -> "3.79"."""
    return str((Decimal(cents) / 100).quantize(CENT))


def _to_utc_iso(instant: datetime) -> str:
    return instant.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_validity_window(network: OpalNetwork) -> Tuple[str, str]:
    """
    Validity of a network as UTC timestamps.

    The window runs from 4am on VALID_FROM to just before 4am on the day
    after VALID_TO, local time, matching Opal days.
    """
    tz = ZoneInfo(network.config.tz)
    first_day = datetime.strptime(network.config.valid_from, "%Y%m%d").replace(tzinfo=tz)
    last_day = datetime.strptime(network.config.valid_to, "%Y%m%d").replace(tzinfo=tz)

    valid_from = first_day + OPAL_DAY_OFFSET
    valid_to = last_day + timedelta(days=1) + OPAL_DAY_OFFSET - timedelta(milliseconds=1)
    return _to_utc_iso(valid_from), _to_utc_iso(valid_to)


def create_ticket(fare: FareComponent, group: JourneySegmentGroup) -> EfaTicket:
    """Ticket record for a single leg's fare component."""
    peak = "PEAK" if fare.taps.on.is_peak_tap_on else "OFFPEAK"
    valid_from, valid_to = get_validity_window(group.network)
    saf_cents = fare.total_additional_saf_cents

    return EfaTicket(
        id=f"{TICKET_ID_PREFIX}-{fare.type}-{fare.mode.value}-{peak}",
        price_brutto=float(format_cents(fare.total_additional_fare_cents)),
        from_leg=fare.leg_index,
        to_leg=fare.leg_index,
        person=fare.type,
        number_of_changes=len(group.legs),
        valid_from=valid_from,
        valid_to=valid_to,
        properties=EfaTicketProperties(
            rider_category_name=get_fare_parameters(group.network, fare.type).name,
            price_station_access_fee=format_cents(saf_cents) if saf_cents > 0 else None,
            price_total_fare=format_cents(fare.total_additional_fare_cents + saf_cents),
        ),
    )


def create_evaluation_tickets(tickets: Sequence[EfaTicket]) -> List[EfaTicket]:
    """
    One aggregate ticket per passenger category.

    Each is a copy of the category's first ticket spanning every leg of the
    category, with fares and station access fees summed and the
    evaluationTicket flag set.
    """
    by_person: Dict[str, List[EfaTicket]] = {}
    for ticket in tickets:
        by_person.setdefault(ticket.person, []).append(ticket)

    evaluation_tickets = []
    for person_tickets in by_person.values():
        price_brutto = _sum_decimal(str(t.price_brutto) for t in person_tickets)
        total_fare = _sum_decimal(t.properties.price_total_fare for t in person_tickets)
        total_saf = _sum_decimal(t.properties.price_station_access_fee or "0" for t in person_tickets)

        first = person_tickets[0]
        properties = first.properties.model_copy(
            update={
                "evaluation_ticket": EVALUATION_TICKET,
                "price_total_fare": str(total_fare),
                "price_station_access_fee": str(total_saf) if total_saf != 0 else None,
            },
            deep=True,
        )
        evaluation_tickets.append(first.model_copy(
            update={
                "from_leg": min(t.from_leg for t in person_tickets),
                "to_leg": max(t.to_leg for t in person_tickets),
                "price_brutto": float(price_brutto),
                "properties": properties,
            },
            deep=True,
        ))

    return evaluation_tickets


def _sum_decimal(values: Iterable[str]) -> Decimal:
    return sum((Decimal(v) for v in values), Decimal(0)).quantize(CENT)


def build_tickets(groups: Iterable[JourneySegmentGroup]) -> List[Dict[str, Any]]:
    """Per leg tickets of every group and category, followed by the evaluation tickets."""
    tickets = [
        create_ticket(fare, group)
        for group in groups
        for fares in group.fares.values()
        for fare in fares
    ]
    return [ticket.to_efa() for ticket in tickets + create_evaluation_tickets(tickets)]
