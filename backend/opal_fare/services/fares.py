"""Fare tables, fare distances and station access fees."""

import logging
import math
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from opal_fare.exceptions import (
    MissingFareDistanceError,
    NoFareBandError,
    UnknownFareTypeError,
    UnknownModeError,
)
from opal_fare.models import EfaStop, FareParameters, OpalMode, OpalNetwork, Tap
from opal_fare.services.calendar import get_opal_date
from opal_fare.services.taps import get_tsn_for_stop

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088

# modes charged on precomputed station to station distances
MATRIX_DISTANCE_MODES = frozenset({OpalMode.RAIL, OpalMode.FERRY})


def get_fare_types(network: OpalNetwork) -> List[str]:
    """Passenger categories of a network, e.g. ["ADULT", "CHILD", ...]."""
    return list(network.fare_table)


def get_fare_parameters(network: OpalNetwork, fare_type: str) -> FareParameters:
    """Fare table of a passenger category."""
    try:
        return network.fare_table[fare_type]
    except KeyError:
        raise UnknownFareTypeError(fare_type) from None


def get_base_fare(
    network: OpalNetwork,
    fare_type: str,
    mode: OpalMode,
    distance: float,
    is_peak: bool,
    is_fou: bool
) -> int:
    """
    Return the fare in cents for a distance, before discounts.

    The first band whose [FROM_KM, TO_KM) range holds the distance is used.
    Distances beyond every band are charged at the last band.
    """
    mode_key = OpalMode(mode).value
    bands = get_fare_parameters(network, fare_type).modes.get(mode_key)
    if bands is None:
        raise UnknownModeError(mode_key, fare_type)
    if not bands:
        raise NoFareBandError(f"No fare bands for mode {mode_key} and fare type {fare_type}")

    for band in bands:
        if band.contains(distance):
            return band.rate(is_peak, is_fou)

    # beyond the last band
    return bands[-1].rate(is_peak, is_fou)


def get_fare_distance(
    network: OpalNetwork,
    mode: OpalMode,
    origin: EfaStop,
    destination: EfaStop
) -> float:
    """Fare distance in kilometres between two stations from the distance matrix."""
    origin_tsn = get_tsn_for_stop(origin)
    destination_tsn = get_tsn_for_stop(destination)
    key = f"{origin_tsn}:{destination_tsn}"

    distance = network.distance_matrix.get(mode.value, {}).get(key)
    if distance is None:
        raise MissingFareDistanceError(f"No {mode.value} fare distance for {key}")
    return distance


def great_circle_distance_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Haversine distance in kilometres between two (lat, lon) points."""
    lat1, lon1 = a
    lat2, lon2 = b

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def get_longest_tap_distance(tap_ons: Iterable[Tap], tap_offs: Iterable[Tap]) -> float:
    """
    Longest straight line distance between any tap on and any tap off.

    Bus and light rail fares within a segment group are based on this
    distance rather than the length of the path travelled.
    """
    tap_offs = [tap for tap in tap_offs if tap.coords is not None]

    longest: Optional[float] = None
    for tap_on in tap_ons:
        if tap_on.coords is None:
            continue
        for tap_off in tap_offs:
            pair_distance = great_circle_distance_km(tap_on.coords, tap_off.coords)
            if longest is None or pair_distance > longest:
                longest = pair_distance

    if longest is None:
        raise MissingFareDistanceError("Could not calculate fare distance, taps have no coordinates")
    return longest


def get_station_access_fee(
    network: OpalNetwork,
    fare_type: str,
    origin: EfaStop,
    destination: EfaStop
) -> int:
    """
    Station access fee in cents, 0 when neither station charges one.

    Pairs with a rate of their own in ALC_RATES use it, any other pair
    touching an access fee station pays NON_ALC_RATE.
    """
    params = get_fare_parameters(network, fare_type)

    origin_tsn = get_tsn_for_stop(origin)
    destination_tsn = get_tsn_for_stop(destination)

    if origin_tsn not in network.saf_tsn and destination_tsn not in network.saf_tsn:
        return 0

    if params.saf is None:
        logger.debug(f"Fare type {fare_type} has no station access fee table")
        return 0

    key = f"{origin_tsn}:{destination_tsn}"
    return params.saf.alc_rates.get(key, params.saf.non_alc_rate)


def get_daily_cap(network: OpalNetwork, fare_type: str, instant: datetime) -> int:
    """Daily cap in cents for a passenger category on the instant's Opal day."""
    caps = get_fare_parameters(network, fare_type).caps
    if get_opal_date(network, instant).is_discounted_day:
        return caps.weekend_daily_cap
    return caps.daily_cap
