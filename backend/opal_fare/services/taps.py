"""Synthesis of tap on and tap off events from trip planner legs."""

from datetime import timedelta
from typing import Optional, Tuple

from opal_fare.models import (
    EfaLeg,
    EfaStop,
    OpalMode,
    OpalNetwork,
    Tap,
    TapPair,
    TransactionType,
)
from opal_fare.services.calendar import get_opal_date, is_tap_on_peak
from opal_fare.services.modes import get_opal_mode_for_leg

TRANSFER_WINDOW = timedelta(minutes=60)
UNKNOWN_TSN = "-1"


def _stop_levels(stop: EfaStop) -> Tuple[EfaStop, ...]:
    """The stop followed by its parent and grandparent, where present."""
    levels = [stop]
    if stop.parent is not None:
        levels.append(stop.parent)
        if stop.parent.parent is not None:
            levels.append(stop.parent.parent)
    return tuple(levels)


def get_tsn_for_stop(stop: EfaStop) -> str:
    """
    Return the Transit Stop Number of a stop.

    This relies on the trip planner returning global ids; without them
    there is no way to map a stop to a TSN and "-1" is returned.
    """
    for level in _stop_levels(stop):
        if level.type == "stop" and level.is_global_id:
            return level.id
    return UNKNOWN_TSN


def get_coord_for_stop(stop: EfaStop) -> Optional[Tuple[float, float]]:
    """Return the (lat, lon) of the stop's platform, else of the stop itself."""
    for level in _stop_levels(stop):
        if level.type == "platform" and level.is_global_id:
            return level.coord
    return stop.coord


def is_eligible_for_transfer(network: OpalNetwork, prev_leg: EfaLeg, curr_leg: EfaLeg) -> bool:
    """
    Whether a leg continues the previous one as a transfer.

    Arrival time is assumed to be the tap off and departure time the tap on.
    The first tap on of a new Opal day always starts a new journey.
    """
    prev_arrival = prev_leg.arrival_time
    curr_departure = curr_leg.departure_time

    # TODO: Circular Quay to Manly ferry transfers allow a longer window
    within_window = (curr_departure - prev_arrival) < TRANSFER_WINDOW
    same_opal_day = (
        get_opal_date(network, prev_arrival).date == get_opal_date(network, curr_departure).date
    )
    return within_window and same_opal_day


def get_taps_for_leg(
    network: OpalNetwork,
    prev_leg: Optional[EfaLeg],
    curr_leg: EfaLeg
) -> TapPair:
    """
    Return the tap on and tap off a card reader would record for a leg.

    Args:
        network: Network in force at the leg's departure
        prev_leg: The previous Opal leg of the journey, if any
        curr_leg: The leg to synthesize taps for

    Returns:
        TapPair; the tap on carries the transfer kind and peak status
    """
    prev_mode = get_opal_mode_for_leg(prev_leg) if prev_leg is not None else None
    curr_mode = get_opal_mode_for_leg(curr_leg)

    transaction_type = TransactionType.TAP_ON_NEW_JOURNEY
    if prev_leg is not None and is_eligible_for_transfer(network, prev_leg, curr_leg):
        if prev_mode == curr_mode:
            transaction_type = TransactionType.TAP_ON_INTRAMODAL_TRANSFER
        else:
            transaction_type = TransactionType.TAP_ON_INTERMODAL_TRANSFER

    origin_tsn = get_tsn_for_stop(curr_leg.origin)
    tap_on_time = curr_leg.departure_time

    tap_on = Tap(
        transaction_type=transaction_type,
        tsn=origin_tsn,
        coords=get_coord_for_stop(curr_leg.origin),
        time=tap_on_time,
        mode=curr_mode,
        is_tap_on=True,
        is_peak_tap_on=(
            curr_mode != OpalMode.NON_OPAL
            and is_tap_on_peak(network, tap_on_time, origin_tsn, curr_mode)
        ),
    )
    tap_off = Tap(
        transaction_type=TransactionType.TAP_OFF_DISTANCE_BASED,
        tsn=get_tsn_for_stop(curr_leg.destination),
        coords=get_coord_for_stop(curr_leg.destination),
        time=curr_leg.arrival_time,
        mode=curr_mode,
        is_tap_on=False,
    )
    return TapPair(on=tap_on, off=tap_off)
