"""Opal fare days, network validity and time-of-use classification."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from opal_fare.models import OpalDate, OpalMode, OpalNetwork

logger = logging.getLogger(__name__)

# Opal days start at 4am local time
OPAL_DAY_OFFSET = timedelta(hours=4)


def to_network_time(network: OpalNetwork, instant: datetime) -> datetime:
    """Express an instant in the network's local timezone."""
    return instant.astimezone(ZoneInfo(network.config.tz))


def get_opal_date(network: OpalNetwork, instant: datetime) -> OpalDate:
    """
    Return the Opal date, ISO day of week and whether it is an Opal weekend.

    Public holidays and the days of week listed in the network's
    ``WEEKEND_FARE_DOW`` (Friday joined the weekend from 16 Oct 2023) are
    charged as weekend days.
    """
    opal_time = to_network_time(network, instant) - OPAL_DAY_OFFSET

    date = opal_time.strftime("%Y%m%d")
    day_of_week = opal_time.isoweekday()

    is_discounted_day = (
        day_of_week in network.config.weekend_fare_dow
        or date in network.tou.public_holidays
    )
    return OpalDate(date=date, day_of_week=day_of_week, is_discounted_day=is_discounted_day)


def get_network_for_time(
    networks: Sequence[OpalNetwork],
    instant: Optional[datetime] = None
) -> OpalNetwork:
    """
    Return the network whose validity window covers the instant.

    Networks are scanned in order. When none of them covers the instant
    the last one is returned.
    """
    if not networks:
        raise ValueError("At least one network is required")

    if instant is None:
        instant = datetime.now(timezone.utc)

    for network in networks:
        date = get_opal_date(network, instant).date
        if network.config.valid_from <= date <= network.config.valid_to:
            return network

    logger.debug(f"No network covers {instant.isoformat()}, using the latest network")
    return networks[-1]


def is_tap_on_peak(network: OpalNetwork, instant: datetime, tsn: str, mode: OpalMode) -> bool:
    """
    Whether a tap on is charged at the peak rate.

    Weekends and public holidays are off peak all day. Rail tap ons at outer
    metro stations use the outer metro peak periods, everything else the
    metro peak periods.
    """
    if get_opal_date(network, instant).is_discounted_day:
        return False

    peak_hours = network.tou.peak_hours
    if mode == OpalMode.RAIL and tsn in network.tou.outer_metro_stations:
        window = peak_hours.outer_metro_peak
    else:
        window = peak_hours.metro_peak

    local_time = to_network_time(network, instant)
    return window.contains(local_time.hour * 60 + local_time.minute)
