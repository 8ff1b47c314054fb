"""Unit tests for tap synthesis."""

from opal_fare.models import EfaStop, OpalMode, TransactionType
from opal_fare.services.taps import (
    UNKNOWN_TSN,
    get_coord_for_stop,
    get_taps_for_leg,
    get_tsn_for_stop,
    is_eligible_for_transfer,
)

from conftest import OPAL_BUS, make_leg, raw_stop, sydney_time


class TestStopResolution:
    """Test TSN and coordinate lookup through the stop hierarchy."""

    def test_tsn_from_parent_stop(self):
        """Test a platform resolves to its parent stop's TSN."""
        stop = EfaStop.model_validate(raw_stop("central"))
        assert get_tsn_for_stop(stop) == "200060"

    def test_tsn_from_grandparent(self):
        """Test the hierarchy is searched two levels up."""
        stop = EfaStop.model_validate({
            "id": "2000601",
            "type": "platform",
            "isGlobalId": True,
            "parent": {
                "id": "200060A",
                "type": "platform",
                "isGlobalId": False,
                "parent": {"id": "200060", "type": "stop", "isGlobalId": True},
            },
        })
        assert get_tsn_for_stop(stop) == "200060"

    def test_tsn_without_global_ids(self):
        """Test stops without global ids have no TSN."""
        stop = EfaStop.model_validate(raw_stop("central", global_ids=False))
        assert get_tsn_for_stop(stop) == UNKNOWN_TSN

    def test_coord_prefers_platform(self):
        """Test platform coordinates are used when present."""
        stop = EfaStop.model_validate({
            "id": "2000601",
            "type": "platform",
            "coord": [-33.8840, 151.2060],
            "isGlobalId": True,
            "parent": {"id": "200060", "type": "stop", "coord": [-33.8832, 151.2070], "isGlobalId": True},
        })
        assert get_coord_for_stop(stop) == (-33.8840, 151.2060)

    def test_coord_falls_back_to_stop(self):
        """Test a stop without a platform uses its own coordinates."""
        stop = EfaStop.model_validate({
            "id": "200060",
            "type": "stop",
            "coord": [-33.8832, 151.2070],
            "isGlobalId": True,
        })
        assert get_coord_for_stop(stop) == (-33.8832, 151.2070)


class TestTransferEligibility:
    """Test the transfer window."""

    def test_within_window(self, network):
        """Test a gap under 60 minutes is a transfer."""
        prev_leg = make_leg("central", "strathfield", sydney_time(2023, 11, 20, 8), sydney_time(2023, 11, 20, 8, 20))
        curr_leg = make_leg("strathfield", "parramatta", sydney_time(2023, 11, 20, 9, 19), sydney_time(2023, 11, 20, 9, 35))
        assert is_eligible_for_transfer(network, prev_leg, curr_leg) is True

    def test_window_is_exclusive(self, network):
        """Test a gap of exactly 60 minutes starts a new journey."""
        prev_leg = make_leg("central", "strathfield", sydney_time(2023, 11, 20, 8), sydney_time(2023, 11, 20, 8, 20))
        curr_leg = make_leg("strathfield", "parramatta", sydney_time(2023, 11, 20, 9, 20), sydney_time(2023, 11, 20, 9, 35))
        assert is_eligible_for_transfer(network, prev_leg, curr_leg) is False

    def test_new_opal_day(self, network):
        """Test transfers never cross the 4am boundary."""
        prev_leg = make_leg("central", "strathfield", sydney_time(2023, 11, 21, 3, 30), sydney_time(2023, 11, 21, 3, 50))
        curr_leg = make_leg("strathfield", "parramatta", sydney_time(2023, 11, 21, 4, 5), sydney_time(2023, 11, 21, 4, 20))
        assert is_eligible_for_transfer(network, prev_leg, curr_leg) is False


class TestTapSynthesis:
    """Test taps generated for a leg."""

    def test_first_leg_is_new_journey(self, network):
        """Test the first leg taps on for a new journey."""
        leg = make_leg("central", "strathfield", sydney_time(2023, 11, 20, 8), sydney_time(2023, 11, 20, 8, 20))
        taps = get_taps_for_leg(network, None, leg)

        assert taps.on.transaction_type == TransactionType.TAP_ON_NEW_JOURNEY
        assert taps.on.tsn == "200060"
        assert taps.on.mode == OpalMode.RAIL
        assert taps.on.is_tap_on is True
        assert taps.on.is_peak_tap_on is True
        assert taps.on.time == sydney_time(2023, 11, 20, 8)

        assert taps.off.transaction_type == TransactionType.TAP_OFF_DISTANCE_BASED
        assert taps.off.tsn == "213510"
        assert taps.off.is_tap_on is False
        assert taps.off.is_peak_tap_on is False
        assert taps.off.time == sydney_time(2023, 11, 20, 8, 20)

    def test_same_mode_transfer(self, network):
        """Test a transfer to the same mode is intramodal."""
        prev_leg = make_leg("central", "strathfield", sydney_time(2023, 11, 20, 8), sydney_time(2023, 11, 20, 8, 20))
        curr_leg = make_leg("strathfield", "parramatta", sydney_time(2023, 11, 20, 8, 25), sydney_time(2023, 11, 20, 8, 40))
        taps = get_taps_for_leg(network, prev_leg, curr_leg)
        assert taps.on.transaction_type == TransactionType.TAP_ON_INTRAMODAL_TRANSFER

    def test_other_mode_transfer(self, network):
        """Test a transfer to another mode is intermodal."""
        prev_leg = make_leg("circular_quay", "central", sydney_time(2023, 11, 20, 8), sydney_time(2023, 11, 20, 8, 6))
        curr_leg = make_leg(
            "central_bus", "surry_hills_bus",
            sydney_time(2023, 11, 20, 8, 20), sydney_time(2023, 11, 20, 8, 35), OPAL_BUS
        )
        taps = get_taps_for_leg(network, prev_leg, curr_leg)

        assert taps.on.transaction_type == TransactionType.TAP_ON_INTERMODAL_TRANSFER
        assert taps.on.mode == OpalMode.BUS
        assert taps.on.coords == (-33.8832, 151.2070)
        assert taps.off.coords == (-33.8700, 151.2070)

    def test_late_leg_starts_new_journey(self, network):
        """Test a leg outside the transfer window is a new journey."""
        prev_leg = make_leg("circular_quay", "central", sydney_time(2023, 11, 20, 8), sydney_time(2023, 11, 20, 8, 6))
        curr_leg = make_leg(
            "central_bus", "surry_hills_bus",
            sydney_time(2023, 11, 20, 9, 16), sydney_time(2023, 11, 20, 9, 30), OPAL_BUS
        )
        taps = get_taps_for_leg(network, prev_leg, curr_leg)
        assert taps.on.transaction_type == TransactionType.TAP_ON_NEW_JOURNEY
