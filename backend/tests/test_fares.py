"""Unit tests for fare bands, fare distances and station access fees."""

from datetime import datetime, timezone

import pytest

from opal_fare.exceptions import (
    FareCalculationError,
    MissingFareDistanceError,
    NoFareBandError,
    UnknownFareTypeError,
    UnknownModeError,
)
from opal_fare.models import EfaStop, OpalMode, Tap, TransactionType
from opal_fare.reference import ReferenceDataset
from opal_fare.services.fares import (
    get_base_fare,
    get_fare_distance,
    get_fare_parameters,
    get_fare_types,
    get_longest_tap_distance,
    get_station_access_fee,
    great_circle_distance_km,
)

from conftest import raw_stop


def stop(name):
    return EfaStop.model_validate(raw_stop(name))


def bus_tap(coords, is_tap_on):
    return Tap(
        transaction_type=TransactionType.TAP_ON_NEW_JOURNEY if is_tap_on else TransactionType.TAP_OFF_DISTANCE_BASED,
        tsn="2000420",
        coords=coords,
        time=datetime(2023, 11, 20, tzinfo=timezone.utc),
        mode=OpalMode.BUS,
        is_tap_on=is_tap_on,
    )


class TestFareTable:
    """Test fare parameter lookup."""

    def test_fare_types(self, network):
        """Test every passenger category of the network is listed."""
        assert get_fare_types(network) == ["ADULT", "CHILD", "SENIOR"]

    def test_unknown_fare_type(self, network):
        """Test an unknown passenger category."""
        with pytest.raises(UnknownFareTypeError) as exc_info:
            get_fare_parameters(network, "STUDENT")
        assert str(exc_info.value) == "Fare type STUDENT could not be found"

    def test_errors_are_value_errors(self, network):
        """Test fare errors can be handled as ValueError."""
        with pytest.raises(ValueError):
            get_fare_parameters(network, "STUDENT")
        assert issubclass(MissingFareDistanceError, FareCalculationError)


class TestFareBands:
    """Test base fare lookup."""

    @pytest.mark.parametrize("distance, expected", [
        (0, 379),
        (9.99, 379),
        (10, 471),
        (26.1, 542),
        (64.9, 724),
        (65, 931),
        (1500, 931),
    ])
    def test_rail_peak_bands(self, network, distance, expected):
        """Test bands include their lower bound and exclude their upper bound."""
        assert get_base_fare(network, "ADULT", OpalMode.RAIL, distance, True, False) == expected

    def test_rates(self, network):
        """Test the peak, off peak and frequency of use rates of a band."""
        assert get_base_fare(network, "ADULT", OpalMode.BUS, 4.2, True, False) == 415
        assert get_base_fare(network, "ADULT", OpalMode.BUS, 4.2, False, False) == 290
        assert get_base_fare(network, "ADULT", OpalMode.BUS, 4.2, True, True) == 208
        assert get_base_fare(network, "CHILD", OpalMode.FERRY, 11.3, False, False) == 301

    def test_unknown_mode(self, network):
        """Test a mode without fare bands."""
        with pytest.raises(UnknownModeError):
            get_base_fare(network, "ADULT", OpalMode.NON_OPAL, 1.0, True, False)

    def test_empty_band_list(self, network):
        """Test a mode listed without any bands."""
        record = network.model_dump(by_alias=True)
        record["FARE_TABLE"]["ADULT"]["MODES"]["BUS"] = []
        broken = ReferenceDataset.from_records([record]).networks[0]

        with pytest.raises(NoFareBandError):
            get_base_fare(broken, "ADULT", OpalMode.BUS, 1.0, True, False)


class TestFareDistance:
    """Test fare distances."""

    def test_matrix_lookup(self, network):
        """Test rail distances come from the distance matrix."""
        assert get_fare_distance(network, OpalMode.RAIL, stop("circular_quay"), stop("central")) == 2.9

    def test_matrix_is_symmetric(self, network):
        """Test pairs listed once serve both directions."""
        assert get_fare_distance(network, OpalMode.RAIL, stop("central"), stop("circular_quay")) == 2.9
        assert get_fare_distance(network, OpalMode.FERRY, stop("manly_wharf"), stop("circular_quay")) == 11.3

    def test_missing_pair(self, network):
        """Test stations missing from the matrix."""
        with pytest.raises(MissingFareDistanceError):
            get_fare_distance(network, OpalMode.RAIL, stop("central"), stop("unmapped"))

    def test_great_circle_distance(self):
        """Test one degree of latitude on the mean earth sphere."""
        assert great_circle_distance_km((-34.0, 151.0), (-33.0, 151.0)) == pytest.approx(111.195, rel=1e-4)
        assert great_circle_distance_km((-33.8688, 151.2093), (-33.8688, 151.2093)) == 0

    def test_longest_tap_distance(self):
        """Test the longest pair of any tap on and tap off is used."""
        tap_ons = [bus_tap((-33.88, 151.20), True), bus_tap((-33.80, 151.20), True)]
        tap_offs = [bus_tap((-33.80, 151.20), False), bus_tap((-33.84, 151.20), False)]

        distance = get_longest_tap_distance(tap_ons, tap_offs)
        assert distance == pytest.approx(great_circle_distance_km((-33.88, 151.20), (-33.80, 151.20)))

    def test_longest_tap_distance_without_coordinates(self):
        """Test taps without coordinates cannot be measured."""
        with pytest.raises(MissingFareDistanceError):
            get_longest_tap_distance([bus_tap(None, True)], [bus_tap((-33.80, 151.20), False)])


class TestStationAccessFee:
    """Test station access fees."""

    def test_no_fee_stations(self, network):
        """Test trips between ordinary stations."""
        assert get_station_access_fee(network, "ADULT", stop("central"), stop("strathfield")) == 0

    def test_non_alc_rate(self, network):
        """Test trips to an access fee station."""
        assert get_station_access_fee(network, "ADULT", stop("central"), stop("domestic_airport")) == 1549
        assert get_station_access_fee(network, "ADULT", stop("domestic_airport"), stop("central")) == 1549
        assert get_station_access_fee(network, "CHILD", stop("central"), stop("domestic_airport")) == 1378

    def test_alc_rate(self, network):
        """Test pairs with their own rate."""
        assert get_station_access_fee(network, "ADULT", stop("green_square"), stop("mascot")) == 316
        assert get_station_access_fee(network, "ADULT", stop("international_airport"), stop("domestic_airport")) == 653

    def test_category_without_fee_table(self, network):
        """Test categories without station access fees."""
        record = network.model_dump(by_alias=True)
        record["FARE_TABLE"]["ADULT"]["SAF"] = None
        no_saf = ReferenceDataset.from_records([record]).networks[0]

        assert get_station_access_fee(no_saf, "ADULT", stop("central"), stop("domestic_airport")) == 0
