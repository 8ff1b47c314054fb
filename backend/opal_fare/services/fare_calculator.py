"""Fare calculation service implementing the Opal fare rules."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from opal_fare.models import (
    INTERMODAL_TRANSFER_TYPES,
    INTRAMODAL_TRANSFER_TYPES,
    EfaLeg,
    FareComponent,
    FareComponents,
    JourneySegmentGroup,
    OpalMode,
    Tap,
    TapPair,
)
from opal_fare.services.calendar import get_opal_date
from opal_fare.services.fares import (
    MATRIX_DISTANCE_MODES,
    get_base_fare,
    get_daily_cap,
    get_fare_distance,
    get_fare_parameters,
    get_fare_types,
    get_longest_tap_distance,
    get_station_access_fee,
)
from opal_fare.services.modes import get_opal_mode_for_leg
from opal_fare.services.taps import get_taps_for_leg
from opal_fare.services.tickets import build_tickets

if TYPE_CHECKING:
    from opal_fare.reference import ReferenceDataset

logger = logging.getLogger(__name__)


@runtime_checkable
class FareCalculatorInterface(Protocol):
    """
    Interface for fare calculation (Dependency Inversion Principle).
    This protocol defines the contract that all fare calculators must follow.
    """

    def add_leg(self, leg: EfaLeg) -> None:
        """Add the next leg of the journey."""
        ...

    def to_object(self) -> Dict[str, Dict[str, List[FareComponent]]]:
        """Fare components per passenger category."""
        ...

    def to_efa_fare_object(self) -> List[Dict[str, Any]]:
        """Trip planner compatible ticket records."""
        ...


class BaseFareCalculator(ABC):
    """Abstract base class for fare calculators (Open/Closed Principle)."""

    @abstractmethod
    def add_leg(self, leg: EfaLeg) -> None:
        """
        Add the next leg of the journey.
        Must be implemented by subclasses.
        """
        pass

    @abstractmethod
    def to_efa_fare_object(self) -> List[Dict[str, Any]]:
        """
        Export ticket records for the legs added so far.
        Must be implemented by subclasses.
        """
        pass

    def calculate_journey(self, legs: Iterable[EfaLeg]) -> List[Dict[str, Any]]:
        """
        Add every leg of a journey in order and export its tickets.
        Default implementation that uses add_leg.
        """
        for leg in legs:
            self.add_leg(leg)
        return self.to_efa_fare_object()


class OpalFareCalculator(BaseFareCalculator):
    """
    Estimates the Opal fare of a single journey, one leg at a time.

    Legs must be added in chronological order. Consecutive transfer-linked
    legs of the same mode form a journey segment group that is charged as a
    single fare; every added leg recalculates the group's fare for each
    passenger category and records the difference as that leg's fare.
    """

    def __init__(self, dataset: "ReferenceDataset"):
        """
        Args:
            dataset: Reference dataset the networks are resolved from
        """
        self.dataset = dataset

        self.taps: List[Tap] = []
        self.leg_fares: Dict[str, List[FareComponent]] = {}
        self.legs: List[EfaLeg] = []
        self.all_legs: List[EfaLeg] = []
        self.groups: List[JourneySegmentGroup] = []
        self._current_group_index: Optional[int] = None

    @property
    def current_group(self) -> Optional[JourneySegmentGroup]:
        """The group the next intramodal transfer would extend."""
        if self._current_group_index is None:
            return None
        return self.groups[self._current_group_index]

    def add_leg(self, leg: EfaLeg) -> None:
        """
        Add the next leg of the journey and calculate its fares.

        Legs that are not Opal services are remembered for ticket leg
        numbering but otherwise ignored.

        Raises:
            FareCalculationError: If the reference data cannot price the leg
        """
        leg_index = len(self.all_legs)
        self.all_legs.append(leg)

        if get_opal_mode_for_leg(leg) == OpalMode.NON_OPAL:
            logger.debug(f"Leg {leg_index} is not an Opal service, skipping")
            return

        network = self.dataset.network_for_time(leg.departure_time)
        prev_leg = self.legs[-1] if self.legs else None
        taps = get_taps_for_leg(network, prev_leg, leg)

        group = self.current_group
        if group is None or taps.on.transaction_type not in INTRAMODAL_TRANSFER_TYPES:
            opal_date = get_opal_date(network, taps.on.time)
            group = JourneySegmentGroup(
                mode=taps.on.mode,
                date=opal_date.date,
                day_of_week=opal_date.day_of_week,
                is_discounted_day=opal_date.is_discounted_day,
                network=network,
            )
            self.groups.append(group)
            self._current_group_index = len(self.groups) - 1
            logger.debug(
                f"Leg {leg_index} starts {group.mode.value} segment group "
                f"{self._current_group_index} on {group.date}"
            )
        elif group.mode == OpalMode.RAIL:
            # no tap out at rail interchanges, so the virtual tap on
            # inherits the peak status of the group's first tap on
            tap_on = taps.on.model_copy(update={"is_peak_tap_on": group.first_tap_on.is_peak_tap_on})
            taps = TapPair(on=tap_on, off=taps.off)

        self.legs.append(leg)
        self.taps.extend((taps.on, taps.off))

        group.legs.append(leg)
        group.leg_indices.append(leg_index)
        group.taps.extend((taps.on, taps.off))

        for fare_type in get_fare_types(group.network):
            fare = self._calculate_leg_fare(group, fare_type, taps, leg_index)
            group.fares.setdefault(fare_type, []).append(fare)
            self.leg_fares.setdefault(fare_type, []).append(fare)

    def _calculate_leg_fare(
        self,
        group: JourneySegmentGroup,
        fare_type: str,
        taps: TapPair,
        leg_index: int
    ) -> FareComponent:
        """
        Recalculate the group's fare including the newest leg.

        The leg is charged the difference between the new group fare and
        what the group has been charged so far.
        """
        network = group.network
        params = get_fare_parameters(network, fare_type)
        prior_fares = group.fares.get(fare_type, [])

        group_fare_cents = sum(fare.total_additional_fare_cents for fare in prior_fares)
        group_saf_cents = sum(fare.total_additional_saf_cents for fare in prior_fares)

        components = FareComponents()
        if group.first_tap_on.transaction_type in INTERMODAL_TRANSFER_TYPES:
            components.intermodal_discount_cents = -params.intermodal_discount

        if group.mode in MATRIX_DISTANCE_MODES:
            # interchanges within the group are not charged separately
            distance = get_fare_distance(network, group.mode, group.origin, group.destination)
        else:
            distance = get_longest_tap_distance(group.tap_ons, group.tap_offs)

        # rail tap ons already carry the peak status of the group
        is_peak = taps.on.is_peak_tap_on

        peak_fare_cents = get_base_fare(network, fare_type, group.mode, distance, True, False)
        fare_cents = get_base_fare(network, fare_type, group.mode, distance, is_peak, False)

        components.base_fare_cents = peak_fare_cents
        components.off_peak_discount_cents = fare_cents - peak_fare_cents
        components.intramodal_discount_cents = -group_fare_cents
        if group.mode == OpalMode.RAIL:
            components.station_access_fee_cents = get_station_access_fee(
                network, fare_type, group.origin, group.destination
            )

        if group.mode != OpalMode.RAIL:
            # only rail fares may fall as a group is extended
            if components.fare_cents < 0:
                components.complex_adjustment_cents -= components.fare_cents

            # keep the highest fare band reached within the group
            highest_fare_cents = max((fare.total_fare_cents for fare in prior_fares), default=0)
            shortfall = highest_fare_cents - (group_fare_cents + components.fare_cents)
            if shortfall > 0:
                components.complex_adjustment_cents += shortfall

        daily_cap = get_daily_cap(network, fare_type, taps.on.time)
        fare_today = self._get_fare_for_date(fare_type, group.date) + components.fare_cents
        if fare_today > daily_cap:
            components.daily_cap_discount_cents -= fare_today - daily_cap
            logger.debug(f"{fare_type} daily cap of {daily_cap} reached on leg {leg_index}")

        return FareComponent(
            type=fare_type,
            taps=taps,
            mode=group.mode,
            distance=distance,
            components=components,
            total_additional_fare_cents=components.fare_cents,
            total_fare_cents=group_fare_cents + components.fare_cents,
            total_additional_saf_cents=components.station_access_fee_cents - group_saf_cents,
            total_saf_cents=components.station_access_fee_cents,
            leg_index=leg_index,
        )

    def _get_fare_for_date(self, fare_type: str, date: str) -> int:
        """Fare charged so far to a passenger category on an Opal date."""
        return sum(
            fare.total_additional_fare_cents
            for group in self.groups
            if group.date == date
            for fare in group.fares.get(fare_type, [])
        )

    def to_object(self) -> Dict[str, Dict[str, List[FareComponent]]]:
        """
        Export fare calculation data.

        Returns:
            Dictionary with fare components per passenger category
        """
        return {"fares": {fare_type: list(fares) for fare_type, fares in self.leg_fares.items()}}

    def to_efa_fare_object(self) -> List[Dict[str, Any]]:
        """
        Export trip planner compatible ticket records.

        Returns:
            Per leg tickets followed by one evaluation ticket per category
        """
        return build_tickets(self.groups)


def get_fare_calculator(dataset: Optional["ReferenceDataset"] = None) -> FareCalculatorInterface:
    """
    Create a fare calculator for one journey.

    Calculators hold the state of a single journey and must not be shared.

    Args:
        dataset: Reference dataset, the configured dataset when omitted

    Returns:
        Fare calculator instance implementing FareCalculatorInterface
    """
    if dataset is None:
        from opal_fare.config import settings

        dataset = settings.get_reference_dataset()
    return OpalFareCalculator(dataset)
