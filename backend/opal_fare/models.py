"""Models for the Opal fare estimation system."""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# --- Trip planner (EFA rapidJSON) input -------------------------------------


class EfaModel(BaseModel):
    """Base for models parsed from the trip planner's rapidJSON output."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class EfaStop(EfaModel):
    """A stop, platform or locality reference, nested up to two parents deep."""
    id: str
    name: Optional[str] = None
    type: str = Field("stop", description="EFA place type, e.g. stop or platform")
    coord: Optional[Tuple[float, float]] = Field(None, description="[lat, lon] in EPSG:4326")
    is_global_id: bool = Field(False, description="Whether id is a network-wide TSN")
    parent: Optional["EfaStop"] = None
    departure_time_planned: Optional[datetime] = None
    departure_time_estimated: Optional[datetime] = None
    arrival_time_planned: Optional[datetime] = None
    arrival_time_estimated: Optional[datetime] = None


EfaStop.model_rebuild()


class EfaProduct(EfaModel):
    product_class: int = Field(..., alias="class")
    name: Optional[str] = None
    icon_id: Optional[int] = None


class EfaOperator(EfaModel):
    id: str
    name: Optional[str] = None


class EfaTransportation(EfaModel):
    """Service descriptor of a leg. Walking legs carry no operator."""
    id: Optional[str] = None
    number: Optional[str] = None
    disassembled_name: Optional[str] = None
    icon_id: Optional[int] = None
    product: EfaProduct
    operator: Optional[EfaOperator] = None


class EfaLeg(EfaModel):
    """One directed movement of a journey."""
    origin: EfaStop
    destination: EfaStop
    transportation: EfaTransportation

    @property
    def departure_time(self) -> datetime:
        """Departure from the origin, estimated time taking precedence."""
        time = self.origin.departure_time_estimated or self.origin.departure_time_planned
        if time is None:
            raise ValueError(f"Leg from {self.origin.id} has no departure time")
        return time

    @property
    def arrival_time(self) -> datetime:
        """Arrival at the destination, estimated time taking precedence."""
        time = self.destination.arrival_time_estimated or self.destination.arrival_time_planned
        if time is None:
            raise ValueError(f"Leg to {self.destination.id} has no arrival time")
        return time


# --- Reference dataset -------------------------------------------------------


class ReferenceModel(BaseModel):
    """Base for reference bundle models, keyed in upper snake case on disk."""
    model_config = ConfigDict(alias_generator=str.upper, populate_by_name=True, frozen=True)


class NetworkConfig(ReferenceModel):
    valid_from: str = Field(..., description="First Opal date of validity, YYYYMMDD")
    valid_to: str = Field(..., description="Last Opal date of validity, YYYYMMDD")
    tz: str
    weekend_fare_dow: FrozenSet[int] = Field(
        ..., description="ISO days of week (1 = Monday) charged as weekend days"
    )

    @field_validator("valid_from", "valid_to")
    @classmethod
    def validate_date(cls, v):
        datetime.strptime(v, "%Y%m%d")
        return v

    @field_validator("tz")
    @classmethod
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except ZoneInfoNotFoundError:
            raise ValueError(f"Unknown timezone {v}") from None
        return v


class FareCaps(ReferenceModel):
    daily_cap: int
    weekend_daily_cap: int


class StationAccessFeeRates(ReferenceModel):
    non_alc_rate: int
    alc_rates: Dict[str, int] = Field(
        default_factory=dict, description="Pair specific rates keyed origin:destination"
    )


class FareBand(ReferenceModel):
    """Rates in cents for fare distances in [from_km, to_km)."""
    from_km: float
    to_km: float
    peak: int
    offpeak: int
    fou_peak: int
    fou_offpeak: int

    def contains(self, distance: float) -> bool:
        return self.from_km <= distance < self.to_km

    def rate(self, is_peak: bool, is_fou: bool) -> int:
        if is_fou:
            return self.fou_peak if is_peak else self.fou_offpeak
        return self.peak if is_peak else self.offpeak


class FareParameters(ReferenceModel):
    """Fare table of a single passenger category."""
    name: str
    caps: FareCaps
    intermodal_discount: int
    saf: Optional[StationAccessFeeRates] = None
    modes: Dict[str, Tuple[FareBand, ...]]


class PeakWindow(ReferenceModel):
    """AM and PM peak periods as [start, end) minutes since midnight."""
    am_peak: Tuple[int, int]
    pm_peak: Tuple[int, int]

    def contains(self, minute_of_day: int) -> bool:
        return any(start <= minute_of_day < end for start, end in (self.am_peak, self.pm_peak))


class PeakHours(ReferenceModel):
    metro_peak: PeakWindow
    outer_metro_peak: PeakWindow


class TimeOfUse(ReferenceModel):
    peak_hours: PeakHours
    public_holidays: FrozenSet[str] = frozenset()
    outer_metro_stations: FrozenSet[str] = frozenset()


class OpalNetwork(ReferenceModel):
    """Fare ruleset valid over [config.valid_from, config.valid_to]."""
    config: NetworkConfig
    fare_table: Dict[str, FareParameters]
    saf_tsn: FrozenSet[str] = frozenset()
    distance_matrix: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    tou: TimeOfUse

    @field_validator("distance_matrix")
    @classmethod
    def mirror_distance_pairs(cls, v):
        # matrices are symmetric, a pair listed once serves both directions
        mirrored = {}
        for mode, pairs in v.items():
            table = dict(pairs)
            for key, km in pairs.items():
                origin, _, destination = key.partition(":")
                table.setdefault(f"{destination}:{origin}", km)
            mirrored[mode] = table
        return mirrored


# --- Fare engine -------------------------------------------------------------


class OpalMode(str, Enum):
    RAIL = "RAIL"
    FERRY = "FERRY"
    LIGHTRAIL = "LIGHTRAIL"
    BUS = "BUS"
    NON_OPAL = "NON_OPAL"


class TransactionType(IntEnum):
    """Smartcard reader transaction kinds."""
    ISSUE_NEW_CARD = 0
    TAP_ON_NEW_JOURNEY = 1
    TAP_ON_INTRAMODAL_TRANSFER = 2
    TAP_ON_INTERMODAL_TRANSFER = 3
    TAP_ON_F1_NEW_JOURNEY = 4
    TAP_ON_F1_INTRAMODAL_TRANSFER = 5
    TAP_ON_F1_INTERMODAL_TRANSFER = 6
    TAP_OFF_DISTANCE_BASED = 7
    TAP_OFF_FLAT_RATE = 8
    TAP_OFF_DEFAULT_NO_TAP_OFF = 9
    TAP_OFF_DEFAULT_NO_TAP_ON = 10
    TAP_ON_REVERSAL = 11


INTRAMODAL_TRANSFER_TYPES = frozenset({
    TransactionType.TAP_ON_INTRAMODAL_TRANSFER,
    TransactionType.TAP_ON_F1_INTRAMODAL_TRANSFER,
})

INTERMODAL_TRANSFER_TYPES = frozenset({
    TransactionType.TAP_ON_INTERMODAL_TRANSFER,
    TransactionType.TAP_ON_F1_INTERMODAL_TRANSFER,
})


class OpalDate(BaseModel):
    """Fare day of an instant; Opal days start at 4am."""
    model_config = ConfigDict(frozen=True)

    date: str
    day_of_week: int
    is_discounted_day: bool


class Tap(BaseModel):
    """A synthesized card reader event."""
    model_config = ConfigDict(frozen=True)

    transaction_type: TransactionType
    tsn: str
    coords: Optional[Tuple[float, float]] = Field(None, description="(lat, lon)")
    time: datetime
    mode: OpalMode
    is_tap_on: bool
    is_peak_tap_on: bool = False


class TapPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    on: Tap
    off: Tap


class FareComponents(BaseModel):
    """Breakdown of one leg's fare, all values in cents."""
    base_fare_cents: int = 0
    fou_discount_cents: int = 0
    intramodal_discount_cents: int = 0
    off_peak_discount_cents: int = 0
    intermodal_discount_cents: int = 0
    complex_adjustment_cents: int = 0
    daily_cap_discount_cents: int = 0
    station_access_fee_cents: int = 0

    @property
    def fare_cents(self) -> int:
        """Sum of every component except the station access fee."""
        return (
            self.base_fare_cents
            + self.fou_discount_cents
            + self.intramodal_discount_cents
            + self.off_peak_discount_cents
            + self.intermodal_discount_cents
            + self.complex_adjustment_cents
            + self.daily_cap_discount_cents
        )


class FareComponent(BaseModel):
    """Fare of one leg for one passenger category, within its segment group."""
    type: str = Field(..., description="Passenger category, e.g. ADULT")
    taps: TapPair
    mode: OpalMode
    distance: Optional[float] = None
    components: FareComponents
    total_additional_fare_cents: int
    total_fare_cents: int = 0
    total_additional_saf_cents: int = 0
    total_saf_cents: int = 0
    leg_index: int = Field(..., description="Position of the leg in the submitted journey")


class JourneySegmentGroup(BaseModel):
    """Consecutive transfer-linked legs of a single mode, charged as one fare."""
    mode: OpalMode
    date: str
    day_of_week: int
    is_discounted_day: bool
    network: OpalNetwork
    legs: List[EfaLeg] = Field(default_factory=list)
    leg_indices: List[int] = Field(default_factory=list)
    taps: List[Tap] = Field(default_factory=list)
    fares: Dict[str, List[FareComponent]] = Field(default_factory=dict)

    @property
    def first_tap_on(self) -> Tap:
        return self.taps[0]

    @property
    def origin(self) -> EfaStop:
        return self.legs[0].origin

    @property
    def destination(self) -> EfaStop:
        return self.legs[-1].destination

    @property
    def tap_ons(self) -> List[Tap]:
        return [tap for tap in self.taps if tap.is_tap_on]

    @property
    def tap_offs(self) -> List[Tap]:
        return [tap for tap in self.taps if not tap.is_tap_on]


# --- Trip planner ticket output ----------------------------------------------


class EfaTicketProperties(EfaModel):
    model_config = ConfigDict(frozen=False)

    rider_category_name: str
    price_station_access_fee: Optional[str] = None
    price_total_fare: str
    evaluation_ticket: Optional[str] = None
    dist_exact: int = 0
    dist_rounded: int = 0
    price_per_km: int = Field(0, alias="pricePerKM")
    price_basic: int = 0
    tariff_product_default: List[Any] = Field(default_factory=list)
    tariff_product_option: List[Any] = Field(default_factory=list)


class EfaTicket(EfaModel):
    """Ticket record shaped like the trip planner's own fare tickets."""
    model_config = ConfigDict(frozen=False)

    id: str
    name: str = "Opal tariff"
    comment: str = ""
    url: str = Field("", alias="URL")
    currency: str = "AUD"
    price_level: str = "0"
    price_brutto: float
    price_netto: int = 0
    tax_percent: int = 0
    from_leg: int
    to_leg: int
    net: str = "nsw"
    person: str
    traveller_class: str = "SECOND"
    time_validity: str = "SINGLE"
    valid_minutes: int = -1
    is_short_haul: str = "NO"
    returns_allowed: str = "NO"
    valid_for_one_journey_only: str = "UNKNOWN"
    valid_for_one_operator_only: str = "UNKNOWN"
    number_of_changes: int
    name_validity_area: str = ""
    valid_from: str
    valid_to: str
    properties: EfaTicketProperties

    def to_efa(self) -> Dict[str, Any]:
        """Serialise with trip planner field names, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


# --- API ---------------------------------------------------------------------


class EstimateRequest(BaseModel):
    """Request model for estimating the fare of one journey."""
    legs: List[EfaLeg] = Field(
        ...,
        min_length=1,
        description="Legs of a single journey in chronological order"
    )


class EstimateResponse(BaseModel):
    """Response model for a fare estimate."""
    fares: Dict[str, List[FareComponent]] = Field(
        ...,
        description="Fare components per passenger category"
    )
    tickets: List[Dict[str, Any]] = Field(
        ...,
        description="Trip planner compatible ticket records"
    )


class NetworkSummary(BaseModel):
    valid_from: str
    valid_to: str
    timezone: str
    fare_types: List[str]
