"""Classification of trip planner legs into Opal modes of transport."""

from typing import Callable, Optional, Tuple

from opal_fare.models import EfaLeg, OpalMode

# EFA product classes
METRO = 2
TRAIN = 1
LIGHT_RAIL = 4
BUS = 5
FERRY = 9

# Sydney Trains and NSW TrainLink Intercity
OPAL_TRAIN_OPERATORS = frozenset({"X000", "X0000", "x0001"})
MANLY_FAST_FERRY_OPERATORS = frozenset({"306"})
SYDNEY_FERRIES_OPERATORS = frozenset({"SF"})
STOCKTON_FERRY_OPERATORS = frozenset({"3000"})

# icons of regular Opal bus services
OPAL_BUS_ICONS = frozenset({5, 15})


def _operator_id(leg: EfaLeg) -> Optional[str]:
    operator = leg.transportation.operator
    return operator.id if operator else None


def is_leg_stockton_ferry(leg: EfaLeg) -> bool:
    """The Stockton ferry is charged as a bus fare."""
    return (
        leg.transportation.product.product_class == FERRY
        and _operator_id(leg) in STOCKTON_FERRY_OPERATORS
    )


def _is_opal_train(leg: EfaLeg) -> bool:
    return (
        leg.transportation.product.product_class == TRAIN
        and _operator_id(leg) in OPAL_TRAIN_OPERATORS
    )


def _is_ferry_of(operators) -> Callable[[EfaLeg], bool]:
    def matches(leg: EfaLeg) -> bool:
        return leg.transportation.product.product_class == FERRY and _operator_id(leg) in operators
    return matches


def _is_opal_bus(leg: EfaLeg) -> bool:
    product = leg.transportation.product
    return product.product_class == BUS and product.icon_id in OPAL_BUS_ICONS


# Evaluated in order, the first matching rule wins.
# TODO: school and rail replacement buses are currently classified NON_OPAL
MODE_RULES: Tuple[Tuple[Callable[[EfaLeg], bool], OpalMode], ...] = (
    (lambda leg: leg.transportation.product.product_class == METRO, OpalMode.RAIL),
    (_is_opal_train, OpalMode.RAIL),
    (_is_ferry_of(MANLY_FAST_FERRY_OPERATORS), OpalMode.FERRY),
    (_is_ferry_of(SYDNEY_FERRIES_OPERATORS), OpalMode.FERRY),
    (lambda leg: leg.transportation.product.product_class == LIGHT_RAIL, OpalMode.LIGHTRAIL),
    (_is_opal_bus, OpalMode.BUS),
    (is_leg_stockton_ferry, OpalMode.BUS),
)


def get_opal_mode_for_leg(leg: EfaLeg) -> OpalMode:
    """Return the mode used for Opal fare calculations, or NON_OPAL."""
    for matches, mode in MODE_RULES:
        if matches(leg):
            return mode
    return OpalMode.NON_OPAL
