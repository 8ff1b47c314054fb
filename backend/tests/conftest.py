"""Shared fixtures: the bundled reference dataset and trip planner leg builders."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from opal_fare.config import settings
from opal_fare.models import EfaLeg
from opal_fare.reference import ReferenceDataset

SYDNEY = ZoneInfo("Australia/Sydney")

# name: (TSN, (lat, lon))
STOPS = {
    "circular_quay": ("200020", (-33.8615, 151.2106)),
    "central": ("200060", (-33.8832, 151.2070)),
    "town_hall": ("200070", (-33.8732, 151.2061)),
    "strathfield": ("213510", (-33.8717, 151.0940)),
    "parramatta": ("215020", (-33.8174, 151.0052)),
    "penrith": ("275010", (-33.7505, 150.6940)),
    "green_square": ("201710", (-33.9056, 151.2027)),
    "mascot": ("202010", (-33.9237, 151.1887)),
    "domestic_airport": ("202030", (-33.9335, 151.1813)),
    "international_airport": ("202020", (-33.9364, 151.1660)),
    "gosford": ("225010", (-33.4253, 151.3418)),
    "manly_wharf": ("209573", (-33.8003, 151.2843)),
    "central_bus": ("2000420", (-33.8832, 151.2070)),
    "surry_hills_bus": ("2010123", (-33.8700, 151.2070)),
    "crows_nest_bus": ("2065140", (-33.7970, 151.2070)),
    "kirribilli_bus": ("2061190", (-33.8400, 151.2070)),
    "unmapped": ("10101100", (-33.8800, 151.2000)),
}

# (product class, operator id, product icon)
SYDNEY_TRAINS = (1, "X0000", 1)
SYDNEY_METRO = (2, "M0001", 2)
SYDNEY_FERRIES = (9, "SF", 10)
STOCKTON_FERRY = (9, "3000", 10)
MANLY_FAST_FERRY = (9, "306", 10)
LIGHT_RAIL = (4, "LR01", 13)
OPAL_BUS = (5, "2436", 5)
SCHOOL_BUS = (5, "2436", 99)
FOOTPATH = (100, None, 100)


def sydney_time(year, month, day, hour, minute=0):
    """A wall clock time in Sydney."""
    return datetime(year, month, day, hour, minute, tzinfo=SYDNEY)


def raw_stop(name, departs=None, arrives=None, global_ids=True):
    """A platform nested in its parent stop, the way the trip planner returns it."""
    tsn, coord = STOPS[name]
    stop = {
        "id": f"{tsn}1",
        "name": f"{name} platform",
        "type": "platform",
        "coord": list(coord),
        "isGlobalId": global_ids,
        "parent": {
            "id": tsn,
            "name": name,
            "type": "stop",
            "coord": list(coord),
            "isGlobalId": global_ids,
        },
    }
    if departs is not None:
        stop["departureTimePlanned"] = departs.isoformat()
    if arrives is not None:
        stop["arrivalTimePlanned"] = arrives.isoformat()
    return stop


def raw_leg(origin, destination, departs, arrives, service=SYDNEY_TRAINS):
    """A rapidJSON leg between two named stops."""
    product_class, operator, icon_id = service
    transportation = {
        "product": {"class": product_class, "name": "service", "iconId": icon_id},
    }
    if operator is not None:
        transportation["operator"] = {"id": operator, "name": "operator"}

    return {
        "origin": raw_stop(origin, departs=departs),
        "destination": raw_stop(destination, arrives=arrives),
        "transportation": transportation,
    }


def make_leg(origin, destination, departs, arrives, service=SYDNEY_TRAINS):
    return EfaLeg.model_validate(raw_leg(origin, destination, departs, arrives, service))


@pytest.fixture(scope="session")
def dataset():
    """The bundled reference dataset."""
    return ReferenceDataset.from_file()


@pytest.fixture(scope="session")
def network(dataset):
    """Network in force from 16 October 2023, with Friday as a weekend day."""
    return dataset.network_for_time(sydney_time(2023, 11, 20, 8))


@pytest.fixture(scope="session")
def previous_network(dataset):
    """Network in force until 15 October 2023."""
    return dataset.network_for_time(sydney_time(2023, 10, 13, 8))


@pytest.fixture(autouse=True)
def bundled_reference_data(dataset):
    """Run every test against the bundled dataset."""
    settings.set_reference_dataset(dataset)
    yield
    settings.set_reference_dataset(None)
