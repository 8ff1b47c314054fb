"""Services package for the Opal fare estimator."""

from .fare_calculator import (
    get_fare_calculator,
    FareCalculatorInterface,
    OpalFareCalculator
)

__all__ = [
    'get_fare_calculator',
    'FareCalculatorInterface',
    'OpalFareCalculator'
]
