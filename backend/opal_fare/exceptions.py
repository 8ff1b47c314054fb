"""Errors raised while estimating a fare.

All of them describe a defect in the reference dataset or an input the
fare scheme does not cover. None of them is transient, so callers should
abandon the journey rather than retry.
"""


class FareCalculationError(ValueError):
    """Base class for fare estimation failures."""


class UnknownFareTypeError(FareCalculationError):
    """The passenger category is not in the network's fare table."""

    def __init__(self, fare_type: str):
        super().__init__(f"Fare type {fare_type} could not be found")
        self.fare_type = fare_type


class UnknownModeError(FareCalculationError):
    """The fare table of a category has no bands for a mode."""

    def __init__(self, mode: str, fare_type: str):
        super().__init__(f"Mode {mode} and fare type {fare_type} could not be found")
        self.mode = mode
        self.fare_type = fare_type


class MissingFareDistanceError(FareCalculationError):
    """No fare distance could be resolved for a journey segment."""


class NoFareBandError(FareCalculationError):
    """A distance could not be matched to any fare band."""
