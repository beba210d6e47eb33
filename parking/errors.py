"""Error taxonomy for the parking core."""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    NO_PRICING = "no_pricing"


class ParkingError(Exception):
    """``kind`` lets callers branch on the failure without an isinstance chain."""

    kind: ErrorKind

    def __init__(self, message: str, *, plate: str = ""):
        self.plate = plate
        super().__init__(message)


class ValidationError(ParkingError):
    """Missing, malformed or contradictory input (plate, timestamps, policy)."""

    kind = ErrorKind.VALIDATION


class ConflictError(ParkingError):
    kind = ErrorKind.CONFLICT


class NotFoundError(ParkingError):
    kind = ErrorKind.NOT_FOUND


class NoPricingAvailableError(ParkingError):
    kind = ErrorKind.NO_PRICING
