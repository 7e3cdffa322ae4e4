# unimeet/services/errors.py
from enum import Enum


class ValidationError(ValueError):
    """Malformed input, rejected before any transaction work."""


class NotFoundError(ValidationError):
    """An id that does not point at an existing row."""


class HoldError(str, Enum):
    ALREADY_BOOKED = "ALREADY_BOOKED"
    HELD_BY_OTHER = "HELD_BY_OTHER"


class BookingError(str, Enum):
    SLOT_TAKEN = "SLOT_TAKEN"
    NO_REPRESENTATIVE_AVAILABLE = "NO_REPRESENTATIVE_AVAILABLE"
    # Informational only: the booking is still attempted
    HOLD_EXPIRED = "HOLD_EXPIRED"


class TransitionError(str, Enum):
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    SLOT_TAKEN = "SLOT_TAKEN"
