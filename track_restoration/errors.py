"""
Exceptions raised by the restoration engine.

All of them derive from ValueError: each one means the caller passed
parameters or data the engine cannot work with, and retrying with corrected
input is the expected recovery.
"""


class RestorationError(ValueError):
    """Base class for every engine validation failure."""


class InvalidRangeError(RestorationError):
    """Malformed wavelength, distance or option bounds."""


class InsufficientDataError(RestorationError):
    """Series too short (or not overlapping) for the requested operation."""


class ConstraintViolation(RestorationError):
    """An edit would breach a hard physical constraint (e.g. curve radius)."""


class PointNotFoundError(RestorationError):
    """An edit targets a distance with no plan-line point near it."""
