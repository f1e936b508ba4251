"""
Domain-specific exception hierarchy for the barbershop booking application.
"""


class BarbershopError(Exception):
    """Base class for all application-level errors."""


class InvalidScheduleError(BarbershopError, ValueError):
    """Raised when a barber schedule violates the slot generator preconditions."""


class BookingValidationError(BarbershopError, ValueError):
    """Raised when client details for a booking are missing or malformed."""


class StoreError(BarbershopError):
    """Raised when barber or appointment data cannot be fetched or persisted."""


class SlotTakenError(BarbershopError):
    """Raised when another booking already holds the barber/date/time slot."""


class SlotUnavailableError(BarbershopError):
    """Raised when the requested time is not a bookable slot for that day."""


class BarberNotFoundError(BarbershopError):
    """Raised when a barber id or name cannot be resolved."""


class AppointmentNotFoundError(BarbershopError):
    """Raised when an appointment id does not exist in the store."""


class CredentialsError(BarbershopError):
    """Raised when the store API key cannot be written to or removed from the keyring."""
