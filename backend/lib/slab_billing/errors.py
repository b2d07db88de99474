# backend/lib/slab_billing/errors.py


class SlabBillingError(Exception):
    """Base class for every error raised by the billing core."""


class ValidationError(SlabBillingError):
    """A candidate pricing schedule breaks one of the schedule invariants."""


class InvalidRangeError(SlabBillingError):
    """A cost query window is malformed (end before start, bad dates, unknown preset)."""


class ConfigurationError(SlabBillingError):
    """Billing was requested against an empty or uninitialised schedule."""


class PayloadError(SlabBillingError, ValueError):
    """A reading payload is missing fields or carries non-numeric values."""
