"""Error taxonomy for the asset lifecycle services.

Callers map these onto their own transport: ``NotFound`` is a missing
reference, ``InvalidState`` and ``Conflict`` are rejected transitions,
``ValidationFailed`` is malformed input and ``IntegrityFault`` means the
stored data is already inconsistent.
"""

from django.core.exceptions import ValidationError


class AssetLifecycleError(Exception):
    """Base class for errors raised by the lifecycle services."""

    default_message = "Asset lifecycle error"

    def __init__(self, entity=None, identity=None, message=None):
        self.entity = entity
        self.identity = identity
        self.message = message or self.default_message
        super().__init__(str(self))

    def __str__(self):
        if self.entity is None:
            return self.message
        return f"{self.entity} {self.identity!r}: {self.message}"


class NotFound(AssetLifecycleError):
    default_message = "not found"


class InvalidState(AssetLifecycleError):
    default_message = "operation not permitted in the current state"


class Conflict(AssetLifecycleError):
    default_message = "conflicts with existing data"


class IntegrityFault(AssetLifecycleError):
    default_message = "stored data violates an invariant"


class ValidationFailed(ValidationError):
    """Malformed input reaching the core."""
