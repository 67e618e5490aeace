from typing import List, Optional


class ProvisioningError(Exception):
    """Base class for every error raised by the provisioning core."""


# Validation
class ValidationError(ProvisioningError, ValueError):
    """Raised when a field violates its declarative rule."""

    def __init__(self, field: str, rule: str, message: Optional[str] = None):
        self.field = field
        self.rule = rule
        self.message = message or f"field '{field}' failed rule '{rule}'"
        super().__init__(self.message)


class ParseError(ValidationError):
    """Raised when a duration string cannot be parsed."""

    def __init__(self, value: str, message: str):
        self.value = value
        super().__init__("ttl", "duration", message)


# Storage
class ConflictError(ProvisioningError):
    """Raised when a write would violate a uniqueness constraint."""


class NotFoundError(ProvisioningError):
    """Raised when the referenced id or name does not exist."""


class StorageError(ProvisioningError):
    """Raised on any backend failure that is not a timeout."""


class StorageTimeoutError(StorageError):
    """Raised when a storage call exceeds its deadline."""


class BatchError(ProvisioningError):
    """
    Raised when a batch operation stops partway.

    `applied` holds the entries written before the failure, `failed` the name
    of the entry that failed and `skipped` the names that were never attempted.
    """

    def __init__(self, cause: ProvisioningError, applied: list, failed: str, skipped: List[str]):
        self.cause = cause
        self.applied = applied
        self.failed = failed
        self.skipped = skipped
        super().__init__(f"batch stopped at '{failed}': {cause}")
