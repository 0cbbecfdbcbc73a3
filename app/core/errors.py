"""
Domain-level exceptions.

The repository and service layers raise these errors; the API layer maps them
to HTTP status codes in one place (see app.main).
"""


class DomainError(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainError):
    """Required input is missing or malformed."""


class ConflictError(DomainError):
    """A unique field already belongs to another user."""


class NotFoundError(DomainError):
    """Requested entity does not exist."""


class DuplicateKeyError(DomainError):
    """Store rejected a write on a unique constraint."""


class HashingError(DomainError):
    """Secret could not be hashed."""


class InvalidHashFormatError(DomainError):
    """Stored hash is not a valid bcrypt hash."""


class RequestCancelledError(DomainError):
    """Request was cancelled before the store call completed."""


class DeadlineExceededError(DomainError):
    """Request deadline passed before the store call completed."""
