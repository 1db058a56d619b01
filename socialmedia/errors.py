"""
Error taxonomy shared by the stores, the services and the HTTP layer.

Stores raise StorageError (wrapping the SQLAlchemy failure).
Services raise the business-rule errors (BusinessRuleError subclasses)
directly and re-raise storage failures as ServiceError chained to the
original cause. The two branches never overlap.
"""


class SocialMediaError(Exception):
    """Base class for all application errors."""


class StorageError(SocialMediaError):
    """The persistent medium failed (connection, constraint, I/O)."""


class DuplicateKeyError(StorageError):
    """A uniqueness constraint of the medium rejected the row."""


class ServiceError(SocialMediaError):
    """Opaque service-level failure caused by the storage medium."""


class BusinessRuleError(SocialMediaError):
    """Base class for rule violations the caller can correct."""


class ValidationError(BusinessRuleError):
    """Input violates a data-model invariant."""


class ConflictError(BusinessRuleError):
    """A uniqueness constraint would be violated."""


class NotFoundError(BusinessRuleError):
    """A referenced entity does not exist."""


class AuthorizationError(BusinessRuleError):
    """The acting account does not own the target entity."""
