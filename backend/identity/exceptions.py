"""
Identity - Exceptions

Validation failures never reach the resolver; they are reported by
``identity.schemas.validate_identify_request``. Everything raised from
inside an ``identify`` call derives from ``IdentityError``.
"""


class IdentityError(Exception):
    """Base class for identity reconciliation failures."""


class StorageError(IdentityError):
    """A contact store operation failed; the transaction was rolled back."""


class ContactConflictError(StorageError):
    """
    A write collided with a uniqueness constraint.

    Raised when two concurrent requests for the same never-seen attribute
    pair both try to create a primary. Callers may retry.
    """


class IdentityIntegrityError(IdentityError):
    """Stored links violate the one-primary-per-identity star shape."""
