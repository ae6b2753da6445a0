"""
Identity Reconciliation Module

Resolves contact observations (email, phone number) into identities:
one primary contact per identity, every other matching contact linked
to it as a secondary.

Features:
- Match by email OR phone number
- New identity creation
- Secondary linking when an observation adds information
- Merging of identities bridged by a single observation
"""

from .models import ContactDB, LinkPrecedence
from .store import ContactStore, ContactRepository
from .service import IdentityResolver, compose_identity_view, has_new_information
from .schemas import IdentifyRequest, IdentityView, IdentifyResponse, validate_identify_request
from .exceptions import IdentityError, StorageError, ContactConflictError, IdentityIntegrityError

__all__ = [
    'ContactDB',
    'LinkPrecedence',
    'ContactStore',
    'ContactRepository',
    'IdentityResolver',
    'compose_identity_view',
    'has_new_information',
    'IdentifyRequest',
    'IdentityView',
    'IdentifyResponse',
    'validate_identify_request',
    'IdentityError',
    'StorageError',
    'ContactConflictError',
    'IdentityIntegrityError',
]
