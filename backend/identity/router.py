"""
Identity - API Router

Provides REST API endpoints for identity reconciliation:
- GET  /           - Service banner
- POST /identify   - Resolve an (email, phoneNumber) observation
- POST /clear-db   - Administrative reset of all identity data

The resolver and store are built once at startup and read from
``app.state``; handlers never construct them.
"""

import logging
import json
from typing import Any

from fastapi import APIRouter, Depends, Request

from config import Settings, get_settings
from sentry_integration import capture_exception
from utils.validation_errors import (
    raise_validation_error,
    raise_conflict,
    raise_internal_error,
    raise_forbidden,
)

from .service import IdentityResolver
from .store import ContactStore
from .schemas import (
    IdentifyResponse,
    ClearStoreResponse,
    validate_identify_request,
    IDENTIFIED_MESSAGE,
)
from .exceptions import ContactConflictError, StorageError, IdentityIntegrityError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Identity"])


# ==================== DEPENDENCIES ====================

def get_identity_resolver(request: Request) -> IdentityResolver:
    """Resolver created during application startup."""
    return request.app.state.identity_resolver


def get_contact_store(request: Request) -> ContactStore:
    """Contact store created during application startup."""
    return request.app.state.contact_store


async def _read_json(request: Request) -> Any:
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        raise_validation_error([{
            "field": None,
            "message": "Request body is not valid JSON",
            "type": "json_invalid",
        }])


# ==================== ENDPOINTS ====================

@router.get("/")
async def root():
    """Service banner. No authentication required."""
    return {
        "message": "Identity reconciliation service is running",
        "status": "ok",
        "module": "identity",
    }


@router.post("/identify", response_model=IdentifyResponse)
async def identify(
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver)
):
    """
    Resolve a contact observation to its identity.

    **Rules:**
    - No match: a new primary contact is created
    - Match with new information: a secondary is linked to the primary
    - Observation bridging identities: the oldest primary absorbs the others
    - Identical repeated observations create nothing
    """
    payload = await _read_json(request)
    validation = validate_identify_request(payload)
    if not validation.ok:
        raise_validation_error(validation.errors)

    body = validation.request

    try:
        view = await resolver.identify(
            email=body.email,
            phone_number=body.phone_number
        )
    except ContactConflictError as e:
        logger.warning(f"Identify conflict: {e}")
        raise_conflict("A concurrent request created this contact; retry the request")
    except (StorageError, IdentityIntegrityError) as e:
        logger.exception(f"Identify failed: {type(e).__name__}")
        event_id = capture_exception(e, endpoint="identify")
        raise_internal_error(event_id)

    return IdentifyResponse(message=IDENTIFIED_MESSAGE, contact=view)


@router.post("/clear-db", response_model=ClearStoreResponse)
async def clear_db(
    store: ContactStore = Depends(get_contact_store),
    settings: Settings = Depends(get_settings)
):
    """
    Remove all identity data (hard delete).

    **For test and reset tooling only.** Disabled when
    ADMIN_RESET_ENABLED is false.
    """
    if not settings.ADMIN_RESET_ENABLED:
        raise_forbidden("Administrative reset is disabled")

    try:
        deleted = await store.clear_all()
    except StorageError as e:
        logger.exception("Failed to clear contact store")
        event_id = capture_exception(e, endpoint="clear-db")
        raise_internal_error(event_id)

    return ClearStoreResponse(message="Database cleared successfully", deleted=deleted)
