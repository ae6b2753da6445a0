"""
Identity - Request/Response Models

Pydantic models for the /identify contract plus the explicit validation
step applied before the resolver is called.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from email_validator import validate_email
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

IDENTIFIED_MESSAGE = "Contact identified successfully"


# ==================== REQUEST ====================

class IdentifyRequest(BaseModel):
    """An observed (email, phoneNumber) pair. Both fields are optional here;
    ``validate_identify_request`` enforces that at least one is present."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    email: Optional[str] = Field(None, max_length=100, description="Contact email address")
    phone_number: Optional[str] = Field(None, min_length=1, max_length=20, description="Contact phone number")

    @field_validator("email")
    @classmethod
    def check_email_format(cls, v: Optional[str]) -> Optional[str]:
        """Format check only; the address is kept exactly as sent."""
        if v is None:
            return v
        validate_email(v, check_deliverability=False)
        return v


@dataclass
class IdentifyValidation:
    """Outcome of validating an /identify payload."""
    request: Optional[IdentifyRequest] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.request is not None and not self.errors


def validate_identify_request(payload: Any) -> IdentifyValidation:
    """
    Validate a decoded JSON body for /identify.

    Returns an ``IdentifyValidation`` carrying either the parsed request or a
    list of field errors shaped ``{"field", "message", "type"}``.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return IdentifyValidation(errors=[{
            "field": None,
            "message": "Request body must be a JSON object",
            "type": "invalid_body",
        }])

    try:
        request = IdentifyRequest.model_validate(payload)
    except ValidationError as e:
        return IdentifyValidation(errors=[
            {
                "field": ".".join(str(part) for part in err["loc"]) or None,
                "message": err["msg"],
                "type": err["type"],
            }
            for err in e.errors()
        ])

    if not request.email and not request.phone_number:
        return IdentifyValidation(errors=[{
            "field": "email,phoneNumber",
            "message": "Either email or phoneNumber must be provided",
            "type": "missing_parameter",
        }])

    return IdentifyValidation(request=request)


# ==================== RESPONSE ====================

class IdentityView(BaseModel):
    """Unified view of one identity: primary first, then secondaries by age."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    primary_contact_id: int
    emails: List[str] = Field(default_factory=list)
    phone_numbers: List[str] = Field(default_factory=list)
    secondary_contact_ids: List[int] = Field(default_factory=list)


class IdentifyResponse(BaseModel):
    """Response model for POST /identify"""
    message: str = IDENTIFIED_MESSAGE
    contact: IdentityView


class ClearStoreResponse(BaseModel):
    """Response model for POST /clear-db"""
    message: str
    deleted: int
