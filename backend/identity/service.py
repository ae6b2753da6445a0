"""
Identity - Resolver

Business logic for contact identity reconciliation:
- Match an observed (email, phone) pair against stored contacts
- Create a new primary when nothing matches
- Link new information as a secondary of the matching identity
- Merge identities bridged by one observation (oldest primary wins)

Each ``identify`` call is one transaction: either every write lands or none.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from .models import ContactDB, LinkPrecedence
from .schemas import IdentityView
from .store import ContactStore, ContactRepository
from .exceptions import IdentityIntegrityError

logger = logging.getLogger(__name__)


# ==================== AUDIT EVENTS ====================

class IdentityAuditEvent:
    """Event types logged for identity mutations."""
    PRIMARY_CREATED = "contact.primary_created"
    SECONDARY_CREATED = "contact.secondary_created"
    PRIMARY_DEMOTED = "contact.primary_demoted"
    SECONDARY_RELINKED = "contact.secondary_relinked"
    IDENTITY_RESOLVED = "identity.resolved"


def log_identity_event(
    event_type: str,
    primary_contact_id: Optional[int],
    details: Dict[str, Any]
):
    """
    Log an identity operation.

    Never logs email addresses or phone numbers, only ids, counts and flags.
    """
    pii_fields = ('email', 'phone_number', 'phoneNumber', 'emails', 'phone_numbers')
    safe_details = {k: v for k, v in details.items() if k not in pii_fields}

    log_entry = {
        "event": event_type,
        "primary_contact_id": primary_contact_id,
        "details": safe_details,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    logger.info(f"Identity event: {event_type} for primary {primary_contact_id}", extra=log_entry)


# ==================== PURE HELPERS ====================

def has_new_information(
    members: List[ContactDB],
    email: Optional[str],
    phone_number: Optional[str]
) -> bool:
    """
    True if a supplied email or phone is absent from every member.

    Exact, case-sensitive comparison.
    """
    known_emails = {c.email for c in members if c.email is not None}
    known_phones = {c.phone_number for c in members if c.phone_number is not None}

    new_email = bool(email) and email not in known_emails
    new_phone = bool(phone_number) and phone_number not in known_phones
    return new_email or new_phone


def _unique(values: List[Any]) -> List[Any]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def compose_identity_view(members: List[ContactDB]) -> IdentityView:
    """
    Build the unified view of an identity.

    ``members`` is the primary plus its secondaries, oldest first. The
    primary's own values come first, then secondaries' values in creation
    order, each list deduplicated.
    """
    primary = next((c for c in members if c.is_primary), None)
    if primary is None:
        raise IdentityIntegrityError("Identity has no primary contact")

    secondaries = [c for c in members if not c.is_primary]

    emails = [primary.email] if primary.email else []
    emails.extend(c.email for c in secondaries if c.email)

    phone_numbers = [primary.phone_number] if primary.phone_number else []
    phone_numbers.extend(c.phone_number for c in secondaries if c.phone_number)

    return IdentityView(
        primary_contact_id=primary.id,
        emails=_unique(emails),
        phone_numbers=_unique(phone_numbers),
        secondary_contact_ids=[c.id for c in secondaries]
    )


def _find_exact(
    contacts: List[ContactDB],
    email: Optional[str],
    phone_number: Optional[str]
) -> Optional[ContactDB]:
    """First contact equal to the input on every supplied attribute."""
    for contact in contacts:
        if email and contact.email != email:
            continue
        if phone_number and contact.phone_number != phone_number:
            continue
        return contact
    return None


# ==================== RESOLVER ====================

class IdentityResolver:
    """
    Identity Resolver - reconciles contact observations into identities.

    Ensures:
    - Exactly one primary per identity, the oldest member
    - Secondaries always point straight at their primary (no chains)
    - Identical repeated observations change nothing
    """

    def __init__(self, store: ContactStore):
        self.store = store

    async def identify(
        self,
        email: Optional[str] = None,
        phone_number: Optional[str] = None
    ) -> IdentityView:
        """
        Resolve an observation to its identity, creating or merging as needed.

        Args:
            email: Observed email address
            phone_number: Observed phone number

        Returns:
            IdentityView of the resolved identity

        Raises:
            ValueError: If neither attribute is supplied
            StorageError: If a store operation fails (nothing is persisted)
            IdentityIntegrityError: If stored links are inconsistent
        """
        if not email and not phone_number:
            raise ValueError("identify requires an email or a phone number")

        async with self.store.transaction() as repo:
            matches = await repo.find_by_email_or_phone(email, phone_number)

            if not matches:
                contact = await repo.create(email, phone_number, LinkPrecedence.PRIMARY)
                log_identity_event(IdentityAuditEvent.PRIMARY_CREATED, contact.id, {
                    "contact_id": contact.id,
                    "has_email": bool(email),
                    "has_phone": bool(phone_number)
                })
                return compose_identity_view([contact])

            exact = _find_exact(matches, email, phone_number)
            if exact is not None:
                primary_id = exact.id if exact.is_primary else exact.linked_id
            else:
                primary_id = await self._link(repo, matches, email, phone_number)

            members = await repo.find_members_of_identity(primary_id)
            view = compose_identity_view(members)

        log_identity_event(IdentityAuditEvent.IDENTITY_RESOLVED, view.primary_contact_id, {
            "matched": len(matches),
            "exact_match": exact is not None,
            "secondary_count": len(view.secondary_contact_ids)
        })
        return view

    async def _link(
        self,
        repo: ContactRepository,
        matches: List[ContactDB],
        email: Optional[str],
        phone_number: Optional[str]
    ) -> int:
        """
        Attach the observation to the matching identity, merging primaries.

        Returns the id of the surviving primary.
        """
        # Every identity touched by the observation, directly or via a secondary
        roots = await self._resolve_roots(repo, matches)

        # roots are oldest first, so the first one is the merge anchor
        anchor = roots[0]
        for other in roots[1:]:
            await self._demote(repo, other, anchor)

        members = await repo.find_members_of_identity(anchor.id)
        if has_new_information(members, email, phone_number):
            contact = await repo.create(
                email,
                phone_number,
                LinkPrecedence.SECONDARY,
                linked_id=anchor.id
            )
            log_identity_event(IdentityAuditEvent.SECONDARY_CREATED, anchor.id, {
                "contact_id": contact.id,
                "has_email": bool(email),
                "has_phone": bool(phone_number)
            })

        return anchor.id

    async def _demote(self, repo: ContactRepository, contact: ContactDB, anchor: ContactDB) -> None:
        """
        Turn a primary into a secondary of ``anchor``.

        Its own secondaries are re-pointed at ``anchor`` in the same
        transaction so no secondary is left linked to a secondary.
        """
        children = await repo.find_secondaries_of(contact.id)

        await repo.update(
            contact.id,
            link_precedence=LinkPrecedence.SECONDARY,
            linked_id=anchor.id
        )
        log_identity_event(IdentityAuditEvent.PRIMARY_DEMOTED, anchor.id, {
            "contact_id": contact.id
        })

        for child in children:
            await repo.update(child.id, linked_id=anchor.id)
        if children:
            log_identity_event(IdentityAuditEvent.SECONDARY_RELINKED, anchor.id, {
                "from_contact_id": contact.id,
                "contact_ids": [c.id for c in children]
            })

    async def _resolve_roots(self, repo: ContactRepository, matches: List[ContactDB]) -> List[ContactDB]:
        """Primaries of every matched contact, oldest first."""
        root_ids = _unique([c.id if c.is_primary else c.linked_id for c in matches])
        if None in root_ids:
            raise IdentityIntegrityError("Secondary contact has no linked primary")

        roots = await repo.find_by_ids(root_ids)
        if len(roots) != len(root_ids) or not all(r.is_primary for r in roots):
            found = {r.id for r in roots if r.is_primary}
            missing = sorted(i for i in root_ids if i not in found)
            raise IdentityIntegrityError(f"Secondaries link to missing or non-primary contacts {missing}")

        return roots
