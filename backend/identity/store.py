"""
Identity - Contact Store

Persistence for contact records. ``ContactStore`` owns the session factory
and hands out one ``ContactRepository`` per transaction; every repository
method participates in that transaction and ignores soft-deleted rows.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

from sqlalchemy import select, delete, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import ContactDB, LinkPrecedence
from .exceptions import StorageError, ContactConflictError

logger = logging.getLogger(__name__)

# Fields the resolver is allowed to change on an existing contact
UPDATABLE_FIELDS = frozenset(["linked_id", "link_precedence"])


class ContactRepository:
    """Contact queries and writes bound to a single session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _live(self):
        return select(ContactDB).where(ContactDB.deleted_at.is_(None))

    async def find_by_email_or_phone(
        self,
        email: Optional[str] = None,
        phone_number: Optional[str] = None
    ) -> List[ContactDB]:
        """
        Find contacts sharing the email OR the phone number.

        Only the supplied attributes are used as predicates. Results are
        ordered oldest first, ties broken by id.
        """
        predicates = []
        if email:
            predicates.append(ContactDB.email == email)
        if phone_number:
            predicates.append(ContactDB.phone_number == phone_number)

        if not predicates:
            return []

        query = (
            self._live()
            .where(or_(*predicates))
            .order_by(ContactDB.created_at.asc(), ContactDB.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_by_id(self, contact_id: int) -> Optional[ContactDB]:
        """Find a live contact by id."""
        result = await self.db.execute(
            self._live().where(ContactDB.id == contact_id)
        )
        return result.scalar_one_or_none()

    async def find_by_ids(self, contact_ids: List[int]) -> List[ContactDB]:
        """Live contacts with the given ids, oldest first."""
        if not contact_ids:
            return []
        query = (
            self._live()
            .where(ContactDB.id.in_(contact_ids))
            .order_by(ContactDB.created_at.asc(), ContactDB.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_members_of_identity(self, primary_id: int) -> List[ContactDB]:
        """Primary plus its direct secondaries, oldest first."""
        query = (
            self._live()
            .where(or_(ContactDB.id == primary_id, ContactDB.linked_id == primary_id))
            .order_by(ContactDB.created_at.asc(), ContactDB.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_secondaries_of(self, primary_id: int) -> List[ContactDB]:
        """Direct secondaries of a primary, oldest first."""
        query = (
            self._live()
            .where(ContactDB.linked_id == primary_id)
            .order_by(ContactDB.created_at.asc(), ContactDB.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        link_precedence: LinkPrecedence = LinkPrecedence.PRIMARY,
        linked_id: Optional[int] = None,
        created_at: Optional[datetime] = None
    ) -> ContactDB:
        """
        Insert a contact and return it with its id assigned.

        ``created_at`` is normally left to the model default; it is
        accepted for imports and fixtures that need a fixed history.
        """
        contact = ContactDB(
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=LinkPrecedence(link_precedence).value,
        )
        if created_at is not None:
            contact.created_at = created_at
            contact.updated_at = created_at

        self.db.add(contact)
        await self.db.flush()  # Ensure contact.id is available
        await self.db.refresh(contact)
        return contact

    async def update(self, contact_id: int, **fields) -> Optional[ContactDB]:
        """Change link fields on a live contact. Returns None if it does not exist."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update contact fields: {', '.join(sorted(unknown))}")

        contact = await self.find_by_id(contact_id)
        if contact is None:
            return None

        for key, value in fields.items():
            if isinstance(value, LinkPrecedence):
                value = value.value
            setattr(contact, key, value)

        await self.db.flush()
        await self.db.refresh(contact)
        return contact

    async def delete_all(self) -> int:
        """Hard-delete every row, soft-deleted ones included."""
        result = await self.db.execute(delete(ContactDB))
        return result.rowcount or 0


class ContactStore:
    """
    Entry point to contact persistence.

    Built once at startup around a session factory and shared by every
    request; each ``transaction()`` gets its own session.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ContactRepository]:
        """
        Run a unit of work: commit on success, roll back on any failure.

        Raises:
            ContactConflictError: a uniqueness constraint rejected a write
            StorageError: any other database failure
        """
        async with self._session_factory() as session:
            try:
                yield ContactRepository(session)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning(f"Contact write conflict, transaction rolled back: {e.orig}")
                raise ContactConflictError("Contact already exists for this attribute pair") from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Contact store failure, transaction rolled back: {e}")
                raise StorageError("Contact store operation failed") from e
            except Exception:
                await session.rollback()
                raise

    async def clear_all(self) -> int:
        """Administrative reset: remove all identity data."""
        async with self.transaction() as repo:
            deleted = await repo.delete_all()
        logger.warning(f"Contact store cleared: {deleted} rows deleted")
        return deleted
