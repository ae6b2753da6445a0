"""
Identity - Database Models

SQLAlchemy model for contact records. Column names keep the camelCase
schema of the ``contacts`` table.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LinkPrecedence(str, Enum):
    """Role of a contact inside its identity"""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ContactDB(Base):
    """
    Contact - one observation of an (email, phone number) pair.

    A primary contact anchors an identity; secondaries point at it through
    ``linked_id``. Rows with ``deleted_at`` set are invisible to every query.
    """
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column("phoneNumber", String(50), nullable=True)
    email = Column(String(100), nullable=True)
    linked_id = Column("linkedId", Integer, ForeignKey("contacts.id"), nullable=True, index=True)
    link_precedence = Column(
        "linkPrecedence",
        String(20),
        nullable=False,
        default=LinkPrecedence.PRIMARY.value
    )
    created_at = Column("createdAt", DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column("updatedAt", DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    deleted_at = Column("deletedAt", DateTime(timezone=True), nullable=True)

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == LinkPrecedence.PRIMARY.value

    def __repr__(self) -> str:
        return f"<ContactDB id={self.id} {self.link_precedence} linked_id={self.linked_id}>"


# One live row per attribute pair; the loser of a concurrent create fails here
Index(
    "uq_contacts_email_phone_live",
    ContactDB.email,
    ContactDB.phone_number,
    unique=True,
    postgresql_where=ContactDB.deleted_at.is_(None),
    sqlite_where=ContactDB.deleted_at.is_(None),
)
Index("ix_contacts_email", ContactDB.email)
Index("ix_contacts_phone_number", ContactDB.phone_number)
