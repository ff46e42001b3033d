from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from errors import AuditLogImmutable


CATEGORIES: tuple[str, ...] = (
    "Food",
    "Salary",
    "Utilities",
    "Entertainment",
    "Transport",
    "Healthcare",
    "Education",
    "Miscellaneous",
    "Housing",
    "Insurance",
    "Savings",
    "Debt Repayment",
    "Gifts/Donations",
    "Travel",
    "Pets",
    "Technology",
    "Subscriptions",
    "Personal Care",
    "Childcare",
    "Legal/Tax",
    "Repair/Maintenance",
    "Other",
)

NOTE_MAX_LENGTH = 500
MAX_AMOUNT_CENTS = 1_000_000_000
NOTE_DENYLIST: tuple[str, ...] = ("prohibited", "blocked")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EntryKind(str, Enum):
    income = "income"
    expense = "expense"


class AuditAction(str, Enum):
    created = "created"
    updated = "updated"
    deleted = "deleted"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Entry(Base, TimestampMixin):
    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String(64))
    kind: Mapped[EntryKind] = mapped_column(SAEnum(EntryKind), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(40), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    audits: Mapped[list["EntryAudit"]] = relationship(
        "EntryAudit",
        back_populates="entry",
        order_by="EntryAudit.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index(
            "ix_entries_owner_deleted_occurred", "owner_id", "is_deleted", "occurred_at"
        ),
        Index("ix_entries_owner_kind_category", "owner_id", "kind", "category"),
        CheckConstraint("amount_cents > 0", name="ck_entries_amount_positive"),
    )


class EntryAudit(Base):
    __tablename__ = "entry_audits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_id: Mapped[int] = mapped_column(ForeignKey("entries.id"), nullable=False)
    action: Mapped[AuditAction] = mapped_column(SAEnum(AuditAction), nullable=False)
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    entry: Mapped["Entry"] = relationship("Entry", back_populates="audits")

    __table_args__ = (Index("ix_entry_audits_entry", "entry_id", "id"),)


@event.listens_for(EntryAudit, "before_update")
def _block_audit_update(mapper, connection, target: EntryAudit) -> None:
    raise AuditLogImmutable(f"Audit record {target.id} cannot be modified")


@event.listens_for(EntryAudit, "before_delete")
def _block_audit_delete(mapper, connection, target: EntryAudit) -> None:
    raise AuditLogImmutable(f"Audit record {target.id} cannot be deleted")
