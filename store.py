from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from database import storage_guard
from errors import EntryNotFound, EntryValidationError, InvalidQuery
from models import AuditAction, Entry, EntryAudit, EntryKind, utcnow
from validation import EntryCandidate, normalize_timestamp, validate_entry
from visibility import ScopedFilters


def diff_fields(
    before: dict[str, object], after: dict[str, object]
) -> dict[str, dict[str, object]]:
    return {
        name: {"from": before[name], "to": after[name]}
        for name in before
        if before[name] != after[name]
    }


class EntryStore:
    """Persistence of entries and their audit trail.

    Each mutation is committed on its own; no operation spans more than one
    entry. Nothing reaches the database after a mutation's commit, so a
    StoreUnavailable from a mutation always means nothing was written.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _validated(self, candidate: EntryCandidate, now: datetime) -> EntryCandidate:
        candidate = candidate.merged(
            {"occurred_at": normalize_timestamp(candidate.occurred_at)}
        )
        violations = validate_entry(candidate, now=now)
        if violations:
            raise EntryValidationError(violations)
        return candidate

    def create(
        self,
        candidate: EntryCandidate,
        owner_id: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> Entry:
        now = now or utcnow()
        if candidate.occurred_at is None:
            candidate = candidate.merged({"occurred_at": now})
        candidate = self._validated(candidate, now)

        entry = Entry(
            owner_id=owner_id,
            kind=EntryKind(candidate.kind),
            amount_cents=candidate.amount_cents(),
            category=candidate.category,
            note=candidate.note,
            occurred_at=candidate.occurred_at,
            is_deleted=False,
        )
        entry.audits.append(
            EntryAudit(
                action=AuditAction.created,
                changes=candidate.fields(),
                timestamp=now,
            )
        )
        with storage_guard(self.session, "create"):
            self.session.add(entry)
            self.session.commit()
        return entry

    def find(self, entry_id: int, scope: ScopedFilters) -> Entry:
        stmt = select(Entry).where(Entry.id == entry_id, *scope.visibility_clauses())
        with storage_guard(self.session, "find", entry_id):
            entry = self.session.scalar(stmt)
        if entry is None:
            raise EntryNotFound()
        return entry

    def _find_for_write(
        self, entry_id: int, scope: ScopedFilters, operation: str
    ) -> Entry:
        stmt = (
            select(Entry)
            .where(Entry.id == entry_id, *scope.visibility_clauses())
            .with_for_update()
        )
        with storage_guard(self.session, operation, entry_id):
            entry = self.session.scalar(stmt)
        if entry is None:
            raise EntryNotFound()
        return entry

    def query(
        self, scope: ScopedFilters, page: int, page_size: int
    ) -> tuple[list[Entry], int]:
        if page < 1:
            raise InvalidQuery("Page must be 1 or greater")
        if page_size < 1:
            raise InvalidQuery("Limit must be 1 or greater")
        clauses = scope.clauses()
        stmt = (
            select(Entry)
            .where(*clauses)
            .order_by(Entry.occurred_at.desc(), Entry.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_stmt = select(func.count(Entry.id)).where(*clauses)
        with storage_guard(self.session, "query"):
            entries = list(self.session.scalars(stmt).all())
            total = int(self.session.execute(count_stmt).scalar_one() or 0)
        return entries, total

    def query_all(self, scope: ScopedFilters) -> list[Entry]:
        stmt = (
            select(Entry)
            .where(*scope.clauses())
            .order_by(Entry.occurred_at.desc(), Entry.id.desc())
        )
        with storage_guard(self.session, "query_all"):
            return list(self.session.scalars(stmt).all())

    def update(
        self,
        entry_id: int,
        scope: ScopedFilters,
        patch: dict[str, object],
        *,
        now: Optional[datetime] = None,
    ) -> Entry:
        now = now or utcnow()
        entry = self._find_for_write(entry_id, scope, "update")
        before = EntryCandidate.from_entry(entry)
        try:
            after = self._validated(before.merged(patch), now)
        except EntryValidationError:
            self.session.rollback()
            raise

        changes = diff_fields(before.fields(), after.fields())
        if not changes:
            with storage_guard(self.session, "update", entry_id):
                self.session.commit()
            return entry

        entry.kind = EntryKind(after.kind)
        entry.amount_cents = after.amount_cents()
        entry.category = after.category
        entry.note = after.note
        entry.occurred_at = after.occurred_at
        entry.audits.append(
            EntryAudit(action=AuditAction.updated, changes=changes, timestamp=now)
        )
        with storage_guard(self.session, "update", entry_id):
            self.session.commit()
        return entry

    def soft_delete(
        self, entry_id: int, scope: ScopedFilters, *, now: Optional[datetime] = None
    ) -> Entry:
        now = now or utcnow()
        entry = self._find_for_write(entry_id, scope, "soft_delete")
        entry.is_deleted = True
        entry.audits.append(
            EntryAudit(
                action=AuditAction.deleted,
                changes={"is_deleted": {"from": False, "to": True}},
                timestamp=now,
            )
        )
        with storage_guard(self.session, "soft_delete", entry_id):
            self.session.commit()
        return entry

    def audit_log(self, entry_id: int, scope: ScopedFilters) -> list[EntryAudit]:
        return list(self.find(entry_id, scope).audits)
