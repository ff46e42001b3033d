"""Owner scoping and soft-delete visibility for entry queries.

Every read and write path of the store and the aggregation engine takes a
``ScopedFilters``; the only way to build one is ``scope_filters``, which
always excludes soft-deleted rows and, unless ``owner_id`` is None, rows
owned by someone else.

``owner_id=None`` is the open single-tenant mode used when authentication is
disabled: every entry is visible to every caller.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.sql.expression import ColumnElement

from models import Entry, EntryKind


@dataclass(frozen=True)
class EntryFilters:
    kind: Optional[EntryKind] = None
    category: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None


@dataclass(frozen=True)
class ScopedFilters:
    owner_id: Optional[str]
    is_deleted: bool
    filters: EntryFilters

    @property
    def open_access(self) -> bool:
        return self.owner_id is None

    def visibility_clauses(self) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = [Entry.is_deleted.is_(self.is_deleted)]
        if self.owner_id is not None:
            clauses.append(Entry.owner_id == self.owner_id)
        return clauses

    def clauses(self) -> list[ColumnElement[bool]]:
        clauses = self.visibility_clauses()
        f = self.filters
        if f.kind is not None:
            clauses.append(Entry.kind == f.kind)
        if f.category is not None:
            clauses.append(Entry.category == f.category)
        if f.start is not None:
            clauses.append(Entry.occurred_at >= datetime.combine(f.start, time.min))
        if f.end is not None:
            clauses.append(Entry.occurred_at <= datetime.combine(f.end, time.max))
        return clauses


def scope_filters(
    raw: Optional[EntryFilters], owner_id: Optional[str]
) -> ScopedFilters:
    return ScopedFilters(
        owner_id=owner_id, is_deleted=False, filters=raw or EntryFilters()
    )
