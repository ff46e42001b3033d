from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Callable, Hashable, Optional

from sqlalchemy.orm import Session

from aggregation import (
    AggregationEngine,
    CategoryTotal,
    Summary,
    TrendPoint,
    parse_kind,
)
from cache import AggregateCache
from errors import CacheError
from models import Entry, EntryAudit, EntryKind
from periods import Granularity
from schemas import EntryIn, EntryPatch
from store import EntryStore
from validation import EntryCandidate
from visibility import EntryFilters, ScopedFilters, scope_filters

logger = logging.getLogger(__name__)


@dataclass
class EntryPage:
    entries: list[Entry]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


class EntryService:
    """Entry lifecycle and aggregate reads for one principal.

    ``owner_id`` is the authenticated principal; None means authentication is
    disabled and every entry is visible (open mode). Mutations flush the
    aggregate cache after the store commits and before returning.
    """

    def __init__(
        self,
        session: Session,
        cache: AggregateCache,
        owner_id: Optional[str] = None,
    ) -> None:
        self.session = session
        self.cache = cache
        self.owner_id = owner_id
        self.store = EntryStore(session)
        self.engine = AggregationEngine(session)

    def _scope(self, filters: Optional[EntryFilters] = None) -> ScopedFilters:
        return scope_filters(filters, self.owner_id)

    def _invalidate(self, reason: str) -> None:
        dropped = self.cache.invalidate_all()
        logger.debug(f"cache_invalidated: reason={reason} dropped={dropped}")

    def _cached(self, key: tuple[Hashable, ...], compute: Callable[[], list]) -> list:
        try:
            hit = self.cache.get(key)
        except CacheError as exc:
            logger.warning(f"cache_read_failed: key={key} error={exc}")
            hit = None
        if hit is not None:
            return list(hit)

        value = compute()
        try:
            self.cache.set(key, tuple(value))
        except CacheError as exc:
            logger.warning(f"cache_write_failed: key={key} error={exc}")
        return value

    def create_entry(self, data: EntryIn) -> Entry:
        candidate = EntryCandidate(
            kind=data.kind,
            amount=data.amount,
            category=data.category,
            note=data.note,
            occurred_at=data.occurred_at,
        )
        entry = self.store.create(candidate, self.owner_id)
        self._invalidate("create")
        logger.info(f"entry_created: id={entry.id} owner={entry.owner_id}")
        return entry

    def get_entry(self, entry_id: int) -> Entry:
        return self.store.find(entry_id, self._scope())

    def list_entries(
        self,
        filters: Optional[EntryFilters] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> EntryPage:
        entries, total = self.store.query(self._scope(filters), page, page_size)
        return EntryPage(entries=entries, total=total, page=page, page_size=page_size)

    def export_entries(self, filters: Optional[EntryFilters] = None) -> list[Entry]:
        return self.store.query_all(self._scope(filters))

    def update_entry(self, entry_id: int, patch: EntryPatch) -> Entry:
        entry = self.store.update(entry_id, self._scope(), patch.changes())
        self._invalidate("update")
        logger.info(f"entry_updated: id={entry.id} owner={entry.owner_id}")
        return entry

    def delete_entry(self, entry_id: int) -> Entry:
        entry = self.store.soft_delete(entry_id, self._scope())
        self._invalidate("delete")
        logger.info(f"entry_deleted: id={entry.id} owner={entry.owner_id}")
        return entry

    def entry_audits(self, entry_id: int) -> list[EntryAudit]:
        return self.store.audit_log(entry_id, self._scope())

    def get_summary(self) -> Summary:
        key = ("summary", self.owner_id)
        return self._cached(key, lambda: [self.engine.summary(self._scope())])[0]

    def get_breakdown(self, kind: Optional[str | EntryKind]) -> list[CategoryTotal]:
        parsed = kind if isinstance(kind, EntryKind) else parse_kind(kind)
        key = ("breakdown", self.owner_id, parsed.value)
        return self._cached(
            key, lambda: self.engine.category_breakdown(self._scope(), parsed)
        )

    def get_trends(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        granularity: Granularity = Granularity.month,
    ) -> list[TrendPoint]:
        key = (
            "trends",
            self.owner_id,
            start.isoformat() if start else None,
            end.isoformat() if end else None,
            granularity.value,
        )
        return self._cached(
            key,
            lambda: self.engine.trends(self._scope(), start, end, granularity),
        )
