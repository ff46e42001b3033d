from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from database import storage_guard
from errors import InvalidQuery
from models import Entry, EntryKind
from periods import Granularity
from visibility import EntryFilters, ScopedFilters, scope_filters


@dataclass(frozen=True)
class Summary:
    income_cents: int
    expense_cents: int

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expense_cents


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total_cents: int


@dataclass(frozen=True)
class TrendPoint:
    period_label: str
    income_cents: int
    expense_cents: int


def parse_kind(value: Optional[str]) -> EntryKind:
    try:
        return EntryKind(value)
    except ValueError as exc:
        raise InvalidQuery(
            "Type parameter must be either 'income' or 'expense'"
        ) from exc


def _period_expression(session: Session, granularity: Granularity):
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return func.strftime(granularity.label_format, Entry.occurred_at)
    if dialect == "postgresql":
        pattern = "YYYY-MM-DD" if granularity is Granularity.day else "YYYY-MM"
        return func.to_char(Entry.occurred_at, pattern)
    if dialect in {"mysql", "mariadb"}:
        return func.date_format(Entry.occurred_at, granularity.label_format)
    return None


class AggregationEngine:
    """Summary, category breakdown and trends over visible entries.

    Results are a pure function of the scoped entry set at query time.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def summary(self, scope: ScopedFilters) -> Summary:
        stmt = (
            select(Entry.kind, func.coalesce(func.sum(Entry.amount_cents), 0))
            .where(*scope.clauses())
            .group_by(Entry.kind)
        )
        with storage_guard(self.session, "summary"):
            rows = self.session.execute(stmt).all()
        totals = {kind: int(total or 0) for kind, total in rows}
        return Summary(
            income_cents=totals.get(EntryKind.income, 0),
            expense_cents=totals.get(EntryKind.expense, 0),
        )

    def category_breakdown(
        self, scope: ScopedFilters, kind: EntryKind
    ) -> list[CategoryTotal]:
        if not isinstance(kind, EntryKind):
            kind = parse_kind(kind)
        total = func.sum(Entry.amount_cents).label("total")
        stmt = (
            select(Entry.category, total)
            .where(*scope.clauses(), Entry.kind == kind)
            .group_by(Entry.category)
            .order_by(total.desc(), Entry.category.asc())
        )
        with storage_guard(self.session, "category_breakdown"):
            rows = self.session.execute(stmt).all()
        return [CategoryTotal(row.category, int(row.total or 0)) for row in rows]

    def trends(
        self,
        scope: ScopedFilters,
        start: Optional[date] = None,
        end: Optional[date] = None,
        granularity: Granularity = Granularity.month,
    ) -> list[TrendPoint]:
        ranged = scope_filters(
            EntryFilters(
                kind=scope.filters.kind,
                category=scope.filters.category,
                start=start,
                end=end,
            ),
            scope.owner_id,
        )
        period = _period_expression(self.session, granularity)
        buckets: dict[str, dict[EntryKind, int]] = {}

        if period is None:
            stmt = select(Entry.occurred_at, Entry.kind, Entry.amount_cents).where(
                *ranged.clauses()
            )
            with storage_guard(self.session, "trends"):
                rows = self.session.execute(stmt).all()
            for occurred_at, kind, amount_cents in rows:
                bucket = buckets.setdefault(granularity.label_for(occurred_at), {})
                bucket[kind] = bucket.get(kind, 0) + int(amount_cents)
        else:
            label = period.label("period")
            stmt = (
                select(label, Entry.kind, func.sum(Entry.amount_cents).label("total"))
                .where(*ranged.clauses())
                .group_by(label, Entry.kind)
            )
            with storage_guard(self.session, "trends"):
                rows = self.session.execute(stmt).all()
            for row in rows:
                bucket = buckets.setdefault(row.period, {})
                bucket[row.kind] = bucket.get(row.kind, 0) + int(row.total or 0)

        return [
            TrendPoint(
                period_label=key,
                income_cents=buckets[key].get(EntryKind.income, 0),
                expense_cents=buckets[key].get(EntryKind.expense, 0),
            )
            for key in sorted(buckets)
        ]
