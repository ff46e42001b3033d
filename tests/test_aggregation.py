from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from aggregation import AggregationEngine, CategoryTotal, Summary, TrendPoint
from database import Base
from errors import InvalidQuery
from models import EntryKind
from periods import Granularity
from store import EntryStore
from validation import EntryCandidate
from visibility import scope_filters

NOW = datetime(2025, 3, 1, 12, 0)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def add(store, owner, kind, amount, category, occurred_at):
    return store.create(
        EntryCandidate(
            kind=kind,
            amount=Decimal(amount),
            category=category,
            note=None,
            occurred_at=occurred_at,
        ),
        owner,
        now=NOW,
    )


def seed(session):
    store = EntryStore(session)
    add(store, "alice", "income", "1000", "Salary", datetime(2024, 1, 15))
    add(store, "alice", "expense", "200", "Food", datetime(2024, 1, 20))
    add(store, "alice", "expense", "50.25", "Transport", datetime(2024, 2, 3))
    add(store, "alice", "expense", "30", "Food", datetime(2024, 2, 3, 18, 0))
    add(store, "alice", "income", "120", "Other", datetime(2024, 2, 28, 23, 59))
    add(store, "bob", "expense", "999", "Food", datetime(2024, 1, 10))
    return store


def test_summary_totals_and_balance() -> None:
    session = make_session()
    seed(session)

    summary = AggregationEngine(session).summary(scope_filters(None, "alice"))

    assert summary == Summary(income_cents=112000, expense_cents=28025)
    assert summary.balance_cents == 112000 - 28025


def test_summary_of_empty_owner_is_zero() -> None:
    session = make_session()
    seed(session)
    summary = AggregationEngine(session).summary(scope_filters(None, "carol"))
    assert summary == Summary(0, 0)
    assert summary.balance_cents == 0


def test_breakdown_sorted_descending_and_sums_to_summary() -> None:
    session = make_session()
    seed(session)
    engine = AggregationEngine(session)
    scope = scope_filters(None, "alice")

    expense = engine.category_breakdown(scope, EntryKind.expense)
    income = engine.category_breakdown(scope, EntryKind.income)

    assert expense == [
        CategoryTotal("Food", 23000),
        CategoryTotal("Transport", 5025),
    ]
    summary = engine.summary(scope)
    assert sum(row.total_cents for row in expense) == summary.expense_cents
    assert sum(row.total_cents for row in income) == summary.income_cents


def test_breakdown_rejects_unknown_kind() -> None:
    session = make_session()
    with pytest.raises(InvalidQuery):
        AggregationEngine(session).category_breakdown(
            scope_filters(None, "alice"), "refund"
        )


def test_monthly_trends_group_by_period_and_kind() -> None:
    session = make_session()
    seed(session)

    trends = AggregationEngine(session).trends(
        scope_filters(None, "alice"), granularity=Granularity.month
    )

    assert trends == [
        TrendPoint("2024-01", income_cents=100000, expense_cents=20000),
        TrendPoint("2024-02", income_cents=12000, expense_cents=8025),
    ]


def test_daily_trends_with_inclusive_end_date() -> None:
    session = make_session()
    seed(session)

    trends = AggregationEngine(session).trends(
        scope_filters(None, "alice"),
        start=date(2024, 2, 1),
        end=date(2024, 2, 28),
        granularity=Granularity.day,
    )

    assert trends == [
        TrendPoint("2024-02-03", income_cents=0, expense_cents=8025),
        TrendPoint("2024-02-28", income_cents=12000, expense_cents=0),
    ]


def test_trends_example_scenario() -> None:
    session = make_session()
    store = EntryStore(session)
    add(store, "alice", "income", "1000", "Salary", datetime(2024, 1, 15))
    add(store, "alice", "expense", "200", "Food", datetime(2024, 1, 20))

    trends = AggregationEngine(session).trends(scope_filters(None, "alice"))

    assert trends == [TrendPoint("2024-01", income_cents=100000, expense_cents=20000)]


def test_empty_range_yields_empty_trends() -> None:
    session = make_session()
    seed(session)
    trends = AggregationEngine(session).trends(
        scope_filters(None, "alice"), start=date(2030, 1, 1), end=date(2030, 12, 31)
    )
    assert trends == []


def test_aggregates_exclude_soft_deleted_entries() -> None:
    session = make_session()
    store = EntryStore(session)
    entry = add(store, "alice", "expense", "42.50", "Food", datetime(2025, 2, 1))
    engine = AggregationEngine(session)
    scope = scope_filters(None, "alice")
    assert engine.summary(scope).expense_cents == 4250

    store.soft_delete(entry.id, scope, now=NOW)

    assert engine.summary(scope).expense_cents == 0
    assert engine.category_breakdown(scope, EntryKind.expense) == []
    assert engine.trends(scope) == []


def test_open_mode_sees_every_owner() -> None:
    session = make_session()
    seed(session)
    summary = AggregationEngine(session).summary(scope_filters(None, None))
    assert summary.expense_cents == 28025 + 99900


def test_results_are_repeatable() -> None:
    session = make_session()
    seed(session)
    engine = AggregationEngine(session)
    scope = scope_filters(None, "alice")
    assert engine.trends(scope) == engine.trends(scope)
    assert engine.category_breakdown(scope, EntryKind.expense) == (
        engine.category_breakdown(scope, EntryKind.expense)
    )
