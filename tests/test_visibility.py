from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from database import Base
from models import Entry, EntryKind
from store import EntryStore
from validation import EntryCandidate
from visibility import EntryFilters, scope_filters

NOW = datetime(2025, 3, 1, 12, 0)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def seed(session):
    store = EntryStore(session)
    rows = [
        ("alice", "expense", "Food", datetime(2025, 1, 1, 0, 0)),
        ("alice", "income", "Salary", datetime(2025, 1, 15)),
        ("alice", "expense", "Transport", datetime(2025, 1, 31, 23, 59, 59)),
        ("bob", "expense", "Food", datetime(2025, 1, 10)),
    ]
    for owner, kind, category, occurred_at in rows:
        store.create(
            EntryCandidate(
                kind=kind,
                amount=Decimal("10"),
                category=category,
                note=None,
                occurred_at=occurred_at,
            ),
            owner,
            now=NOW,
        )
    deleted = store.create(
        EntryCandidate("expense", Decimal("1"), "Food", None, datetime(2025, 1, 5)),
        "alice",
        now=NOW,
    )
    store.soft_delete(deleted.id, scope_filters(None, "alice"), now=NOW)


def visible(session, scope):
    return session.scalars(select(Entry).where(*scope.clauses())).all()


def test_scope_always_excludes_deleted_rows() -> None:
    scope = scope_filters(None, "alice")
    assert scope.is_deleted is False
    assert scope.open_access is False
    assert scope_filters(None, None).open_access is True


def test_owner_scope_hides_other_owners_and_deleted() -> None:
    session = make_session()
    seed(session)

    entries = visible(session, scope_filters(None, "alice"))

    assert len(entries) == 3
    assert {e.owner_id for e in entries} == {"alice"}
    assert not any(e.is_deleted for e in entries)


def test_open_scope_sees_all_owners_but_not_deleted() -> None:
    session = make_session()
    seed(session)
    entries = visible(session, scope_filters(None, None))
    assert len(entries) == 4


def test_filters_combine_with_scope() -> None:
    session = make_session()
    seed(session)

    by_kind = visible(
        session, scope_filters(EntryFilters(kind=EntryKind.expense), "alice")
    )
    by_category = visible(session, scope_filters(EntryFilters(category="Food"), None))
    by_range = visible(
        session,
        scope_filters(
            EntryFilters(start=date(2025, 1, 15), end=date(2025, 1, 31)), "alice"
        ),
    )

    assert {e.category for e in by_kind} == {"Food", "Transport"}
    assert {e.owner_id for e in by_category} == {"alice", "bob"}
    assert sorted(e.category for e in by_range) == ["Salary", "Transport"]
