"""Field rules for entries, independent of storage.

``validate_entry`` never stops at the first problem: it returns every
violated constraint so callers can surface them together.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from rapidfuzz.distance import Levenshtein

from errors import Violation
from models import (
    CATEGORIES,
    MAX_AMOUNT_CENTS,
    NOTE_DENYLIST,
    NOTE_MAX_LENGTH,
    Entry,
    EntryKind,
)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class EntryCandidate:
    kind: Optional[str]
    amount: Optional[Decimal]
    category: Optional[str]
    note: Optional[str]
    occurred_at: Optional[datetime]

    @classmethod
    def from_entry(cls, entry: Entry) -> "EntryCandidate":
        return cls(
            kind=entry.kind.value,
            amount=Decimal(entry.amount_cents) / 100,
            category=entry.category,
            note=entry.note,
            occurred_at=entry.occurred_at,
        )

    def merged(self, patch: dict[str, object]) -> "EntryCandidate":
        return replace(self, **patch)

    def amount_cents(self) -> int:
        return to_cents(self.amount)

    def fields(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "amount_cents": self.amount_cents(),
            "category": self.category,
            "note": self.note,
            "occurred_at": self.occurred_at.isoformat(),
        }


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def normalize_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def suggest_category(value: str) -> Optional[str]:
    lowered = value.strip().lower()
    matches = [
        name
        for name in CATEGORIES
        if Levenshtein.distance(lowered, name.lower(), score_cutoff=1) <= 1
    ]
    if len(matches) == 1:
        return matches[0]
    return None


def _check_amount(amount: Optional[Decimal]) -> Optional[str]:
    if amount is None:
        return "Amount is required"
    try:
        if not amount.is_finite() or amount <= 0:
            return "Amount must be a positive number"
        if amount * 100 > MAX_AMOUNT_CENTS:
            return f"Amount cannot be more than {MAX_AMOUNT_CENTS // 100}"
        if amount != amount.quantize(CENT):
            return "Amount cannot have more than two decimal places"
    except InvalidOperation:
        return "Amount must be a positive number"
    return None


def _check_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return "Category is required"
    if category in CATEGORIES:
        return None
    hint = suggest_category(category)
    if hint:
        return f"Invalid category '{category}'. Did you mean '{hint}'?"
    return f"Invalid category '{category}'"


def _check_note(note: Optional[str]) -> list[str]:
    if note is None:
        return []
    problems = []
    if len(note) > NOTE_MAX_LENGTH:
        problems.append(f"Note cannot be more than {NOTE_MAX_LENGTH} characters")
    lowered = note.lower()
    if any(word in lowered for word in NOTE_DENYLIST):
        problems.append("Note contains prohibited content")
    return problems


def validate_entry(candidate: EntryCandidate, *, now: datetime) -> list[Violation]:
    violations: list[Violation] = []

    if candidate.kind is None:
        violations.append(Violation("type", "Type is required"))
    elif candidate.kind not in {k.value for k in EntryKind}:
        violations.append(
            Violation("type", "Type must be either 'income' or 'expense'")
        )

    amount_problem = _check_amount(candidate.amount)
    if amount_problem:
        violations.append(Violation("amount", amount_problem))

    category_problem = _check_category(candidate.category)
    if category_problem:
        violations.append(Violation("category", category_problem))

    for problem in _check_note(candidate.note):
        violations.append(Violation("note", problem))

    occurred_at = normalize_timestamp(candidate.occurred_at)
    if occurred_at is None:
        violations.append(Violation("date", "Date is required"))
    elif occurred_at > now:
        violations.append(Violation("date", "Date cannot be in the future"))

    return violations
