"""Error types raised by the entry subsystem.

Errors a caller can fix subclass ValueError; storage and cache faults
subclass RuntimeError. The HTTP layer maps each type to its own status code.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Violation:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class EntryValidationError(ValueError):
    def __init__(self, violations: list[Violation]) -> None:
        self.violations = list(violations)
        summary = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        super().__init__(f"Validation failed: {summary}")


class EntryNotFound(ValueError):
    """Absent, owned by another principal, or soft-deleted; one message for all."""

    def __init__(self) -> None:
        super().__init__("Entry not found")


class InvalidQuery(ValueError):
    pass


class InvalidCredential(ValueError):
    pass


class AuditLogImmutable(ValueError):
    pass


class StoreUnavailable(RuntimeError):
    def __init__(self, operation: str, entry_id: Optional[int] = None) -> None:
        self.operation = operation
        self.entry_id = entry_id
        target = f" entry_id={entry_id}" if entry_id is not None else ""
        super().__init__(f"Storage failure during {operation}{target}")


class CacheError(RuntimeError):
    pass
