import csv
import re
from io import StringIO
from typing import Sequence

from models import Entry


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"


def export_entries(entries: Sequence[Entry]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Id", "Date", "Type", "Amount", "Category", "Note"])
    for entry in entries:
        writer.writerow(
            [
                entry.id,
                entry.occurred_at.isoformat(timespec="seconds"),
                entry.kind.value,
                format_cents(entry.amount_cents),
                sanitize_csv_value(entry.category),
                sanitize_csv_value(entry.note or ""),
            ]
        )
    return output.getvalue()
