# midwestea/services/formatting.py
# Display helpers shared by checkout pages, CSV export, emails and audit logs

from datetime import date, datetime
from typing import Optional, Union

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

DateLike = Union[date, datetime, str, None]


def _as_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def format_currency(cents: Optional[int]) -> str:
    """12345 -> "$123.45". Missing amounts render as the UI placeholder dash."""
    if cents is None:
        return "—"
    return f"${cents / 100:,.2f}"


def cents_to_dollars(cents: Optional[int]) -> str:
    """Plain two-decimal amount for CSV and CMS fields: 165000 -> "1650.00"."""
    return f"{(cents or 0) / 100:.2f}"


def format_long_date(value: DateLike) -> str:
    """2025-03-07 -> "March 7, 2025". Empty string for missing dates."""
    d = _as_date(value)
    if not d:
        return ""
    return f"{MONTH_NAMES[d.month - 1]} {d.day}, {d.year}"


def format_csv_date(value: DateLike) -> str:
    """2025-03-07 -> "3/7/2025"."""
    d = _as_date(value)
    if not d:
        return ""
    return f"{d.month}/{d.day}/{d.year}"


def format_mmddyy(value: DateLike) -> str:
    """2025-03-07 -> "030725" (used in export filenames)."""
    d = _as_date(value)
    if not d:
        return ""
    return d.strftime("%m%d%y")


def split_full_name(full_name: str) -> tuple[Optional[str], Optional[str]]:
    """"Ada Byron Lovelace" -> ("Ada", "Byron Lovelace")."""
    parts = (full_name or "").strip().split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None
