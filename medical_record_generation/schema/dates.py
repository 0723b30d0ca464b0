"""
Date helpers shared by schema checks and normalizers.

Generated records carry dates as strings. The model is asked for
MM/DD/YYYY but ISO dates show up often enough that both are accepted.
"""

from datetime import date, datetime
from typing import Optional

_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%m-%d-%Y", "%Y/%m/%d")


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a generated date string.

    Args:
        value: Date text such as "01/31/1980" or "1980-01-31"; ISO
            timestamps are truncated to their date part

    Returns:
        The parsed date, or None when the text matches no known format
    """
    if not value:
        return None
    text = value.strip()
    for fmt in _FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def compute_age(date_of_birth: Optional[str], today: Optional[date] = None) -> Optional[int]:
    """
    Whole years between ``date_of_birth`` and ``today``.

    One year is subtracted when this year's birthday has not happened yet.
    Returns None for unparseable input.

    Example:
        >>> compute_age("1980-06-15", today=date(2024, 6, 14))
        43
    """
    born = parse_date(date_of_birth)
    if born is None:
        return None
    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age
