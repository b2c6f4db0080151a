"""Date-range arithmetic for Gantt bars.

Bars are positioned inside one calendar year, as percentages of the span
Jan 1 -> Dec 31.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional


def ensure_date(d: Any) -> date:
    """Normalize an input to a `datetime.date`.

    Accepts:
      - date or datetime instance
      - ISO-like date string, optionally with time (e.g. '2025-11-30' or '2025-11-30T12:00:00Z')
      - raises ValueError for anything else
    """
    if isinstance(d, datetime):
        return d.date()
    if isinstance(d, date):
        return d
    if isinstance(d, str):
        try:
            return datetime.fromisoformat(d).date()
        except ValueError:
            try:
                return date.fromisoformat(d.split("T", 1)[0])
            except ValueError:
                raise ValueError(f"Invalid date string: {d!r}")
    raise ValueError(f"Invalid date type: {type(d)}")


def bar_position(start: Any, end: Any, year: int) -> Optional[Dict[str, float]]:
    """Return {'left': pct, 'width': pct} for a bar from `start` to `end` in `year`.

    The range is clipped to Jan 1 -> Dec 31 first. Returns None when it does
    not overlap the year at all.
    """
    start_d = ensure_date(start)
    end_d = ensure_date(end)
    year_start = date(year, 1, 1)
    year_end = date(year, 12, 31)

    if end_d < year_start or start_d > year_end or end_d < start_d:
        return None
    start_d = max(start_d, year_start)
    end_d = min(end_d, year_end)

    total_days = (year_end - year_start).days
    left = (start_d - year_start).days / total_days * 100
    width = (end_d - start_d).days / total_days * 100
    return {"left": round(left, 3), "width": round(width, 3)}


def optional_bar(start: Optional[Any], end: Optional[Any], year: int) -> Optional[Dict[str, float]]:
    # tasks without both dates are not drawn
    if not start or not end:
        return None
    return bar_position(start, end, year)


def month_labels(first: date, count: int = 12) -> List[str]:
    """Short month names for `count` consecutive months starting at `first`."""
    labels = []
    for i in range(count):
        month_index = first.month - 1 + i
        month = date(first.year + month_index // 12, month_index % 12 + 1, 1)
        labels.append(month.strftime("%b"))
    return labels
