"""Small shared helpers for the aggregators: timestamps and guarded rates."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

HOT_LEAD_STATUS = "Hot Lead"
OUTBOUND = "outbound"
INBOUND = "inbound"

DAY_SECONDS = 86400


def parse_iso(s: Any) -> Optional[datetime]:
    """Parse a Supabase timestamp into an aware UTC datetime, or None."""
    if not s:
        return None
    try:
        if isinstance(s, datetime):
            return s if s.tzinfo else s.replace(tzinfo=timezone.utc)
        s = str(s).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None


def in_range(value: Any, start: datetime, end: datetime) -> bool:
    dt = parse_iso(value)
    return dt is not None and start <= dt <= end


def pct(numerator: float, denominator: float, digits: int = 1) -> float:
    """numerator / denominator as a percentage; 0 when the denominator is 0."""
    if not denominator:
        return 0
    return round(numerator / denominator * 100, digits)


def to_float(value: Any) -> float:
    """Coerce a numeric/text column to float; junk and NULL count as 0."""
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def group_by(rows: Iterable[dict], key: str) -> dict[Any, list[dict]]:
    grouped: dict[Any, list[dict]] = {}
    for r in rows:
        grouped.setdefault(r.get(key), []).append(r)
    return grouped
