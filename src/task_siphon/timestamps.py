"""Timestamp normalization shared by the query and sync pipelines."""

import math
from datetime import datetime, timezone

# Numbers above this are already milliseconds since the epoch
MILLISECONDS_THRESHOLD = 1_000_000_000_000

# 9999-12-31T23:59:59.999Z; anything later cannot be formatted
MAX_TIMESTAMP_MS = 253_402_300_799_999


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number_to_ms(value: float) -> int:
    if not math.isfinite(value):
        return 0
    ms = value if value > MILLISECONDS_THRESHOLD else value * 1000
    if ms > MAX_TIMESTAMP_MS:
        return 0
    return int(ms)


def _parse_iso(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_timestamp_ms(value: object) -> int:
    """Convert a loosely typed timestamp into milliseconds since the epoch.

    Numbers above 10^12 are taken as milliseconds, smaller numbers as
    seconds. Numeric strings follow the number rule; other strings are
    parsed as ISO 8601 (naive values are UTC). Anything else, including
    values past year 9999, gives 0.
    """
    if _is_number(value):
        return max(0, _number_to_ms(float(value)))

    if isinstance(value, str):
        try:
            return max(0, _number_to_ms(float(value)))
        except ValueError:
            pass
        dt = _parse_iso(value)
        if dt is not None:
            return max(0, int(dt.timestamp() * 1000))

    return 0


def ms_to_iso(ms: int) -> str:
    """Format milliseconds as UTC ISO 8601, e.g. 2023-11-14T22:13:20.000Z.

    Raises:
        ValueError: If ms is outside the range datetime can represent
    """
    if not 0 <= ms <= MAX_TIMESTAMP_MS:
        raise ValueError(f"Timestamp out of range: {ms}")
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def unix_to_iso(seconds: int) -> str | None:
    """Format epoch seconds, or None when unset or unrepresentable."""
    if not 0 < seconds * 1000 <= MAX_TIMESTAMP_MS:
        return None
    return ms_to_iso(seconds * 1000)


def utc_now_iso() -> str:
    return ms_to_iso(int(datetime.now(timezone.utc).timestamp() * 1000))
