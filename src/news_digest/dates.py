"""Timestamp parsing shared by the prompt builders, formatter and normalizer."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

_OFFSET_NO_COLON = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """
    Parse ISO-8601/RFC3339 (with ``Z`` or ``+0000`` offsets), date-only and
    RFC 2822 strings. Naive values are taken as UTC. Returns None when unparsable.
    """
    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, str):
        txt = raw.strip()
        if not txt:
            return None
        # fromisoformat rejects a trailing "Z" and "+0000" style offsets on older interpreters.
        if txt.endswith(("Z", "z")):
            txt = f"{txt[:-1]}+00:00"
        else:
            txt = _OFFSET_NO_COLON.sub(r"\1:\2", txt)
        try:
            parsed = datetime.fromisoformat(txt)
        except ValueError:
            try:
                parsed = parsedate_to_datetime(raw.strip())
            except (TypeError, ValueError, IndexError, OverflowError):
                return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # Offset pushes the instant outside year 1..9999.
        return None


def short_date(raw: Any) -> Optional[str]:
    """YYYY-MM-DD (UTC) for a parsable timestamp, else None."""
    parsed = parse_timestamp(raw)
    if parsed is None:
        return None
    return parsed.strftime("%Y-%m-%d")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision and ``Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
