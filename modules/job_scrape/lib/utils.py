from __future__ import annotations

import os
import re
from datetime import datetime, timedelta, timezone
from typing import Any


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def getenv_str(name: str, default: str | None = None) -> str | None:
    """
    Typed wrapper for environment access.
    """
    val = os.getenv(name)
    return val if val is not None else default


def clean_text(s: str | None) -> str | None:
    """Collapse whitespace; empty strings become None."""
    if s is None:
        return None
    out = re.sub(r"\s+", " ", s).strip()
    return out or None


# -----------------------------------------------------------------------------
# Relative posting ages ("3 days ago", "1 week ago")
# -----------------------------------------------------------------------------
_AGE_UNITS: dict[str, timedelta] = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def parse_relative_age(age: str | None, *, now: datetime | None = None) -> datetime | None:
    """
    Convert '<N> <unit>(s) ago' into an absolute UTC timestamp.
    Returns None for anything unparseable (unknown unit, missing amount).
    """
    if not age:
        return None
    parts = age.strip().split()
    if len(parts) < 2:
        return None
    try:
        amount = int(parts[0])
    except ValueError:
        return None
    unit = parts[1].lower()
    if unit.endswith("s"):
        unit = unit[:-1]
    step = _AGE_UNITS.get(unit)
    if step is None:
        return None
    base = now or datetime.now(timezone.utc)
    return base - step * amount


# -----------------------------------------------------------------------------
# Diagnostics
# -----------------------------------------------------------------------------
def _slug(s: str) -> str:
    s = re.sub(r"[^0-9a-zA-Z]+", "_", s.lower())
    return re.sub(r"_{2,}", "_", s).strip("_")


def dump_malformed(dump_dir: str, source: str, body: str, *, label: str = "") -> str:
    """Write a malformed response body to `dump_dir` and return the file path."""
    os.makedirs(dump_dir, exist_ok=True)
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    name = "-".join(p for p in (_slug(source), _slug(label), ts) if p)
    path = os.path.join(dump_dir, f"{name}.txt")
    with open(path, "w", encoding="utf-8") as f:
        f.write(body or "")
    return path
