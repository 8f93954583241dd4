# service/logging_utils.py
from __future__ import annotations

import contextlib
import datetime as _dt
import json
import os
import socket
import threading
from collections.abc import Iterable
from typing import Any

# ---- Configuration (env-driven, read per write so tests can repoint LOG_DIR) --


def _log_dir() -> str:
    # Base directory for logs (mounted volume recommended, e.g., ./local/logs)
    return os.getenv("LOG_DIR", "/app/local/logs")


def _activity_prefix() -> str:
    return os.getenv("ACTIVITY_LOG_PREFIX", "activity")


def _error_prefix() -> str:
    return os.getenv("ERROR_LOG_PREFIX", "error")


def _max_bytes() -> int:
    # Size-based rotation (bytes); <= 0 disables it. Date rotation is always on.
    try:
        return int(os.getenv("ACTIVITY_LOG_MAX_BYTES", "0") or 0)
    except ValueError:
        return 0


# A minimal set of keys/substrings to redact (case-insensitive, substring match)
_DEFAULT_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "cookie",
    "set-cookie",
}

# Host + process metadata (fixed per-process)
_HOSTNAME = socket.gethostname()
_PID = os.getpid()

# Serializes rotation checks between scraper threads of one process.
_ROTATE_LOCK = threading.Lock()


# ---- Public API --------------------------------------------------------------


def write_activity_log(record: dict[str, Any]) -> None:
    """
    Persist a single structured activity record (JSON-safe).

    May raise on unrecoverable I/O/serialization errors.
    Never mutates the passed-in dict.
    """
    _write_jsonl(_log_path_for_today(_activity_prefix()), record)


def write_error_log(record: dict[str, Any]) -> None:
    """Persist a single structured error record (JSON-safe), parallel to activity log."""
    _write_jsonl(_log_path_for_today(_error_prefix()), record)


def get_activity_log_path() -> str:
    """Return the current day's activity log path."""
    return _log_path_for_today(_activity_prefix())


def get_error_log_path() -> str:
    return _log_path_for_today(_error_prefix())


def read_records(path: str) -> list[dict[str, Any]]:
    """Load every record of a JSONL log file; [] if it does not exist."""
    if not os.path.exists(path):
        return []
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def redact(record: dict[str, Any], keys: set[str] | None = None) -> dict[str, Any]:
    """
    Produce a redacted deep copy of `record` by scrubbing values whose KEYS
    contain any of the substrings in `keys` (case-insensitive). Does not mutate input.
    """
    return _redact_deep(record, keys or _DEFAULT_REDACT_KEYS)


# ---- Internal helpers --------------------------------------------------------


def _log_path_for_today(prefix: str) -> str:
    today = _dt.date.today().isoformat()  # YYYY-MM-DD
    return os.path.join(_log_dir(), f"{prefix}-{today}.jsonl")


def _ensure_dir(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)


def _rotate_file_if_needed(path: str) -> None:
    """Rename the current file aside once it exceeds ACTIVITY_LOG_MAX_BYTES."""
    limit = _max_bytes()
    if limit <= 0:
        return
    with _ROTATE_LOCK:
        try:
            if os.path.getsize(path) < limit:
                return
        except FileNotFoundError:
            return
        ts = _dt.datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        with contextlib.suppress(FileNotFoundError):
            os.replace(path, f"{path}.{ts}")


def _json_dumps(obj: Any) -> str:
    # Compact, UTF-8; non-JSON values (datetimes, tuples' members) fall back to str()
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str)


def _safe_bearer_scrub(value: str) -> str:
    """Scrub the token part of strings that look like "Bearer <token>"."""
    if "bearer " in value.lower():
        try:
            scheme, _ = value.split(" ", 1)
        except ValueError:
            return "***REDACTED***"
        return f"{scheme} ***REDACTED***"
    return value


def _key_matches(name: str, patterns: Iterable[str]) -> bool:
    n = name.lower()
    return any(pat in n for pat in patterns)


def _redact_deep(value: Any, patterns: Iterable[str]) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if isinstance(k, str) and _key_matches(k, patterns):
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact_deep(v, patterns)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_deep(v, patterns) for v in value]
    if isinstance(value, str):
        return _safe_bearer_scrub(value)
    return value


def _with_metadata(record: dict[str, Any]) -> dict[str, Any]:
    """Add timestamp and host/pid/thread metadata without mutating `record`."""
    meta = record.get("_meta", {})
    if not isinstance(meta, dict):
        meta = {}
    meta = {
        **meta,
        "host": _HOSTNAME,
        "pid": _PID,
        "thread": threading.current_thread().name,
    }
    out = dict(record)
    out.setdefault("ts", _dt.datetime.now(_dt.timezone.utc).isoformat().replace("+00:00", "Z"))
    out["_meta"] = meta
    return out


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    """
    Core writer:
      - makes a deep redacted copy
      - enriches with ts/host/pid/thread
      - rotates by size (optional)
      - appends a single line atomically (POSIX O_APPEND)
      - retries once on transient OSError
    """
    _ensure_dir(path)
    _rotate_file_if_needed(path)

    payload = _with_metadata(_redact_deep(record, _DEFAULT_REDACT_KEYS))
    # Serialize first so any serialization errors happen before file ops.
    data = (_json_dumps(payload) + "\n").encode("utf-8")

    flags = os.O_CREAT | os.O_APPEND | os.O_WRONLY

    def _append_once() -> None:
        fd = os.open(path, flags, 0o644)
        try:
            os.write(fd, data)  # Single write; O_APPEND keeps lines whole on POSIX.
        finally:
            os.close(fd)

    try:
        _append_once()
    except OSError:
        _ensure_dir(path)
        _append_once()
