from __future__ import annotations

import contextlib
import json
import os
import sqlite3
import threading
from collections.abc import Sequence
from typing import Protocol

from .errors import SinkError
from .logging_bridge import error as log_error
from .models import InsertSummary, NormalizedRecord
from .utils import now_iso


class Sink(Protocol):
    """Durable storage boundary. Duplicate keys are ignored, never fatal."""

    def save_batch(self, records: Sequence[NormalizedRecord]) -> InsertSummary: ...


# =============================================================================
# SQLite
# =============================================================================
class SqliteSink:
    """
    One `jobs` table keyed by content_hash (sha256 of source + identity).
    INSERT OR IGNORE makes repeated runs idempotent; `ignored` counts rows
    that were already stored.
    """

    def __init__(self, sqlite_path: str) -> None:
        if not (sqlite_path or "").strip():
            raise SinkError("sqlite_path cannot be empty")
        self.sqlite_path = sqlite_path
        self._initialized = False

    def init_db(self) -> None:
        """Ensure the database file and schema exist. Safe to call multiple times."""
        _ensure_dir(self.sqlite_path)
        with contextlib.closing(_connect(self.sqlite_path)) as conn:
            _apply_pragmas(conn)
            _ensure_schema(conn)
        self._initialized = True

    def save_batch(self, records: Sequence[NormalizedRecord]) -> InsertSummary:
        summary = InsertSummary()
        if not records:
            return summary
        ts = now_iso()
        try:
            if not self._initialized:
                self.init_db()
            with contextlib.closing(_connect(self.sqlite_path)) as conn:
                _apply_pragmas(conn)
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
                try:
                    for r in records:
                        cur.execute(
                            """
                            INSERT OR IGNORE INTO jobs (
                              content_hash, source, identity, title, company, location, link,
                              posting_date, detail_content, details_json, extra_json, first_seen_utc
                            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                            """,
                            _row(r, ts),
                        )
                        if cur.rowcount == 1:
                            summary.inserted += 1
                        else:
                            summary.ignored += 1
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            log_error({
                "component": "job_scrape.sink",
                "op": "save_batch",
                "sqlite_path": self.sqlite_path,
                "batch_size": len(records),
                "error": repr(e),
            })
            raise SinkError(f"sqlite write failed: {e}") from e
        return summary

    # ---- helpers for tests & diagnostics ----------------------------------

    def count_rows(self) -> int:
        """Return total rows in the jobs table; 0 if the DB is missing."""
        if not os.path.exists(self.sqlite_path):
            return 0
        with contextlib.closing(_connect(self.sqlite_path)) as conn:
            _apply_pragmas(conn)
            _ensure_schema(conn)
            (n,) = conn.execute("SELECT COUNT(*) FROM jobs").fetchone()
        return int(n or 0)

    def reset_db(self) -> None:
        """Remove the DB file entirely. Safe if it doesn't exist."""
        for suffix in ("", "-wal", "-shm"):
            with contextlib.suppress(FileNotFoundError):
                os.remove(self.sqlite_path + suffix)
        self._initialized = False


def _row(r: NormalizedRecord, ts: str) -> tuple:
    d = r.to_dict()
    return (
        r.content_hash,
        r.source,
        r.identity,
        r.title,
        r.company,
        r.location,
        r.link,
        d["posting_date"],
        r.detail_content,
        json.dumps(d["details"], ensure_ascii=False) if d["details"] is not None else None,
        json.dumps(d["extra"], ensure_ascii=False, default=str),
        ts,
    )


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # Autocommit mode; transactions are managed explicitly.
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs (
          content_hash   TEXT PRIMARY KEY,
          source         TEXT NOT NULL,
          identity       TEXT NOT NULL,
          title          TEXT,
          company        TEXT,
          location       TEXT,
          link           TEXT NOT NULL,
          posting_date   TEXT,
          detail_content TEXT,
          details_json   TEXT,
          extra_json     TEXT,
          first_seen_utc TEXT NOT NULL
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS ix_jobs_source ON jobs (source);")


# =============================================================================
# Newline-delimited JSON
# =============================================================================
class JsonlSink:
    """
    Appends one complete JSON object per line. Every line is valid on its own,
    so a crash mid-run leaves a readable file. No cross-run dedup: `ignored`
    is always 0.
    """

    def __init__(self, output_path: str) -> None:
        if not (output_path or "").strip():
            raise SinkError("output_path cannot be empty")
        self.output_path = output_path
        self._lock = threading.Lock()

    def save_batch(self, records: Sequence[NormalizedRecord]) -> InsertSummary:
        if not records:
            return InsertSummary()
        try:
            # Serialize first so a bad record never leaves a partial batch behind.
            data = "".join(
                json.dumps(r.to_dict(), ensure_ascii=False, separators=(",", ":"), default=str) + "\n"
                for r in records
            )
            _ensure_dir(self.output_path)
            with self._lock, open(self.output_path, "a", encoding="utf-8") as f:
                f.write(data)
        except (OSError, TypeError, ValueError) as e:
            log_error({
                "component": "job_scrape.sink",
                "op": "save_batch",
                "output_path": self.output_path,
                "batch_size": len(records),
                "error": repr(e),
            })
            raise SinkError(f"jsonl write failed: {e}") from e
        return InsertSummary(inserted=len(records), ignored=0)
