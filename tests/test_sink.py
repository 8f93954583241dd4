# tests/test_sink.py
import json
import sqlite3
from datetime import datetime, timezone

import pytest

from modules.job_scrape.lib.errors import SinkError
from modules.job_scrape.lib.models import NormalizedRecord, StructuredDetails
from modules.job_scrape.lib.sink import JsonlSink, SqliteSink


def _rec(source, identity, **kw):
    base = {
        "title": f"Job {identity}",
        "company": "Acme",
        "location": "Berlin",
        "link": f"https://example.com/{source}/{identity}",
    }
    base.update(kw)
    return NormalizedRecord(source=source, identity=str(identity), **base)


# ----------------------------------------------------------------------
# SQLite
# ----------------------------------------------------------------------
def test_sqlite_insert_then_ignore_duplicates(tmp_path):
    sink = SqliteSink(str(tmp_path / "state" / "jobs.db"))

    first = sink.save_batch([_rec("xing", 1), _rec("xing", 2), _rec("linkedin", 1)])
    assert (first.inserted, first.ignored) == (3, 0)

    second = sink.save_batch([_rec("xing", 2, title="changed"), _rec("xing", 3)])
    assert (second.inserted, second.ignored) == (1, 1)
    assert sink.count_rows() == 4


def test_sqlite_round_trips_optional_fields(tmp_path):
    path = tmp_path / "jobs.db"
    sink = SqliteSink(str(path))
    rec = _rec(
        "xing",
        7,
        posting_date=datetime(2024, 5, 1, 10, tzinfo=timezone.utc),
        detail_content="full text",
        details=StructuredDetails(technologies=["Python"], salary_forecast=(60000, 80000)),
        extra={"kununu": {"rating_average": 4.2}},
    )
    sink.save_batch([rec])

    with sqlite3.connect(path) as conn:
        row = conn.execute(
            "SELECT content_hash, posting_date, detail_content, details_json, extra_json FROM jobs"
        ).fetchone()
    assert row[0] == rec.content_hash
    assert row[1] == "2024-05-01T10:00:00+00:00"
    assert row[2] == "full text"
    assert json.loads(row[3])["salary_forecast"] == [60000, 80000]
    assert json.loads(row[4])["kununu"]["rating_average"] == 4.2


def test_sqlite_reset_and_count_on_missing_db(tmp_path):
    sink = SqliteSink(str(tmp_path / "jobs.db"))
    assert sink.count_rows() == 0
    sink.save_batch([_rec("xing", 1)])
    sink.reset_db()
    assert sink.count_rows() == 0
    assert sink.save_batch([_rec("xing", 1)]).inserted == 1


def test_sqlite_write_failure_is_sink_error(tmp_path, error_records):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    sink = SqliteSink(str(blocker / "jobs.db"))

    with pytest.raises(SinkError):
        sink.save_batch([_rec("xing", 1)])
    assert [r["op"] for r in error_records()] == ["save_batch"]


def test_content_hash_is_source_scoped():
    assert _rec("xing", 1).content_hash != _rec("linkedin", 1).content_hash
    assert _rec("xing", 1).content_hash == _rec("XING", 1, title="other").content_hash


# ----------------------------------------------------------------------
# JSONL
# ----------------------------------------------------------------------
def test_jsonl_every_line_is_a_complete_object(tmp_path):
    path = tmp_path / "out" / "jobs.jsonl"
    sink = JsonlSink(str(path))
    sink.save_batch([_rec("xing", 1), _rec("xing", 2, detail_content="text")])
    res = sink.save_batch([_rec("linkedin", 3, posting_date=datetime(2024, 1, 2, tzinfo=timezone.utc))])

    assert (res.inserted, res.ignored) == (1, 0)
    lines = path.read_text(encoding="utf-8").splitlines()
    objs = [json.loads(line) for line in lines]
    assert [o["identity"] for o in objs] == ["1", "2", "3"]
    assert objs[1]["detail_content"] == "text"
    assert objs[2]["posting_date"] == "2024-01-02T00:00:00+00:00"
    assert all("content_hash" in o for o in objs)


def test_jsonl_empty_batch_writes_nothing(tmp_path):
    path = tmp_path / "jobs.jsonl"
    assert JsonlSink(str(path)).save_batch([]).inserted == 0
    assert not path.exists()


def test_empty_paths_rejected():
    with pytest.raises(SinkError):
        JsonlSink("")
    with pytest.raises(SinkError):
        SqliteSink(" ")
