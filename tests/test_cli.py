# tests/test_cli.py
import argparse
import json
from unittest import mock

import pytest

from service import cli


def test_parse_kv_pairs_decodes_json_values():
    out = cli._parse_kv_pairs(["batch_size=100", "extract_details=true", "sqlite_path=/tmp/x.db", 'sites=["xing"]'])
    assert out == {"batch_size": 100, "extract_details": True, "sqlite_path": "/tmp/x.db", "sites": ["xing"]}


def test_parse_kv_pairs_rejects_missing_equals():
    with pytest.raises(argparse.ArgumentTypeError):
        cli._parse_kv_pairs(["oops"])


def test_scrape_forwards_flags_and_prints_summary(capsys, activity_records):
    with mock.patch("modules.job_scrape.main.run", return_value={"inserted": 3}) as run:
        rc = cli.main([
            "scrape",
            "--site", "xing",
            "--query", "Rust",
            "--query", "Go",
            "--location", "Berlin",
            "--sink", "jsonl",
            "--kwargs", "batch_size=50",
        ])

    assert rc == 0
    run.assert_called_once_with(
        batch_size=50, sites=["xing"], queries=["Rust", "Go"], locations=["Berlin"], sink="jsonl"
    )
    assert json.loads(capsys.readouterr().out) == {"inserted": 3}
    assert [r["event"] for r in activity_records()] == ["cli_scrape"]


def test_scrape_failure_returns_nonzero(capsys, error_records):
    with mock.patch("modules.job_scrape.main.run", side_effect=ValueError("bad batch_size")):
        rc = cli.main(["scrape", "--kwargs", "batch_size=0"])

    assert rc == 1
    assert "FAILURE" in capsys.readouterr().err
    assert error_records()[0]["where"] == "cli.scrape"


def test_sources_lists_builtin_adapters(capsys):
    assert cli.main(["sources"]) == 0
    out = capsys.readouterr().out
    for tag in ("xing", "linkedin", "instaffo"):
        assert tag in out
    assert "cursor, one sequence per run" in out
