# tests/test_utils.py
from datetime import datetime, timedelta, timezone

import pytest

from modules.job_scrape.lib import utils

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "age,delta",
    [
        ("1 minute ago", timedelta(minutes=1)),
        ("45 minutes ago", timedelta(minutes=45)),
        ("1 hour ago", timedelta(hours=1)),
        ("3 hours ago", timedelta(hours=3)),
        ("1 day ago", timedelta(days=1)),
        ("6 days ago", timedelta(days=6)),
        ("1 week ago", timedelta(weeks=1)),
        ("3 weeks ago", timedelta(weeks=3)),
        ("1 month ago", timedelta(days=30)),
        ("2 months ago", timedelta(days=60)),
        ("1 year ago", timedelta(days=365)),
    ],
)
def test_parse_relative_age_singular_and_plural(age, delta):
    assert utils.parse_relative_age(age, now=NOW) == NOW - delta


@pytest.mark.parametrize("age", [None, "", "yesterday", "a week ago", "3 fortnights ago", "12"])
def test_parse_relative_age_unparseable_is_none(age):
    assert utils.parse_relative_age(age, now=NOW) is None


def test_parse_relative_age_defaults_to_now(frozen_utc):
    assert utils.parse_relative_age("2 days ago") == NOW - timedelta(days=2)


@pytest.mark.parametrize("v,expected", [(True, True), ("yes", True), ("0", False), (None, False), (1, True), ("off", False)])
def test_truthy(v, expected):
    assert utils.truthy(v) is expected


def test_clean_text():
    assert utils.clean_text("  a \n\t b  ") == "a b"
    assert utils.clean_text("   ") is None
    assert utils.clean_text(None) is None


def test_dump_malformed_writes_side_file(tmp_path):
    path = utils.dump_malformed(str(tmp_path / "dumps"), "xing", "{broken", label="Java EE")
    assert path.startswith(str(tmp_path / "dumps"))
    assert "xing-java_ee-" in path
    with open(path, encoding="utf-8") as f:
        assert f.read() == "{broken"
