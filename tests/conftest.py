# tests/conftest.py
import json
import os
import tempfile
from collections import defaultdict
from unittest import mock

import pytest
from freezegun import freeze_time

from modules.job_scrape.lib import config as js_config
from modules.job_scrape.lib.errors import ContentNotFoundError, NonSuccessStatus, RateLimitedError
from modules.job_scrape.lib.models import Detail, OffsetState, Page, Query, RawListing
from modules.job_scrape.lib.scrapers.base import SiteAdapter
from service import logging_utils


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="js-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("ACTIVITY_LOG_MAX_BYTES", raising=False)
    monkeypatch.delenv("INSTAFFO_SESSION", raising=False)
    monkeypatch.delenv("LLM_MD_ENABLE", raising=False)
    yield


@pytest.fixture
def activity_records():
    """Callable returning the structured activity records written so far."""
    return lambda: logging_utils.read_records(logging_utils.get_activity_log_path())


@pytest.fixture
def error_records():
    return lambda: logging_utils.read_records(logging_utils.get_error_log_path())


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


@pytest.fixture
def no_sleep():
    """Sleep stand-in that records requested intervals."""
    return mock.Mock(return_value=None)


# ---------------------------------------------------------------------
# Fake HTTP client: routes (method, url) to queued responses or exceptions
# ---------------------------------------------------------------------
class FakeClient:
    def __init__(self):
        self.routes = defaultdict(list)
        self.calls = []

    def add(self, method, url, *responses):
        self.routes[(method, url)].extend(responses)

    def _next(self, method, url, **kw):
        self.calls.append((method, url, kw))
        queue = self.routes.get((method, url))
        if not queue:
            raise NonSuccessStatus(404, url=url, body="no route")
        resp = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(resp, Exception):
            raise resp
        return resp

    def get_text(self, url, *, params=None, headers=None, **kw):
        return self._next("GET", url, params=params, headers=headers)

    def get_json(self, url, *, params=None, headers=None, **kw):
        return self._next("GET", url, params=params, headers=headers)

    def post_json(self, url, payload, *, headers=None, **kw):
        return self._next("POST", url, payload=payload, headers=headers)

    def close(self):
        pass


@pytest.fixture
def fake_client():
    return FakeClient()


# ---------------------------------------------------------------------
# In-memory offset adapter with a scripted result set
# ---------------------------------------------------------------------
def make_listing(source, identity, **kw):
    return RawListing(source=source, identity=str(identity), detail_link=f"https://example.com/{source}/{identity}", **kw)


class ScriptedAdapter(SiteAdapter):
    """
    Serves `total` numbered listings in pages of `page_size`.
    `failures` maps page_number -> list of exceptions raised (in order) before serving.
    `detail_failures` maps identity -> exception raised by fetch_detail.
    """

    source = "scripted"
    partitioned = True
    page_size = 10
    hard_cap = 1000

    def __init__(self, client=None, params=None, *, total=0, failures=None, detail_failures=None, missing=()):
        super().__init__(client, params)
        self.total = total
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.detail_failures = dict(detail_failures or {})
        self.missing = set(missing)
        self.page_calls = []
        self.detail_calls = []

    @property
    def max_page(self):
        return -(-self.total // self.page_size)

    def initial_state(self, query):
        return OffsetState(page_index=0, page_size=self.page_size)

    def fetch_page(self, query, state):
        self.page_calls.append(state.page_number)
        pending = self.failures.get(state.page_number)
        if pending:
            raise pending.pop(0)
        start = state.offset
        stop = min(start + self.page_size, self.total)
        items = [make_listing(self.source, i, title=f"Job {i}", company="Acme") for i in range(start, stop)]
        nxt = state.next() if items and state.page_number < self.max_page else None
        return Page(items=items, next_state=nxt, total_count=self.total, max_page=self.max_page)

    def fetch_detail(self, item):
        self.detail_calls.append(item.identity)
        if item.identity in self.detail_failures:
            raise self.detail_failures[item.identity]
        return f"<p>detail {item.identity}</p>"

    def parse_detail(self, item, body):
        if item.identity in self.missing:
            raise ContentNotFoundError("description", url=item.detail_link)
        return Detail(content=f"detail {item.identity}")


@pytest.fixture
def scripted_adapter():
    return ScriptedAdapter


@pytest.fixture
def listing():
    return make_listing


@pytest.fixture
def rate_limited():
    return lambda: RateLimitedError(url="https://example.com/x")


@pytest.fixture
def query():
    return Query(term="Python")


@pytest.fixture
def fresh_settings(tmp_path):
    """A brand-new Settings per test writing to a per-test SQLite file."""
    return js_config.Settings.from_env_and_kwargs({
        "sites": ["scripted"],
        "queries": ["Python"],
        "sqlite_path": str(tmp_path / "jobs.db"),
        "output_path": str(tmp_path / "jobs.jsonl"),
        "rate_limit_sleep": 0,
        "max_concurrency": 4,
        "batch_size": 7,
    })


@pytest.fixture
def queries_file(tmp_path):
    p = tmp_path / "queries.json"
    p.write_text(json.dumps({"queries": ["Rust", "Go"], "locations": ["Berlin"]}), encoding="utf-8")
    return p
