# tests/test_instaffo.py
import json

import pytest

from modules.job_scrape.lib import retry
from modules.job_scrape.lib.errors import ContentNotFoundError, ParseError
from modules.job_scrape.lib.models import CursorState, Query
from modules.job_scrape.lib.scrapers import instaffo

URL = f"{instaffo.API_BASE}/job_suggestions"


def _reply(ids, pit="pit-1", after=None):
    meta = {"perPage": len(ids), "totalPages": 2, "totalResults": 4}
    if pit is not None:
        meta["pitId"] = pit
    if after is not None:
        meta["searchAfter"] = after
    return {
        "jobSuggestions": [
            {"score": 0.9, "job": {"id": i, "title": f"Job {i}", "company": {"name": "Acme"}, "locations": [{"city": "Berlin"}]}}
            for i in ids
        ],
        "meta": meta,
    }


@pytest.fixture
def adapter(fake_client):
    return instaffo.InstaffoAdapter(fake_client, {"session_cookie": "s3cr3t/=", "filters": {"remote": True}})


def test_first_body_has_no_cursor_and_merges_filters(adapter):
    body = adapter.build_body(CursorState())
    assert body == {"filters": {"jobStatus": "open", "remote": True}}

    body = adapter.build_body(CursorState(pit_id="p", search_after=("1", "2")))
    assert body["pitId"] == "p"
    assert body["searchAfter"] == ["1", "2"]


def test_cookie_header_is_url_encoded(adapter):
    assert adapter._headers["Cookie"] == "_instaffo_session=s3cr3t%2F%3D"


def test_cookie_falls_back_to_env(fake_client, monkeypatch):
    monkeypatch.setenv("INSTAFFO_SESSION", "from-env")
    a = instaffo.InstaffoAdapter(fake_client)
    assert a._headers["Cookie"] == "_instaffo_session=from-env"


def test_parse_suggestions_advances_cursor(adapter):
    page = adapter.parse_suggestions(_reply([1, 2], after=[0.5, "2"]), CursorState())

    assert [i.identity for i in page.items] == ["1", "2"]
    assert page.items[0].location == "Berlin"
    assert page.items[0].company == "Acme"
    assert page.next_state == CursorState(pit_id="pit-1", search_after=("0.5", "2"))
    assert page.total_count == 4


@pytest.mark.parametrize(
    "reply",
    [
        _reply([], after=["1"]),  # empty page
        _reply([1], pit=None, after=["1"]),  # no pit id
        _reply([1], after=None),  # no searchAfter
    ],
)
def test_exhaustion_signals(adapter, reply):
    assert adapter.parse_suggestions(reply, CursorState()).next_state is None


def test_cursor_without_progress_is_exhausted(adapter):
    state = CursorState(pit_id="pit-1", search_after=("9",))
    page = adapter.parse_suggestions(_reply([3], after=["9"]), state)
    assert page.next_state is None


def test_identity_falls_back_to_title_and_company(adapter):
    reply = {"jobSuggestions": [{"title": "Rust  Dev", "company": "Acme"}], "meta": {}}
    page = adapter.parse_suggestions(reply, CursorState())
    assert page.items[0].identity == "rustdev|acme"
    assert page.items[0].detail_link == ""


def test_malformed_envelope_is_parse_error(adapter):
    with pytest.raises(ParseError):
        adapter.parse_suggestions({"jobs": []}, CursorState())


def test_wrongly_typed_suggestion_is_parse_error(adapter):
    bad = {"jobSuggestions": [{"job": {"id": 7, "title": 123}}], "meta": {"pitId": "p", "searchAfter": ["a"]}}
    with pytest.raises(ParseError) as ei:
        adapter.parse_suggestions(bad, CursorState())
    assert "123" in ei.value.body


def test_full_sequence_over_fake_client(adapter, fake_client, no_sleep):
    fake_client.add(
        "POST",
        URL,
        _reply([1, 2], after=["a"]),
        _reply([3, 4], pit="pit-2", after=["b"]),
        _reply([], pit="pit-2", after=["b"]),
    )
    q = Query(term="*")
    items = list(retry.paginate(adapter, q, adapter.initial_state(q), sleep=no_sleep))

    assert [i.identity for i in items] == ["1", "2", "3", "4"]
    payloads = [kw["payload"] for (_, _, kw) in fake_client.calls]
    assert "pitId" not in payloads[0]
    assert payloads[1]["pitId"] == "pit-1" and payloads[1]["searchAfter"] == ["a"]
    assert payloads[2]["pitId"] == "pit-2"
    # polls are separated by the idle delay
    assert [c.args[0] for c in no_sleep.call_args_list] == [1.0, 1.0]


def test_parse_detail_joins_sections(adapter):
    item = adapter.parse_suggestions(_reply([7], after=["x"]), CursorState()).items[0]
    body = json.dumps({"job": {"title": "Job 7", "description": "We build.", "tasks": ["Ship", "Review"], "requirements": None}})
    detail = adapter.parse_detail(item, body)

    assert detail.content == "We build.\n\nShip\nReview"
    assert detail.title == "Job 7"


def test_parse_detail_without_text_is_content_not_found(adapter):
    item = adapter.parse_suggestions(_reply([7], after=["x"]), CursorState()).items[0]
    with pytest.raises(ContentNotFoundError):
        adapter.parse_detail(item, json.dumps({"job": {"title": "Job 7"}}))


def test_parse_detail_rejects_non_json(adapter):
    item = adapter.parse_suggestions(_reply([7], after=["x"]), CursorState()).items[0]
    with pytest.raises(ParseError):
        adapter.parse_detail(item, "<html>login</html>")


def test_adapter_is_not_query_scoped():
    assert instaffo.InstaffoAdapter.query_scoped is False
    assert instaffo.InstaffoAdapter.partitioned is False
