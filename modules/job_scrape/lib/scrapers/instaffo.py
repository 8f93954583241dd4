# modules/job_scrape/lib/scrapers/instaffo.py
"""
Instaffo job suggestions (keyset pagination, authenticated by session cookie).

    POST https://app.instaffo.com/candidate/api/v1/job_suggestions
      {"filters": {"jobStatus": "open", ...}, "searchAfter": [a, b]?, "pitId": "..."?}
    -> {"jobSuggestions": [...], "meta": {pitId, searchAfter, perPage, totalPages, totalResults}}

The first request omits pitId/searchAfter. The sequence is exhausted on an
empty page, a reply without a next cursor, or a cursor identical to the one
just sent (no progress). Suggestions are per candidate, not per search term,
so the engine runs a single sequence per run.

Params (all optional):
  session_cookie: str  (default: $INSTAFFO_SESSION)
  filters: dict        merged over {"jobStatus": "open"}, e.g. {"remote": true}
  page_delay: float    (default 1.0) idle sleep between polls
  max_pages: int       (default 200)
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

from ..errors import ContentNotFoundError, ParseError
from ..models import CursorState, Detail, Page, PaginationState, Query, RawListing, composite_identity
from ..utils import clean_text, getenv_str
from .base import SiteAdapter
from .registry import register

log = logging.getLogger(__name__)

API_BASE = "https://app.instaffo.com/candidate/api/v1"
SESSION_COOKIE = "_instaffo_session"


def combine_cookies(pairs: dict[str, str]) -> str:
    return ";".join(f"{k}={quote(v, safe='')}" for k, v in pairs.items())


def _text_of(value: Any) -> str | None:
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, list):
        parts = [clean_text(str(v)) for v in value if v]
        return "\n".join(p for p in parts if p) or None
    return None


@register
class InstaffoAdapter(SiteAdapter):
    source = "instaffo"
    query_scoped = False
    page_delay = 1.0
    max_pages = 200

    def __init__(self, client, params=None) -> None:
        super().__init__(client, params)
        cookie = str(self.params.get("session_cookie") or getenv_str("INSTAFFO_SESSION") or "").strip()
        self._headers = {"Accept": "application/json"}
        if cookie:
            self._headers["Cookie"] = combine_cookies({SESSION_COOKIE: cookie})
        else:
            log.warning("instaffo: no session cookie configured; requests will likely be rejected")

    def initial_state(self, query: Query) -> PaginationState:
        return CursorState()

    def build_body(self, state: CursorState) -> dict[str, Any]:
        filters = {"jobStatus": "open"}
        filters.update(dict(self.params.get("filters") or {}))
        body: dict[str, Any] = {"filters": filters}
        if state.search_after is not None:
            body["searchAfter"] = list(state.search_after)
        if state.pit_id is not None:
            body["pitId"] = state.pit_id
        return body

    def fetch_page(self, query: Query, state: PaginationState) -> Page:
        if not isinstance(state, CursorState):
            raise TypeError(f"instaffo paginates by cursor, got {state!r}")
        data = self._client.post_json(f"{API_BASE}/job_suggestions", self.build_body(state), headers=self._headers)
        return self.parse_suggestions(data, state)

    def parse_suggestions(self, data: Any, state: CursorState) -> Page:
        if not isinstance(data, dict) or not isinstance(data.get("jobSuggestions"), list):
            raise ParseError(
                "instaffo: unexpected job_suggestions envelope",
                url=f"{API_BASE}/job_suggestions",
                body=json.dumps(data)[:5000],
            )
        meta = data.get("meta") if isinstance(data.get("meta"), dict) else {}

        items: list[RawListing] = []
        for raw in data["jobSuggestions"]:
            if isinstance(raw, dict):
                try:
                    listing = self._to_listing(raw)
                except (TypeError, ValueError, AttributeError) as e:
                    raise ParseError(
                        f"instaffo: malformed suggestion: {e}",
                        url=f"{API_BASE}/job_suggestions",
                        body=json.dumps(data, default=str)[:5000],
                    ) from e
                if listing is not None:
                    items.append(listing)

        next_state: CursorState | None = None
        pit_id = meta.get("pitId")
        search_after = meta.get("searchAfter")
        if items and pit_id and isinstance(search_after, list) and search_after:
            candidate = CursorState(pit_id=str(pit_id), search_after=tuple(str(x) for x in search_after))
            if candidate != state:
                next_state = candidate
            else:
                log.debug("instaffo: cursor did not advance; treating as exhausted")

        return Page(
            items=items,
            next_state=next_state,
            total_count=_int_or_none(meta.get("totalResults")),
            max_page=_int_or_none(meta.get("totalPages")),
        )

    def _to_listing(self, raw: dict[str, Any]) -> RawListing | None:
        job = raw.get("job") if isinstance(raw.get("job"), dict) else raw
        job_id = job.get("id") or raw.get("id")
        title = clean_text(job.get("title") or job.get("name"))

        company_raw = job.get("company")
        if isinstance(company_raw, dict):
            company = clean_text(company_raw.get("name"))
        else:
            company = clean_text(company_raw) if isinstance(company_raw, str) else None

        location = None
        if isinstance(job.get("location"), str):
            location = clean_text(job["location"])
        elif isinstance(job.get("locations"), list):
            names = [
                str(loc.get("city") or loc.get("name") or "").strip() if isinstance(loc, dict) else str(loc).strip()
                for loc in job["locations"]
            ]
            location = ", ".join(n for n in names if n) or None

        if job_id is None and not title:
            log.debug("instaffo: skipping suggestion without id/title")
            return None

        identity = str(job_id) if job_id is not None else composite_identity(title, company)
        return RawListing(
            source=self.source,
            identity=identity,
            detail_link=f"{API_BASE}/jobs/{job_id}" if job_id is not None else "",
            title=title,
            company=company,
            location=location,
            extra={"match_score": raw.get("score") or raw.get("matchScore")},
        )

    def fetch_detail(self, item: RawListing) -> str:
        if not item.detail_link:
            raise ContentNotFoundError("job id")
        return self._client.get_text(item.detail_link, headers=self._headers)

    def parse_detail(self, item: RawListing, body: str) -> Detail:
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ParseError("instaffo: job detail is not JSON", url=item.detail_link, body=body) from e
        job = data.get("job") if isinstance(data, dict) and isinstance(data.get("job"), dict) else data
        if not isinstance(job, dict):
            raise ContentNotFoundError("job", url=item.detail_link)

        parts = [_text_of(job.get(key)) for key in ("description", "tasks", "requirements")]
        content = "\n\n".join(p for p in parts if p)
        if not content:
            raise ContentNotFoundError("description", url=item.detail_link)
        return Detail(content=content, title=clean_text(job.get("title")))


def _int_or_none(v: Any) -> int | None:
    try:
        return int(v)
    except (TypeError, ValueError):
        return None
