# modules/job_scrape/lib/scrapers/xing.py
"""
XING job search API (offset pagination).

    GET https://www.xing.com/jobs/api/search?employmentType=...&offset=<n>&limit=<n>&keywords=<q>
    -> {"items": [...], "meta": {"count": N, "currentPage": P, "maxPage": M}}

Listings carry a numeric id; the detail page is the public posting HTML, from
which the salary block and the main posting grid are concatenated.

Params (all optional):
  page_size: int          (default 100)
  hard_cap: int           (default 1000) -> never page past this many results
  employment_type: str    (default "FULL_TIME.ef2fe9")
  content_selector: str   main posting container
  salary_selector: str    salary block
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from bs4 import BeautifulSoup

from ..errors import ContentNotFoundError, ParseError
from ..models import Detail, OffsetState, Page, PaginationState, Query, RawListing
from ..utils import clean_text
from .base import SiteAdapter
from .registry import register

log = logging.getLogger(__name__)

SEARCH_URL = "https://www.xing.com/jobs/api/search"
CONTENT_SELECTOR = ".styles-grid-gridContainer-cec162b7.styles-grid-standardGridContainer-cfa898d5"
SALARY_SELECTOR = '[data-cy="posting-salary"]'


def _parse_iso(ts: Any) -> datetime | None:
    if not isinstance(ts, str) or not ts.strip():
        return None
    ts = ts.strip()
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(ts)
    except ValueError:
        return None


@register
class XingAdapter(SiteAdapter):
    source = "xing"
    partitioned = True
    page_size = 100
    hard_cap = 1000

    def initial_state(self, query: Query) -> PaginationState:
        return OffsetState(page_index=0, page_size=self.page_size)

    def fetch_page(self, query: Query, state: PaginationState) -> Page:
        if not isinstance(state, OffsetState):
            raise TypeError(f"xing paginates by offset, got {state!r}")
        params = {
            "employmentType": self.params.get("employment_type") or "FULL_TIME.ef2fe9",
            "offset": state.offset,
            "limit": state.page_size,
            "keywords": query.term,
        }
        log.debug("requesting jobs from xing, offset: %s, search: %s", state.offset, query.term)
        data = self._client.get_json(SEARCH_URL, params=params, headers={"Accept": "application/json"})
        return self.parse_search(data, state)

    def parse_search(self, data: Any, state: OffsetState) -> Page:
        """Parse the `{items, meta}` envelope; anything else is a ParseError."""
        if not isinstance(data, dict) or not isinstance(data.get("items"), list) or not isinstance(data.get("meta"), dict):
            raise ParseError("xing: unexpected search envelope", url=SEARCH_URL, body=json.dumps(data)[:5000])
        meta = data["meta"]
        try:
            count = int(meta.get("count") or 0)
            max_page = int(meta.get("maxPage") or 0)
        except (TypeError, ValueError) as e:
            raise ParseError(f"xing: bad meta block {meta!r}", url=SEARCH_URL, body=json.dumps(data)[:5000]) from e

        items: list[RawListing] = []
        for raw in data["items"]:
            if not isinstance(raw, dict):
                continue
            try:
                listing = self._to_listing(raw)
            except (TypeError, ValueError, AttributeError) as e:
                raise ParseError(
                    f"xing: malformed item {raw.get('id')!r}: {e}",
                    url=SEARCH_URL,
                    body=json.dumps(data, default=str)[:5000],
                ) from e
            if listing is not None:
                items.append(listing)

        next_state = state.next() if items and state.page_number < max_page else None
        return Page(items=items, next_state=next_state, total_count=count, max_page=max_page)

    def _to_listing(self, raw: dict[str, Any]) -> RawListing | None:
        job_id = raw.get("id")
        link = str(raw.get("link") or "").strip()
        if job_id is None or not link:
            log.debug("xing: skipping item without id/link: %r", raw.get("title"))
            return None

        company = raw.get("company") if isinstance(raw.get("company"), dict) else {}
        kununu = company.get("kununuData") if isinstance(company.get("kununuData"), dict) else None
        extra: dict[str, Any] = {
            "scrambled_id": raw.get("scrambledId"),
            "company_link": company.get("link"),
            "slug": raw.get("slug"),
        }
        if kununu:
            extra["kununu"] = {
                "company_profile_url": kununu.get("companyProfileUrl"),
                "rating_average": kununu.get("ratingAverage"),
                "rating_count": kununu.get("ratingCount"),
            }

        return RawListing(
            source=self.source,
            identity=str(job_id),
            detail_link=link,
            title=clean_text(raw.get("title")),
            company=clean_text(company.get("name")),
            location=clean_text(raw.get("location")),
            posting_date=_parse_iso(raw.get("activatedAt")),
            extra=extra,
        )

    def fetch_detail(self, item: RawListing) -> str:
        return self._client.get_text(item.detail_link)

    def parse_detail(self, item: RawListing, body: str) -> Detail:
        soup = BeautifulSoup(body, "html5lib")
        job_data = soup.select_one(self.params.get("content_selector") or CONTENT_SELECTOR)
        if job_data is None:
            raise ContentNotFoundError("Job Posting data", url=item.detail_link)
        salary = soup.select_one(self.params.get("salary_selector") or SALARY_SELECTOR)
        if salary is None:
            raise ContentNotFoundError("Salary", url=item.detail_link)

        parts = [clean_text(salary.get_text(" ", strip=True)), clean_text(job_data.get_text(" ", strip=True))]
        return Detail(content="\n".join(p for p in parts if p) or None)
