# modules/job_scrape/lib/scrapers/linkedin.py
"""
LinkedIn guest job search (HTML listing + per-job detail page).

Listing:  GET .../jobs-guest/jobs/api/seeMoreJobPostings/search?location=&keywords=&start=<offset>
          -> HTML cards; detail ids come from `.base-card__full-link` hrefs.
Detail:   GET .../jobs-guest/jobs/api/jobPosting/<id>
          -> HTML with title, company, location, relative age and description.

The listing is exhausted on a page without any job ids (or after max_pages).

Params (all optional):
  time_posted: str   (default "r604800", i.e. past week)
  max_pages: int     (default 40)
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

from ..errors import ContentNotFoundError
from ..models import Detail, OffsetState, Page, PaginationState, Query, RawListing
from ..utils import clean_text, parse_relative_age
from .base import SiteAdapter
from .registry import register

log = logging.getLogger(__name__)

API_BASE = "https://www.linkedin.com/jobs-guest/jobs/api"

_JOB_ID_RE = re.compile(r".*-(\d+)\?.*")

HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.9"
    ),
    "Cache-Control": "max-age=0",
    "Connection": "keep-alive",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

_CRITERIA_KEYS = ("seniority", "employment_type", "job_function", "industries")


def extract_job_id(job_url: str | None) -> str | None:
    m = _JOB_ID_RE.match(job_url or "")
    return m.group(1) if m else None


@register
class LinkedinAdapter(SiteAdapter):
    source = "linkedin"
    uses_location = True
    page_size = 25
    max_pages = 40

    def initial_state(self, query: Query) -> PaginationState:
        return OffsetState(page_index=0, page_size=self.page_size)

    def fetch_page(self, query: Query, state: PaginationState) -> Page:
        if not isinstance(state, OffsetState):
            raise TypeError(f"linkedin paginates by offset, got {state!r}")
        params = {
            "location": query.location or "",
            "keywords": query.term,
            "start": state.offset,
            "f_TPR": self.params.get("time_posted") or "r604800",
        }
        html = self._client.get_text(f"{API_BASE}/seeMoreJobPostings/search", params=params, headers=HEADERS)
        return self.parse_listing(html, state)

    def parse_listing(self, html: str, state: OffsetState) -> Page:
        """Collect unique job ids from the listing cards, in page order."""
        soup = BeautifulSoup(html, "html5lib")
        seen: set[str] = set()
        items: list[RawListing] = []
        for a in soup.select(".base-card__full-link"):
            job_id = extract_job_id(a.get("href"))
            if not job_id or job_id in seen:
                continue
            seen.add(job_id)
            items.append(
                RawListing(
                    source=self.source,
                    identity=job_id,
                    detail_link=f"{API_BASE}/jobPosting/{job_id}",
                )
            )
        return Page(items=items, next_state=state.next() if items else None)

    def fetch_detail(self, item: RawListing) -> str:
        log.debug("Sending GET to: %s", item.detail_link)
        return self._client.get_text(item.detail_link, headers=HEADERS)

    def parse_detail(self, item: RawListing, body: str) -> Detail:
        soup = BeautifulSoup(body, "html5lib")

        title_el = soup.select_one(".top-card-layout__title")
        title = clean_text(title_el.get_text(" ", strip=True)) if title_el else None

        org_el = soup.select_one(".topcard__org-name-link")
        company = clean_text(org_el.get_text(" ", strip=True)) if org_el else None
        company_link = (org_el.get("href") or None) if org_el else None

        loc_el = soup.select_one("span.topcard__flavor.topcard__flavor--bullet")
        location = clean_text(loc_el.get_text(" ", strip=True)) if loc_el else None

        age_el = soup.select_one("span.posted-time-ago__text")
        posting_date = parse_relative_age(age_el.get_text(" ", strip=True)) if age_el else None

        desc_el = soup.select_one("div.description__text")
        description = clean_text(desc_el.get_text(" ", strip=True)) if desc_el else None

        if title is None and description is None:
            raise ContentNotFoundError("job posting", url=item.detail_link)

        criteria_texts = [clean_text(el.get_text(" ", strip=True)) for el in soup.select(".description__job-criteria-text")]
        criteria = {key: (criteria_texts[i] if i < len(criteria_texts) else None) for i, key in enumerate(_CRITERIA_KEYS)}

        return Detail(
            content=description,
            title=title,
            company=company,
            location=location,
            posting_date=posting_date,
            extra={"company_link": company_link, "criteria": criteria},
        )
