# tests/test_linkedin.py
from datetime import datetime, timedelta, timezone

import pytest

from modules.job_scrape.lib.errors import ContentNotFoundError
from modules.job_scrape.lib.models import OffsetState, Query
from modules.job_scrape.lib.scrapers import linkedin

LISTING_HTML = """
<ul>
  <li><a class="base-card__full-link" href="https://de.linkedin.com/jobs/view/python-dev-at-acme-3711?refId=a&trk=b">x</a></li>
  <li><a class="base-card__full-link" href="https://de.linkedin.com/jobs/view/rust-dev-at-beta-4222?refId=c">y</a></li>
  <li><a class="base-card__full-link" href="https://de.linkedin.com/jobs/view/python-dev-at-acme-3711?refId=dup">dup</a></li>
  <li><a class="base-card__full-link" href="https://de.linkedin.com/jobs/view/no-id-here">z</a></li>
</ul>
"""

DETAIL_HTML = """
<html><body>
  <h2 class="top-card-layout__title">Senior Python Developer</h2>
  <a class="topcard__org-name-link" href="https://linkedin.com/company/acme">  Acme GmbH </a>
  <span class="topcard__flavor topcard__flavor--bullet"> Berlin, Germany </span>
  <span class="posted-time-ago__text">2 weeks ago</span>
  <div class="description__text">We are hiring.   Python, Django.</div>
  <ul>
    <li><span class="description__job-criteria-text">Mid-Senior level</span></li>
    <li><span class="description__job-criteria-text">Full-time</span></li>
    <li><span class="description__job-criteria-text">Engineering</span></li>
    <li><span class="description__job-criteria-text">Software Development</span></li>
  </ul>
</body></html>
"""


@pytest.fixture
def adapter(fake_client):
    return linkedin.LinkedinAdapter(fake_client)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://de.linkedin.com/jobs/view/python-dev-3711?refId=a", "3711"),
        ("https://de.linkedin.com/jobs/view/python-dev-3711", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_job_id(url, expected):
    assert linkedin.extract_job_id(url) == expected


def test_parse_listing_unique_ids_in_order(adapter):
    page = adapter.parse_listing(LISTING_HTML, OffsetState(page_index=0, page_size=25))

    assert [i.identity for i in page.items] == ["3711", "4222"]
    assert page.items[0].detail_link == f"{linkedin.API_BASE}/jobPosting/3711"
    assert page.next_state == OffsetState(page_index=1, page_size=25)


def test_empty_listing_ends_sequence(adapter):
    page = adapter.parse_listing("<html><body></body></html>", OffsetState(page_index=4, page_size=25))
    assert page.items == [] and page.next_state is None


def test_fetch_page_sends_location_and_start(adapter, fake_client):
    fake_client.add("GET", f"{linkedin.API_BASE}/seeMoreJobPostings/search", LISTING_HTML)
    adapter.fetch_page(Query(term="Rust", location="Berlin"), OffsetState.for_page(3, 25))

    params = fake_client.calls[0][2]["params"]
    assert params == {"location": "Berlin", "keywords": "Rust", "start": 50, "f_TPR": "r604800"}


def test_parse_detail_fields(adapter, frozen_utc):
    item = adapter.parse_listing(LISTING_HTML, OffsetState(page_index=0, page_size=25)).items[0]
    detail = adapter.parse_detail(item, DETAIL_HTML)

    assert detail.title == "Senior Python Developer"
    assert detail.company == "Acme GmbH"
    assert detail.location == "Berlin, Germany"
    assert detail.content == "We are hiring. Python, Django."
    assert detail.posting_date == datetime(2025, 1, 1, tzinfo=timezone.utc) - timedelta(weeks=2)
    assert detail.extra["company_link"] == "https://linkedin.com/company/acme"
    assert detail.extra["criteria"] == {
        "seniority": "Mid-Senior level",
        "employment_type": "Full-time",
        "job_function": "Engineering",
        "industries": "Software Development",
    }


def test_parse_detail_without_description_keeps_other_fields(adapter):
    item = adapter.parse_listing(LISTING_HTML, OffsetState(page_index=0, page_size=25)).items[0]
    html = DETAIL_HTML.replace("description__text", "something-else")
    detail = adapter.parse_detail(item, html)

    assert detail.content is None
    assert detail.title == "Senior Python Developer"


def test_parse_detail_of_unrelated_page_is_content_not_found(adapter):
    item = adapter.parse_listing(LISTING_HTML, OffsetState(page_index=0, page_size=25)).items[0]
    with pytest.raises(ContentNotFoundError):
        adapter.parse_detail(item, "<html><body><p>Sign in</p></body></html>")


def test_normalize_prefers_detail_values(adapter):
    item = adapter.parse_listing(LISTING_HTML, OffsetState(page_index=0, page_size=25)).items[0]
    record = adapter.normalize(item, adapter.parse_detail(item, DETAIL_HTML))

    assert record.identity == "3711"
    assert record.title == "Senior Python Developer"
    assert record.link == item.detail_link
    assert record.detail_content.startswith("We are hiring")
