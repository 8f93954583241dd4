from __future__ import annotations

import hashlib
import re
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Union


@dataclass(frozen=True)
class Query:
    """One search term plus an optional location filter, consumed once per run."""

    term: str
    location: str | None = None

    def label(self) -> str:
        return f"{self.term} @ {self.location}" if self.location else self.term


# -----------------------------
# Pagination state
# -----------------------------
@dataclass(frozen=True)
class OffsetState:
    """Offset pagination. `page_index` is zero-based; page numbers are one-based."""

    page_index: int
    page_size: int

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size

    @property
    def page_number(self) -> int:
        return self.page_index + 1

    @classmethod
    def for_page(cls, page_number: int, page_size: int) -> OffsetState:
        return cls(page_index=page_number - 1, page_size=page_size)

    def next(self) -> OffsetState:
        return OffsetState(page_index=self.page_index + 1, page_size=self.page_size)


@dataclass(frozen=True)
class CursorState:
    """Keyset pagination: the opaque (pitId, searchAfter) pair. Both None on the first call."""

    pit_id: str | None = None
    search_after: tuple[str, ...] | None = None

    @property
    def is_start(self) -> bool:
        return self.pit_id is None and self.search_after is None


PaginationState = Union[OffsetState, CursorState]


@dataclass(frozen=True)
class WorkAssignment:
    """Half-open page range [start_page, end_page) owned by exactly one worker."""

    query: Query
    start_page: int
    end_page: int

    def pages(self) -> range:
        return range(self.start_page, self.end_page)


# -----------------------------
# Listings
# -----------------------------
@dataclass(frozen=True)
class RawListing:
    """
    A site-specific listing as parsed from a search/listing page (pre-dedupe).
    `identity` is stable per source: numeric id, UUID or normalized title+company.
    """

    source: str
    identity: str
    detail_link: str
    title: str | None = None
    company: str | None = None
    location: str | None = None
    posting_date: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Page:
    """One parsed response. `next_state` is None once the source signals exhaustion."""

    items: list[RawListing]
    next_state: PaginationState | None
    total_count: int | None = None
    max_page: int | None = None


@dataclass(frozen=True)
class Detail:
    """Fields recovered from a detail fetch; `content` feeds NormalizedRecord.detail_content."""

    content: str | None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    posting_date: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StructuredDetails:
    """Structured job details produced by the AI extractor."""

    requirements: list[str] = field(default_factory=list)
    tasks: list[str] = field(default_factory=list)
    technologies: list[str] = field(default_factory=list)
    benefits: list[str] = field(default_factory=list)
    programming_languages: list[str] = field(default_factory=list)
    salary_forecast: tuple[int, int] | None = None
    experience_level: str | None = None
    application_url: str | None = None
    workplace: str | None = None


@dataclass(frozen=True)
class NormalizedRecord:
    """The unit handed to a sink. `detail_content` is None when enrichment found nothing."""

    source: str
    identity: str
    title: str | None
    company: str | None
    location: str | None
    link: str
    posting_date: datetime | None = None
    detail_content: str | None = None
    details: StructuredDetails | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def content_hash(self) -> str:
        return content_hash(self.source, self.identity)

    def with_details(self, details: StructuredDetails | None) -> NormalizedRecord:
        return replace(self, details=details)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["posting_date"] = self.posting_date.isoformat() if self.posting_date else None
        out["content_hash"] = self.content_hash
        return out


@dataclass
class InsertSummary:
    inserted: int = 0
    ignored: int = 0


# -----------------------------
# Identity helpers
# -----------------------------
_WS_RE = re.compile(r"\s+")


def identity_key(item: RawListing) -> str:
    """Source-qualified deduplication key."""
    return f"{item.source.strip().lower()}:{item.identity}"


def composite_identity(title: str | None, company: str | None) -> str:
    """Whitespace-insensitive title+company identity for sources without stable ids."""
    t = _WS_RE.sub("", (title or "")).lower()
    c = _WS_RE.sub("", (company or "")).lower()
    return f"{t}|{c}"


def content_hash(source: str, identity: str) -> str:
    return hashlib.sha256(f"{source.strip().lower()}\x1f{identity}".encode()).hexdigest()
