from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from ..http_client import HttpClient
from ..models import Detail, NormalizedRecord, Page, PaginationState, Query, RawListing


class SiteAdapter(ABC):
    """
    Capability interface implemented once per source.

    An adapter knows how to request one page for a given pagination state and
    parse it into listings plus the next state, and how to fetch and parse a
    listing's detail page. It holds no run state; the engine owns pagination,
    dedup and concurrency, so one instance is shared by every worker of a run.

    Contract:
      - fetch_page(query, state) -> Page; `Page.next_state` is None once exhausted.
      - fetch_detail(item) -> raw body (HTML or JSON text) for enrichment.
      - parse_detail(item, body) -> Detail; raises ContentNotFoundError when the
        required fragments are missing.
      - Raise FetchError subclasses for request failures; never swallow them.
    """

    # Concrete subclasses MUST set this to a stable tag, e.g. "xing", "linkedin"
    source: str = ""

    # Offset sources with a probe-able total count run through the partitioner.
    partitioned: bool = False
    # False for sources that ignore search terms (one sequence per run).
    query_scoped: bool = True
    # True for sources that take a location filter (query x location product).
    uses_location: bool = False

    page_size: int = 0
    hard_cap: int = 0
    page_delay: float = 0.0
    max_pages: int = 0  # 0 = unbounded

    def __init__(self, client: HttpClient, params: Mapping[str, Any] | None = None) -> None:
        self._client = client
        self.params: dict[str, Any] = dict(params or {})
        self.page_size = int(self.params.get("page_size") or type(self).page_size)
        self.hard_cap = int(self.params.get("hard_cap") or type(self).hard_cap)
        self.page_delay = float(self.params.get("page_delay", type(self).page_delay) or 0.0)
        self.max_pages = int(self.params.get("max_pages", type(self).max_pages) or 0)

    @abstractmethod
    def initial_state(self, query: Query) -> PaginationState:
        raise NotImplementedError

    @abstractmethod
    def fetch_page(self, query: Query, state: PaginationState) -> Page:
        raise NotImplementedError

    @abstractmethod
    def fetch_detail(self, item: RawListing) -> str:
        raise NotImplementedError

    @abstractmethod
    def parse_detail(self, item: RawListing, body: str) -> Detail:
        raise NotImplementedError

    def normalize(self, item: RawListing, detail: Detail | None) -> NormalizedRecord:
        """Merge listing and detail fields; detail values win where present."""
        if detail is None:
            return NormalizedRecord(
                source=item.source,
                identity=item.identity,
                title=item.title,
                company=item.company,
                location=item.location,
                link=item.detail_link,
                posting_date=item.posting_date,
                detail_content=None,
                extra=dict(item.extra),
            )
        return NormalizedRecord(
            source=item.source,
            identity=item.identity,
            title=detail.title or item.title,
            company=detail.company or item.company,
            location=detail.location or item.location,
            link=item.detail_link,
            posting_date=detail.posting_date or item.posting_date,
            detail_content=detail.content or None,
            extra={**item.extra, **detail.extra},
        )
