"""
Rate-limit handling and pagination drivers.

  - `call_with_rate_limit`: retries a single call on HTTP 429 after a fixed sleep,
    with no ceiling. Persistent 429s stall that one worker, never the run.
  - `paginate`: threads a PaginationState through an adapter until the source is
    exhausted, the worker's page range ends, or an unrecoverable error occurs.
    Items already yielded are kept when a sequence is cut short.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, TypeVar

from . import logging_bridge
from .errors import FetchError, ParseError, RateLimitedError
from .models import OffsetState, PaginationState, Query, RawListing, WorkAssignment
from .utils import dump_malformed

if TYPE_CHECKING:
    from .scrapers.base import SiteAdapter

log = logging.getLogger(__name__)

RATE_LIMIT_SLEEP_SECONDS = 5.0

T = TypeVar("T")


def call_with_rate_limit(
    call: Callable[[], T],
    *,
    source: str,
    what: str,
    identity: str | None = None,
    interval: float = RATE_LIMIT_SLEEP_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run `call`; on RateLimitedError sleep `interval` seconds and run it again.
    Every other exception propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            return call()
        except RateLimitedError as e:
            attempt += 1
            logging_bridge.activity({
                "component": "job_scrape.retry",
                "op": "rate_limited",
                "source": source,
                "what": what,
                "identity": identity,
                "url": e.url,
                "attempt": attempt,
                "sleep_s": interval,
            })
            sleep(interval)


def _state_label(state: PaginationState) -> str:
    if isinstance(state, OffsetState):
        return f"page {state.page_number}"
    return "cursor start" if state.is_start else f"cursor {state.pit_id}"


def paginate(
    adapter: SiteAdapter,
    query: Query,
    state: PaginationState | None,
    *,
    stop_page: int | None = None,
    interval: float = RATE_LIMIT_SLEEP_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    dump_dir: str | None = None,
) -> Iterator[RawListing]:
    """
    Yield listings page by page starting at `state`.

    `stop_page` bounds offset sequences to a half-open page range. Within a bounded
    range a ParseError skips only that page; anywhere else it ends the sequence
    because the next state cannot be derived from a malformed page. Transport and
    status errors always end the sequence.
    """
    source = adapter.source
    pages_done = 0
    items_done = 0
    reason = "exhausted"

    while state is not None:
        if stop_page is not None and isinstance(state, OffsetState) and state.page_number >= stop_page:
            reason = "range_end"
            break
        if adapter.max_pages and pages_done >= adapter.max_pages:
            reason = "max_pages"
            break
        if pages_done and adapter.page_delay:
            sleep(adapter.page_delay)

        current = state
        try:
            page = call_with_rate_limit(
                lambda: adapter.fetch_page(query, current),
                source=source,
                what=_state_label(current),
                interval=interval,
                sleep=sleep,
            )
        except ParseError as e:
            dumped = dump_malformed(dump_dir, source, e.body, label=query.term) if dump_dir else None
            logging_bridge.error({
                "component": "job_scrape.retry",
                "op": "page_failed",
                "source": source,
                "query": query.label(),
                "state": _state_label(current),
                "error": repr(e),
                "dump": dumped,
            })
            pages_done += 1
            if stop_page is not None and isinstance(current, OffsetState):
                state = current.next()
                continue
            reason = "parse_error"
            break
        except FetchError as e:
            logging_bridge.error({
                "component": "job_scrape.retry",
                "op": "sequence_aborted",
                "source": source,
                "query": query.label(),
                "state": _state_label(current),
                "error": repr(e),
            })
            reason = "fetch_error"
            break

        pages_done += 1
        items_done += len(page.items)
        yield from page.items
        state = page.next_state

    log.debug("%s %r: sequence ended (%s) after %d pages, %d items", source, query.label(), reason, pages_done, items_done)
    logging_bridge.activity({
        "component": "job_scrape.retry",
        "op": "sequence_end",
        "source": source,
        "query": query.label(),
        "reason": reason,
        "pages": pages_done,
        "items": items_done,
    })


def run_assignment(
    adapter: SiteAdapter,
    assignment: WorkAssignment,
    *,
    interval: float = RATE_LIMIT_SLEEP_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    dump_dir: str | None = None,
) -> Iterator[RawListing]:
    """Walk one worker's page range of an offset source."""
    if assignment.start_page >= assignment.end_page:
        return iter(())
    start = OffsetState.for_page(assignment.start_page, adapter.page_size)
    return paginate(
        adapter,
        assignment.query,
        start,
        stop_page=assignment.end_page,
        interval=interval,
        sleep=sleep,
        dump_dir=dump_dir,
    )
