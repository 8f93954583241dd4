"""
Page-range partitioning for offset-paginated sources.

One probe request (page 1) reports the total result count and the last page.
The remaining pages 2..L are split into contiguous half-open ranges, one per
worker, with the final worker absorbing the remainder.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .models import OffsetState, Page, Query, WorkAssignment
from .retry import RATE_LIMIT_SLEEP_SECONDS, call_with_rate_limit

if TYPE_CHECKING:
    from .scrapers.base import SiteAdapter


def last_page_index(total_count: int, max_page: int, *, page_size: int, hard_cap: int) -> int:
    """Highest one-based page number worth fetching, bounded by the hard cap."""
    if page_size <= 0:
        raise ValueError("page_size must be >= 1")
    result_count = min(max(total_count, 0), hard_cap)
    return max(0, min(max_page, result_count // page_size))


def partition_pages(
    query: Query,
    total_count: int,
    max_page: int,
    worker_count: int,
    *,
    page_size: int,
    hard_cap: int,
) -> list[WorkAssignment]:
    """
    Pure split of pages [2, L] into at most `worker_count` half-open ranges.

    The ranges are contiguous, non-overlapping, and their union is exactly
    [2, L + 1). With fewer pages than workers, each page gets its own worker.
    Returns [] when L < 2 (the probe page already covers the query).
    """
    if worker_count < 1:
        raise ValueError("worker_count must be >= 1")
    last = last_page_index(total_count, max_page, page_size=page_size, hard_cap=hard_cap)
    if last < 2:
        return []

    first, stop = 2, last + 1
    n = stop - first
    workers = min(worker_count, n)
    chunk = n // workers

    out: list[WorkAssignment] = []
    for w in range(workers):
        start = first + w * chunk
        end = stop if w == workers - 1 else start + chunk
        out.append(WorkAssignment(query=query, start_page=start, end_page=end))
    return out


@dataclass
class ProbePlan:
    """Probe page result plus the assignments for the rest of the query."""

    query: Query
    probe: Page
    assignments: list[WorkAssignment] = field(default_factory=list)


def partition(
    adapter: SiteAdapter,
    query: Query,
    worker_count: int,
    *,
    interval: float = RATE_LIMIT_SLEEP_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> ProbePlan:
    """
    Issue the probe request and split the remaining pages.

    Probe failures propagate: a query whose probe fails is failed as a whole.
    429s are absorbed by the rate-limit handler beneath the probe.
    """
    probe_state = OffsetState.for_page(1, adapter.page_size)
    probe = call_with_rate_limit(
        lambda: adapter.fetch_page(query, probe_state),
        source=adapter.source,
        what="probe",
        interval=interval,
        sleep=sleep,
    )
    assignments = partition_pages(
        query,
        probe.total_count or 0,
        probe.max_page or 0,
        worker_count,
        page_size=adapter.page_size,
        hard_cap=adapter.hard_cap,
    )
    return ProbePlan(query=query, probe=probe, assignments=assignments)
