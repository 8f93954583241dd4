"""
Stream merger: fan many listing producers into one enriched record stream.

    producers (threads) --admit--> DedupIndex
                        --submit-> enrichment pool (C workers, BoundedSemaphore(C))
                                   --put--> output queue --> run() iterator

A producer blocks on the semaphore while C enrichments are in flight; that is
the pipeline's only backpressure. No ordering is kept across producers.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import Counter
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from itertools import islice
from typing import TYPE_CHECKING, TypeVar

from . import logging_bridge
from .dedup import DedupIndex
from .enrich import Enricher
from .models import NormalizedRecord, RawListing

if TYPE_CHECKING:
    from .extractor import Extractor

log = logging.getLogger(__name__)

T = TypeVar("T")

_DONE = object()


@dataclass(frozen=True)
class Producer:
    """One stream of raw listings: a worker's page range, a cursor sequence, or a probe page."""

    source: str
    label: str
    items: Callable[[], Iterable[RawListing]]


@dataclass
class MergeStats:
    found_by_source: Counter = field(default_factory=Counter)
    admitted: int = 0
    with_content: int = 0
    extracted: int = 0
    failed_producers: list[str] = field(default_factory=list)


class StreamMerger:
    def __init__(
        self,
        dedup: DedupIndex,
        enricher: Enricher,
        max_concurrency: int,
        *,
        extractor: Extractor | None = None,
        max_producers: int = 32,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.dedup = dedup
        self.enricher = enricher
        self.max_concurrency = max_concurrency
        self.extractor = extractor
        self.max_producers = max(1, max_producers)
        self.stats = MergeStats()
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(max_concurrency)
        self._in_flight = 0
        self.peak_in_flight = 0

    def run(self, producers: Iterable[Producer]) -> Iterator[NormalizedRecord]:
        """Yield every admitted listing exactly once, enriched, as it completes."""
        producers = list(producers)
        if not producers:
            return
        out: queue.Queue = queue.Queue()
        stop = threading.Event()

        enrich_pool = ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="enrich")
        produce_pool = ThreadPoolExecutor(
            max_workers=min(len(producers), self.max_producers), thread_name_prefix="produce"
        )

        def _coordinate() -> None:
            try:
                futures = [produce_pool.submit(self._produce, p, enrich_pool, out, stop) for p in producers]
                wait(futures)
                produce_pool.shutdown(wait=True)
                # Enrichment tasks are only submitted by producers, so this drains them all.
                enrich_pool.shutdown(wait=True)
            finally:
                out.put(_DONE)

        coordinator = threading.Thread(target=_coordinate, name="merge-coordinator", daemon=True)
        coordinator.start()
        try:
            while True:
                record = out.get()
                if record is _DONE:
                    break
                yield record
        finally:
            # Producers stop at their next item once the consumer is gone.
            stop.set()
        coordinator.join()

    # ---- producer side -----------------------------------------------------

    def _produce(
        self, producer: Producer, enrich_pool: ThreadPoolExecutor, out: queue.Queue, stop: threading.Event
    ) -> None:
        try:
            for item in producer.items():
                if stop.is_set():
                    log.debug("%s: consumer gone, stopping producer", producer.label)
                    return
                with self._lock:
                    self.stats.found_by_source[item.source] += 1
                if not self.dedup.admit(item):
                    continue
                with self._lock:
                    self.stats.admitted += 1
                self._slots.acquire()
                with self._lock:
                    self._in_flight += 1
                    self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
                enrich_pool.submit(self._enrich_one, item, out)
        except Exception as e:
            # Whatever was already admitted stays in the stream.
            with self._lock:
                self.stats.failed_producers.append(producer.label)
            logging_bridge.error({
                "component": "job_scrape.merge",
                "op": "producer_failed",
                "source": producer.source,
                "producer": producer.label,
                "error": repr(e),
            })

    # ---- enrichment side ---------------------------------------------------

    def _enrich_one(self, item: RawListing, out: queue.Queue) -> None:
        try:
            record = self._enrich_record(item)
            out.put(record)
        finally:
            with self._lock:
                self._in_flight -= 1
            self._slots.release()

    def _enrich_record(self, item: RawListing) -> NormalizedRecord:
        try:
            record = self.enricher.enrich(item)
        except Exception as e:
            logging_bridge.error({
                "component": "job_scrape.merge",
                "op": "detail_failed",
                "source": item.source,
                "identity": item.identity,
                "error": repr(e),
            })
            record = NormalizedRecord(
                source=item.source,
                identity=item.identity,
                title=item.title,
                company=item.company,
                location=item.location,
                link=item.detail_link,
                posting_date=item.posting_date,
                extra=dict(item.extra),
            )

        if record.detail_content:
            with self._lock:
                self.stats.with_content += 1
            if self.extractor is not None:
                record = self._extract(record)
        return record

    def _extract(self, record: NormalizedRecord) -> NormalizedRecord:
        try:
            details = self.extractor.extract(record.detail_content or "")
        except Exception as e:
            logging_bridge.error({
                "component": "job_scrape.merge",
                "op": "extract_failed",
                "source": record.source,
                "identity": record.identity,
                "error": repr(e),
            })
            return record
        with self._lock:
            self.stats.extracted += 1
        return record.with_details(details)


def batched(iterable: Iterable[T], size: int) -> Iterator[list[T]]:
    """Group `iterable` into lists of `size`; the last batch may be shorter."""
    if size < 1:
        raise ValueError("size must be >= 1")
    it = iter(iterable)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk
