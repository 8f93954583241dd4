"""
Engine for one scrape run: probe, partition, paginate, dedupe, enrich, persist.

Features:
  - Parallel probes per (source, query); probe failure fails only that query
  - Page-range partitioning for offset sources, one producer per range
  - Run-scoped DedupIndex owned by the StreamMerger
  - Bounded enrichment fan-out (max_concurrency) with optional AI extraction
  - Batched sink writes; a failed batch is logged and counted, never fatal
  - Dependency injection for testability (`get_adapter`, `sink`, `extractor`, `client`, `sleep`)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from contextlib import closing
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial

from . import logging_bridge
from .config import Settings
from .dedup import DedupIndex
from .enrich import Enricher
from .errors import SinkError
from .extractor import Extractor, OpenAIExtractor
from .http_client import HttpClient
from .merge import Producer, StreamMerger, batched
from .models import Query
from .partition import ProbePlan, partition
from .retry import paginate, run_assignment
from .scrapers.base import SiteAdapter
from .sink import JsonlSink, Sink, SqliteSink

# Sequence-only sources still need a query to carry through the pipeline.
ALL_JOBS = Query(term="*")


# =============================================================================
# DEFAULT LOOKUPS (PRODUCTION)
# =============================================================================
def _default_get_adapter(source: str) -> type[SiteAdapter]:
    from .scrapers.registry import get as get_adapter_class

    return get_adapter_class(source)


def build_sink(settings: Settings) -> Sink:
    if settings.sink == "jsonl":
        return JsonlSink(settings.output_path)
    return SqliteSink(settings.sqlite_path)


def _empty_summary() -> dict:
    return {
        "found_by_source": {},
        "admitted": 0,
        "duplicates": 0,
        "with_content": 0,
        "extracted": 0,
        "inserted": 0,
        "ignored": 0,
        "batches": 0,
        "lost_batches": 0,
        "failed_queries": [],
        "failed_producers": [],
        "durations_us": {},
    }


# =============================================================================
# MAIN ORCHESTRATOR
# =============================================================================
def run_once(
    settings: Settings,
    get_adapter: Callable[[str], type[SiteAdapter]] | None = None,
    sink: Sink | None = None,
    extractor: Extractor | None = None,
    client: HttpClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """
    Run one complete scrape and return the summary dict.

    Adapter resolution happens before any network I/O, so an unknown source
    aborts the run up front (UnknownSourceError).
    """
    start_ns = time.perf_counter_ns()
    summary = _empty_summary()

    get_adapter_func = get_adapter or _default_get_adapter
    adapter_classes = {site: get_adapter_func(site) for site in settings.sites}

    if settings.skip_network:
        logging_bridge.activity({
            "component": "job_scrape.engine",
            "op": "summary",
            "skip_network": True,
            "sites": list(adapter_classes),
            **summary,
        })
        return summary

    own_client = client is None
    http = client or HttpClient(pool_maxsize=max(settings.max_concurrency, 10) + 16)
    try:
        adapters = {site: cls(http, settings.params_for(site)) for site, cls in adapter_classes.items()}
        interval = settings.rate_limit_sleep
        run_kw = {"interval": interval, "sleep": sleep, "dump_dir": settings.dump_dir}

        # ---------------------------------------------------------------------
        # PROBES (offset sources): one per (source, query), in parallel
        # ---------------------------------------------------------------------
        producers: list[Producer] = []
        probe_jobs: list[tuple[SiteAdapter, Query]] = []
        for site, adapter in adapters.items():
            if not adapter.query_scoped:
                producers.append(_sequence_producer(adapter, ALL_JOBS, run_kw))
                continue
            for q in settings.query_list(with_locations=adapter.uses_location):
                if adapter.partitioned:
                    probe_jobs.append((adapter, q))
                else:
                    producers.append(_sequence_producer(adapter, q, run_kw))

        t_probe = time.perf_counter_ns()
        if probe_jobs:
            with ThreadPoolExecutor(max_workers=min(len(probe_jobs), settings.max_concurrency)) as pool:
                futures = {
                    pool.submit(
                        partition,
                        adapter,
                        q,
                        settings.workers_per_query,
                        interval=interval,
                        sleep=sleep,
                    ): (adapter, q)
                    for adapter, q in probe_jobs
                }
                for fut in as_completed(futures):
                    adapter, q = futures[fut]
                    try:
                        plan = fut.result()
                    except Exception as e:
                        summary["failed_queries"].append(f"{adapter.source}:{q.label()}")
                        logging_bridge.error({
                            "component": "job_scrape.engine",
                            "op": "probe_failed",
                            "source": adapter.source,
                            "query": q.label(),
                            "error": repr(e),
                        })
                        continue
                    producers.extend(_plan_producers(adapter, plan, run_kw))
        summary["durations_us"]["probe"] = int((time.perf_counter_ns() - t_probe) // 1000)

        # ---------------------------------------------------------------------
        # MERGE: dedupe + bounded enrichment, then batched sink writes
        # ---------------------------------------------------------------------
        if settings.extract_details and extractor is None:
            extractor = OpenAIExtractor()
        merger = StreamMerger(
            DedupIndex(),
            Enricher(adapters, interval=interval, sleep=sleep, dump_dir=settings.dump_dir),
            settings.max_concurrency,
            extractor=extractor if settings.extract_details else None,
        )
        out = sink or build_sink(settings)

        t_merge = time.perf_counter_ns()
        with closing(merger.run(producers)) as stream:
            for batch in batched(stream, settings.batch_size):
                summary["batches"] += 1
                try:
                    res = out.save_batch(batch)
                except SinkError as e:
                    summary["lost_batches"] += 1
                    logging_bridge.error({
                        "component": "job_scrape.engine",
                        "op": "batch_failed",
                        "sink": type(out).__name__,
                        "batch_size": len(batch),
                        "sources": sorted({r.source for r in batch}),
                        "error": repr(e),
                    })
                    continue
                summary["inserted"] += res.inserted
                summary["ignored"] += res.ignored
                logging_bridge.activity({
                    "component": "job_scrape.engine",
                    "op": "batch_saved",
                    "sink": type(out).__name__,
                    "batch_size": len(batch),
                    "inserted": res.inserted,
                    "ignored": res.ignored,
                })
        summary["durations_us"]["merge"] = int((time.perf_counter_ns() - t_merge) // 1000)
    finally:
        if own_client:
            http.close()

    stats = merger.stats
    summary["found_by_source"] = dict(stats.found_by_source)
    summary["admitted"] = stats.admitted
    summary["duplicates"] = merger.dedup.duplicates
    summary["with_content"] = stats.with_content
    summary["extracted"] = stats.extracted
    summary["failed_producers"] = list(stats.failed_producers)
    summary["durations_us"]["total"] = int((time.perf_counter_ns() - start_ns) // 1000)

    # -------------------------------------------------------------------------
    # SUMMARY LOG (always emitted)
    # -------------------------------------------------------------------------
    logging_bridge.activity({
        "component": "job_scrape.engine",
        "op": "summary",
        "skip_network": False,
        "sites": list(adapters),
        "producers": len(producers),
        "peak_in_flight": merger.peak_in_flight,
        **summary,
    })
    return summary


# =============================================================================
# PRODUCER BUILDERS
# =============================================================================
def _sequence_producer(adapter: SiteAdapter, query: Query, run_kw: dict) -> Producer:
    return Producer(
        source=adapter.source,
        label=f"{adapter.source}:{query.label()}",
        items=partial(paginate, adapter, query, adapter.initial_state(query), **run_kw),
    )


def _plan_producers(adapter: SiteAdapter, plan: ProbePlan, run_kw: dict) -> list[Producer]:
    """The probe page's items plus one producer per assigned page range."""
    label = f"{adapter.source}:{plan.query.label()}"
    out = [Producer(source=adapter.source, label=f"{label} p1", items=partial(list, plan.probe.items))]
    for a in plan.assignments:
        out.append(
            Producer(
                source=adapter.source,
                label=f"{label} p{a.start_page}-{a.end_page - 1}",
                items=partial(run_assignment, adapter, a, **run_kw),
            )
        )
    return out
