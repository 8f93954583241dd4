from __future__ import annotations

from typing import Any

from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity


def run(**kwargs: Any) -> dict:
    """
    Entry point for the 'job_scrape' module.

    Accepts kwargs (from the CLI or a scheduler), including:
      sites: list[str] = ["xing", "linkedin", "instaffo"]
      queries: list[str]          # default: built-in query list
      locations: list[str]        # linkedin scrapes query x location
      queries_path: Optional[str]
      workers_per_query: int = 2
      max_concurrency: int = 50
      batch_size: int = 500
      sink: "sqlite" | "jsonl" = "sqlite"
      sqlite_path / output_path / dump_dir
      extract_details: bool = False
      skip_network: bool = False
      source_params: {source: {...}}

    Returns the run summary dict (counts per stage, lost batches, failed queries).
    """
    # Build validated settings from env + kwargs
    settings = Settings.from_env_and_kwargs(kwargs)

    # Log a small start record (structured; no prints)
    log_activity({
        "component": "job_scrape.main",
        "op": "start",
        "sites": settings.sites,
        "queries": len(settings.queries),
        "locations": settings.locations,
        "sink": settings.sink,
        "flags": {
            "extract_details": settings.extract_details,
            "skip_network": settings.skip_network,
        },
    })

    return _run_engine(settings)
