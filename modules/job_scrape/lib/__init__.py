# modules/job_scrape/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, Settings
from .engine import run_once
from .models import NormalizedRecord, Query, RawListing
from .scrapers import build_adapter  # importing registers the built-in adapters

__all__ = [
    "ConfigError",
    "NormalizedRecord",
    "Query",
    "RawListing",
    "Settings",
    "build_adapter",
    "run_once",
]
