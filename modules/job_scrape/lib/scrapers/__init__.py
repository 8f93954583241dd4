# job_scrape/scrapers/__init__.py
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..http_client import HttpClient
from . import registry
from .base import SiteAdapter
from .instaffo import InstaffoAdapter
from .linkedin import LinkedinAdapter
from .xing import XingAdapter


def build_adapter(source: str, client: HttpClient, params: Mapping[str, Any] | None = None) -> SiteAdapter:
    """
    Instantiate the adapter registered for `source` around the shared client.
    Raises UnknownSourceError for unregistered tags.
    """
    cls = registry.get(source)
    return cls(client, params)


__all__ = [
    "InstaffoAdapter",
    "LinkedinAdapter",
    "SiteAdapter",
    "XingAdapter",
    "build_adapter",
]
