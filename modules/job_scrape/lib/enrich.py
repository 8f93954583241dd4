"""
Best-effort detail enrichment.

`Enricher.enrich(item)` always returns a NormalizedRecord for `item`: a failed
or empty detail fetch degrades to `detail_content=None` and is logged, it never
drops the listing.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from . import logging_bridge
from .errors import ContentNotFoundError, FetchError, ParseError
from .models import Detail, NormalizedRecord, RawListing
from .retry import RATE_LIMIT_SLEEP_SECONDS, call_with_rate_limit
from .utils import dump_malformed

if TYPE_CHECKING:
    from .scrapers.base import SiteAdapter

log = logging.getLogger(__name__)


class Enricher:
    def __init__(
        self,
        adapters: Mapping[str, SiteAdapter],
        *,
        interval: float = RATE_LIMIT_SLEEP_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        dump_dir: str | None = None,
    ) -> None:
        self._adapters = dict(adapters)
        self._interval = interval
        self._sleep = sleep
        self._dump_dir = dump_dir

    def enrich(self, item: RawListing) -> NormalizedRecord:
        adapter = self._adapters[item.source]
        detail: Detail | None = None
        try:
            body = call_with_rate_limit(
                lambda: adapter.fetch_detail(item),
                source=item.source,
                what="detail",
                identity=item.identity,
                interval=self._interval,
                sleep=self._sleep,
            )
            detail = adapter.parse_detail(item, body)
        except ContentNotFoundError as e:
            logging_bridge.activity({
                "component": "job_scrape.enrich",
                "op": "content_missing",
                "source": item.source,
                "identity": item.identity,
                "url": e.url or item.detail_link,
                "error": str(e),
            })
        except ParseError as e:
            dumped = dump_malformed(self._dump_dir, item.source, e.body, label=item.identity) if self._dump_dir else None
            logging_bridge.error({
                "component": "job_scrape.enrich",
                "op": "detail_failed",
                "source": item.source,
                "identity": item.identity,
                "url": e.url or item.detail_link,
                "error": repr(e),
                "dump": dumped,
            })
        except FetchError as e:
            logging_bridge.error({
                "component": "job_scrape.enrich",
                "op": "detail_failed",
                "source": item.source,
                "identity": item.identity,
                "url": e.url or item.detail_link,
                "error": repr(e),
            })

        record = adapter.normalize(item, detail)
        if record.detail_content is None:
            log.debug("%s %s: no detail content", item.source, item.identity)
        return record
