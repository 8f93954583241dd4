# job_scrape/http_client.py
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import NonSuccessStatus, ParseError, RateLimitedError, TransportError

LOG = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)


class HttpClient:
    """
    Shared, connection-pooled HTTP client. Safe to use from many worker threads.

    Status handling is NOT retried here: 429 surfaces as RateLimitedError for the
    retry handler, other non-2xx as NonSuccessStatus. urllib3 only retries
    connection establishment.
    """

    def __init__(
        self,
        timeout: float = 20.0,
        user_agent: str = DEFAULT_USER_AGENT,
        pool_maxsize: int = 64,
        headers: Mapping[str, str] | None = None,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept-Language": "en-US,en;q=0.9",
        })
        if headers:
            self.session.headers.update(dict(headers))

        retry = Retry(
            total=2,
            connect=2,
            read=0,
            status=0,
            backoff_factor=0.5,
            status_forcelist=(),
            allowed_methods=frozenset(["GET", "POST", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=max(1, int(pool_maxsize)))
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    # ---- core ----
    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send a request and translate failures into the scraper error taxonomy."""
        kwargs.setdefault("timeout", self.timeout)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e!r}", url=url) from e

        if resp.status_code == 429:
            raise RateLimitedError(url=url, body=_safe_text(resp))
        if not 200 <= resp.status_code < 300:
            raise NonSuccessStatus(resp.status_code, url=url, body=_safe_text(resp))
        return resp

    # ---- convenience ----
    def get_text(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        encoding: str | None = None,
        **kwargs: Any,
    ) -> str:
        """GET and return decoded text with gentle encoding hints."""
        resp = self.request("GET", url, params=params, headers=headers, **kwargs)
        if encoding:
            resp.encoding = encoding
        elif not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return resp.text

    def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """GET and parse JSON; a body that isn't JSON raises ParseError."""
        resp = self.request("GET", url, params=params, headers=headers, **kwargs)
        return _decode_json(resp, url)

    def post_json(
        self,
        url: str,
        payload: Any,
        *,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """POST a JSON body and parse the JSON reply."""
        resp = self.request("POST", url, json=payload, headers=headers, **kwargs)
        return _decode_json(resp, url)

    def close(self) -> None:
        self.session.close()


def _safe_text(resp: requests.Response) -> str:
    try:
        return resp.text
    except Exception as e:  # body stream broke after headers arrived
        LOG.debug("could not read body for %s: %r", resp.url, e)
        return ""


def _decode_json(resp: requests.Response, url: str) -> Any:
    # Prefer requests' decoder; fall back to manual if Content-Type is misleading.
    try:
        return resp.json()
    except ValueError as e:
        try:
            return json.loads(resp.text)
        except ValueError:
            preview = resp.text[:200].replace("\n", " ")
            raise ParseError(
                f"JSON decode failed for {url!r}; body starts: {preview!r}",
                url=url,
                body=resp.text,
            ) from e
