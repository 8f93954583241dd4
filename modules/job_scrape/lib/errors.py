from __future__ import annotations


class ScraperError(Exception):
    """Base exception for scraper failures."""


class UnknownSourceError(ScraperError):
    """Raised when a source tag has no registered adapter."""

    def __init__(self, source: str) -> None:
        super().__init__(f"No adapter registered for source {source!r}.")
        self.source = source


# -----------------------------
# Request failures
# -----------------------------
class FetchError(ScraperError):
    """A single request against a source failed."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class TransportError(FetchError):
    """Connection, timeout or other transport-level failure."""


class NonSuccessStatus(FetchError):
    """HTTP status outside 2xx (429 is reported as RateLimitedError)."""

    def __init__(self, status: int, *, url: str | None = None, body: str = "") -> None:
        preview = (body or "")[:200].replace("\n", " ")
        super().__init__(f"HTTP {status} for {url!r}; body starts: {preview!r}", url=url)
        self.status = status
        self.body = body


class RateLimitedError(NonSuccessStatus):
    """HTTP 429. Consumed by the retry handler, never terminal on its own."""

    def __init__(self, *, url: str | None = None, body: str = "") -> None:
        super().__init__(429, url=url, body=body)


class ParseError(FetchError):
    """Malformed JSON/HTML. `body` is kept so it can be dumped for diagnosis."""

    def __init__(self, message: str, *, url: str | None = None, body: str = "") -> None:
        super().__init__(message, url=url)
        self.body = body


# -----------------------------
# Record-local / collaborator failures
# -----------------------------
class ContentNotFoundError(ScraperError):
    """An expected selector or field was absent from a detail page."""

    def __init__(self, what: str, *, url: str | None = None) -> None:
        super().__init__(f"Content not found in html: {what!r}")
        self.what = what
        self.url = url


class SinkError(ScraperError):
    """Persisting a batch failed."""


class ExtractError(ScraperError):
    """The AI extractor could not produce structured details."""
