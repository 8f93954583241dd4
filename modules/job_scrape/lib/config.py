from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .models import Query
from .utils import truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


DEFAULT_SITES: tuple[str, ...] = ("xing", "linkedin", "instaffo")

DEFAULT_QUERIES: tuple[str, ...] = (
    "Swift",
    "React native",
    "Flutter",
    "Software Engineer",
    "Cloud",
    "Devops",
    "Kubernetes",
    "Java EE",
    "Go Programming Language",
    "Elixir",
    "Kotlin",
    "C++",
    "C#",
    "Dotnet",
    "Spring Boot",
    "Microservices",
    "Python Developer",
    "Linux Software",
    "Linux",
    "Backend Software Engineer",
    "Fullstack Software Engineer",
    "Rust Software Engineer",
    "Solid JS",
    "Svelte",
    "NextJS",
    "Python",
)

SINKS = ("sqlite", "jsonl")
MAX_BATCH_SIZE = 5000


# -----------------------------
# Models
# -----------------------------
@dataclass
class Settings:
    """
    Canonical configuration for a 'job_scrape' run.

    The run scrapes every selected site for every query; sites that take a
    location filter scrape the product query x location. Secrets (the
    Instaffo session cookie, the OpenAI key) come from the environment or
    from `source_params`.
    """

    # Selection
    sites: list[str] = field(default_factory=lambda: list(DEFAULT_SITES))
    queries: list[str] = field(default_factory=lambda: list(DEFAULT_QUERIES))
    locations: list[str] = field(default_factory=list)
    queries_path: str | None = None

    # Concurrency
    workers_per_query: int = 2
    max_concurrency: int = 50
    batch_size: int = 500
    rate_limit_sleep: float = 5.0

    # Output
    sink: str = "sqlite"
    sqlite_path: str = "/app/local/state/jobs.db"
    output_path: str = "/app/local/state/jobs.jsonl"
    dump_dir: str | None = None

    # Runtime behavior
    extract_details: bool = False
    skip_network: bool = False
    source_params: dict[str, dict[str, Any]] = field(default_factory=dict)

    # ------------- convenience -------------
    def params_for(self, source: str) -> dict[str, Any]:
        return dict(self.source_params.get(source, {}))

    def query_list(self, *, with_locations: bool) -> list[Query]:
        """Queries for one site; `with_locations` expands to query x location."""
        if not with_locations or not self.locations:
            return [Query(term=q) for q in self.queries]
        return [Query(term=q, location=loc) for q in self.queries for loc in self.locations]

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Expected kwargs (all optional):

            sites: list[str] | "xing,linkedin"     # default: every built-in site
            queries: list[str] | "a,b"             # default: built-in query list
            locations: list[str] | "Berlin,Köln"   # default: none
            queries_path: str                      # JSON {"queries": [...], "locations": [...]}

            workers_per_query: int = 2
            max_concurrency: int = 50
            batch_size: int = 500                  # 1..5000
            rate_limit_sleep: float = 5.0

            sink: "sqlite" | "jsonl" = "sqlite"
            sqlite_path: str = "/app/local/state/jobs.db"
            output_path: str = "/app/local/state/jobs.jsonl"
            dump_dir: str                          # side files for malformed responses

            extract_details: bool = false
            skip_network: bool = false
            source_params: {source: {...}}         # e.g. {"instaffo": {"filters": {"remote": true}}}
        """
        kw = dict(kwargs or {})

        sites = [s.lower() for s in _str_list(kw.get("sites"), "sites")] or list(DEFAULT_SITES)
        queries = _str_list(kw.get("queries"), "queries")
        locations = _str_list(kw.get("locations"), "locations")

        queries_path = kw.get("queries_path")
        queries_path = str(queries_path).strip() or None if queries_path is not None else None
        if queries_path:
            file_queries, file_locations = _load_queries_file(queries_path)
            queries = file_queries or queries
            locations = file_locations or locations

        source_params = kw.get("source_params") or {}
        if isinstance(source_params, str):
            try:
                source_params = json.loads(source_params)
            except json.JSONDecodeError as e:
                raise ConfigError("'source_params' is not valid JSON.") from e
        if not isinstance(source_params, dict) or not all(isinstance(v, dict) for v in source_params.values()):
            raise ConfigError("'source_params' must map source -> object.")

        dump_dir = kw.get("dump_dir")
        settings = cls(
            sites=sites,
            queries=queries or list(DEFAULT_QUERIES),
            locations=locations,
            queries_path=queries_path,
            workers_per_query=_int(kw, "workers_per_query", 2),
            max_concurrency=_int(kw, "max_concurrency", 50),
            batch_size=_int(kw, "batch_size", 500),
            rate_limit_sleep=_float(kw, "rate_limit_sleep", 5.0),
            sink=str(kw.get("sink") or "sqlite").strip().lower(),
            sqlite_path=str(kw.get("sqlite_path") or "/app/local/state/jobs.db"),
            output_path=str(kw.get("output_path") or "/app/local/state/jobs.jsonl"),
            dump_dir=str(dump_dir).strip() or None if dump_dir else None,
            extract_details=truthy(kw.get("extract_details")),
            skip_network=truthy(kw.get("skip_network")),
            source_params={str(k).lower(): dict(v) for k, v in source_params.items()},
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _str_list(value: Any, name: str) -> list[str]:
    """Accept a list of strings or a comma-separated string; drop blanks, keep order, dedupe."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ConfigError(f"'{name}' must be a list or a comma-separated string.")
    out: list[str] = []
    for item in items:
        s = str(item).strip()
        if s and s not in out:
            out.append(s)
    return out


def _int(kw: Mapping[str, Any], name: str, default: int) -> int:
    raw = kw.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be an integer, got {raw!r}.") from e


def _float(kw: Mapping[str, Any], name: str, default: float) -> float:
    raw = kw.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number, got {raw!r}.") from e


def _load_queries_file(path: str) -> tuple[list[str], list[str]]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"job_scrape queries file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"job_scrape queries file is invalid JSON: {path}") from e
    if isinstance(data, list):
        return _str_list(data, "queries"), []
    if not isinstance(data, dict):
        raise ConfigError(f"Expected an object or a list in {path}")
    return _str_list(data.get("queries"), "queries"), _str_list(data.get("locations"), "locations")


def _validate_settings(s: Settings) -> None:
    if not s.sites:
        raise ConfigError("No sites selected.")
    if not s.queries:
        raise ConfigError("No queries to run.")
    if s.workers_per_query < 1:
        raise ConfigError("'workers_per_query' must be >= 1.")
    if s.max_concurrency < 1:
        raise ConfigError("'max_concurrency' must be >= 1.")
    if not 1 <= s.batch_size <= MAX_BATCH_SIZE:
        raise ConfigError(f"'batch_size' must be between 1 and {MAX_BATCH_SIZE}.")
    if s.rate_limit_sleep < 0:
        raise ConfigError("'rate_limit_sleep' cannot be negative.")
    if s.sink not in SINKS:
        raise ConfigError(f"'sink' must be one of {', '.join(SINKS)}, got {s.sink!r}.")
    if s.sink == "sqlite" and not s.sqlite_path.strip():
        raise ConfigError("'sqlite_path' cannot be empty.")
    if s.sink == "jsonl" and not s.output_path.strip():
        raise ConfigError("'output_path' cannot be empty.")
