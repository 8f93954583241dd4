from __future__ import annotations

from ..errors import UnknownSourceError
from .base import SiteAdapter

# In-process registry: source tag -> adapter class
_REGISTRY: dict[str, type[SiteAdapter]] = {}


def register(cls: type[SiteAdapter]) -> type[SiteAdapter]:
    """
    Class decorator or direct call to register an adapter class.
    Requires cls.source to be a non-empty string.
    """
    source = getattr(cls, "source", "") or ""
    if not isinstance(source, str) or not source.strip():
        raise ValueError(f"Cannot register adapter {cls!r}: missing/empty 'source'.")
    key = source.strip().lower()
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        # Allow idempotent re-registers of the same class; otherwise reject.
        raise ValueError(f"Source {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(source: str) -> type[SiteAdapter]:
    """
    Look up an adapter class by source tag (case-insensitive).
    Raises UnknownSourceError if not found.
    """
    key = (source or "").strip().lower()
    if key not in _REGISTRY:
        raise UnknownSourceError(source)
    return _REGISTRY[key]


def all_sources() -> dict[str, type[SiteAdapter]]:
    """
    Return a shallow copy of the registry (useful for debugging/tests).
    """
    return dict(_REGISTRY)
