from __future__ import annotations

import threading

from .models import RawListing, identity_key


class DedupIndex:
    """
    Run-scoped identity index. The only mutable state shared between workers.

    `admit` is a single check-and-insert under a lock, so a key is admitted
    exactly once no matter how many workers race on it. Never persisted: a new
    run starts empty (cross-run dedup belongs to the sink).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: set[str] = set()
        self._rejected = 0

    def admit(self, item: RawListing) -> bool:
        return self.admit_key(identity_key(item))

    def admit_key(self, key: str) -> bool:
        with self._lock:
            if key in self._seen:
                self._rejected += 1
                return False
            self._seen.add(key)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._seen

    @property
    def duplicates(self) -> int:
        with self._lock:
            return self._rejected
