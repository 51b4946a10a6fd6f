"""
In-process registry correlating carrier call ids with call-creation data.

Status callbacks only carry the carrier's call id, so entries are keyed by it.
Entries expire after a configurable time-to-live; a background sweep removes
them so the map stays bounded under sustained load.
"""

import threading
import time
from collections.abc import Callable

from callrelay.calls.models import RegistryEntry
from callrelay.shared.logging import get_logger

logger = get_logger(__name__)


class CallRegistry:
    """Thread-safe carrierCallId -> RegistryEntry map with TTL expiry."""

    def __init__(
        self,
        ttl_seconds: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the registry.

        Args:
            ttl_seconds: Lifetime of an entry; 0 disables expiry.
            clock: Monotonic time source, injectable for tests.
        """
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, RegistryEntry]] = {}
        self._lock = threading.Lock()

    def _expired(self, inserted_at: float, now: float) -> bool:
        return self._ttl_seconds > 0 and now - inserted_at >= self._ttl_seconds

    def put(self, carrier_call_id: str, entry: RegistryEntry) -> None:
        if not carrier_call_id:
            raise ValueError("carrier_call_id must be non-empty")

        with self._lock:
            replaced = carrier_call_id in self._entries
            self._entries[carrier_call_id] = (self._clock(), entry)
            size = len(self._entries)

        if replaced:
            logger.warning(
                "Registry entry overwritten",
                extra={"call_sid": carrier_call_id},
            )
        logger.info(
            "Stored call data",
            extra={
                "call_sid": carrier_call_id,
                "provider_call_id": entry.provider_call_id,
                "registry_size": size,
            },
        )

    def get(self, carrier_call_id: str) -> RegistryEntry | None:
        """Look up an entry; unknown and expired ids both return None."""
        with self._lock:
            item = self._entries.get(carrier_call_id)
            if item is None:
                return None
            inserted_at, entry = item
            if self._expired(inserted_at, self._clock()):
                del self._entries[carrier_call_id]
                return None
            return entry

    def sweep(self) -> int:
        """Remove expired entries and return how many were dropped."""
        if self._ttl_seconds <= 0:
            return 0
        with self._lock:
            now = self._clock()
            expired = [k for k, (ts, _) in self._entries.items() if self._expired(ts, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("Registry sweep", extra={"removed": len(expired)})
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, carrier_call_id: object) -> bool:
        return isinstance(carrier_call_id, str) and self.get(carrier_call_id) is not None
