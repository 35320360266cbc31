# receipts.py
# Bounded request-id → PressReceipt store.
#
# Owned by whoever serves press/release to callers, never by the
# orchestrator. Least-recently-used entries are evicted beyond `capacity`
# and any entry older than `ttl_seconds` reads as absent.

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from cipher_press.errors import ValidationError
from cipher_press.models import PressReceipt

logger = logging.getLogger(__name__)


class ReceiptStore:
    def __init__(
        self,
        capacity: int = 1024,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValidationError(f"capacity must be at least 1, got {capacity}.")
        if ttl_seconds <= 0:
            raise ValidationError(f"ttl_seconds must be positive, got {ttl_seconds}.")
        self._capacity = capacity
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[float, PressReceipt]] = OrderedDict()

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at >= self._ttl

    def put(self, receipt: PressReceipt) -> None:
        with self._lock:
            self._entries[receipt.request_id] = (self._clock(), receipt)
            self._entries.move_to_end(receipt.request_id)
            while len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted receipt %s (capacity %d)", evicted, self._capacity)

    def get(self, request_id: str) -> PressReceipt | None:
        """The receipt for `request_id`, or None if unknown or expired."""
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None:
                return None
            stored_at, receipt = entry
            if self._expired(stored_at, self._clock()):
                del self._entries[request_id]
                return None
            self._entries.move_to_end(request_id)
            return receipt

    def purge(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [key for key, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        """Live entries only; expired ones are not counted."""
        with self._lock:
            now = self._clock()
            return sum(1 for stored_at, _ in self._entries.values() if not self._expired(stored_at, now))

    def __contains__(self, request_id: object) -> bool:
        """Membership without touching recency."""
        if not isinstance(request_id, str):
            return False
        with self._lock:
            entry = self._entries.get(request_id)
            return entry is not None and not self._expired(entry[0], self._clock())
