"""
Thread-safe map from request id to the in-flight request.

At most one entry exists per id. Registering an id that is already present
cancels the previous request before replacing it.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any

from httpfacade.client.cancellation import RequestHandle

logger = logging.getLogger(__name__)


@dataclass
class RegistryEntry:
    handle: RequestHandle
    callback: Any | None = None


class RequestRegistry:
    """
    Registry of in-flight requests keyed by request id.

    Every operation holds the same lock, so a lookup concurrent with a
    register or cancel sees either the old entry or the new one, never a
    half-updated state.
    """

    def __init__(self) -> None:
        self._entries: dict[int, RegistryEntry] = {}
        self._lock = threading.Lock()

    def register(self, request_id: int, entry: RegistryEntry) -> RegistryEntry | None:
        """Store ``entry`` under ``request_id``, canceling any previous request.

        Returns the replaced entry, if there was one.
        """
        with self._lock:
            previous = self._entries.pop(request_id, None)
            if previous is not None and not previous.handle.done():
                previous.handle.cancel()
                logger.debug(
                    "Replacing running request",
                    extra={"request_id": request_id},
                )
            self._entries[request_id] = entry
        return previous

    def cancel(self, request_id: int) -> bool:
        """Signal cancellation and forget the mapping.

        Returns True if a request that had not yet finished was signaled.
        """
        with self._lock:
            entry = self._entries.pop(request_id, None)
            if entry is None:
                return False
            if entry.handle.done():
                return False
            entry.handle.cancel()
            return True

    def is_running(self, request_id: int) -> bool:
        with self._lock:
            entry = self._entries.get(request_id)
            return entry is not None and not entry.handle.done()

    def lookup(self, request_id: int) -> Any | None:
        """Return the callback registered for ``request_id``, if any."""
        with self._lock:
            entry = self._entries.get(request_id)
            return entry.callback if entry is not None else None

    def release(self, request_id: int, handle: RequestHandle) -> bool:
        """Remove the entry for ``request_id`` only if it still holds ``handle``.

        Called by a finished worker. A newer request registered under the
        same id is left untouched.
        """
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None or entry.handle is not handle:
                return False
            del self._entries[request_id]
            return True

    def cancel_all(self) -> list[RequestHandle]:
        """Signal every registered request and empty the registry."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            entry.handle.cancel()
        return [entry.handle for entry in entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
