from __future__ import annotations

import logging
import threading
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Protocol

from chatstream.errors import DuplicateStreamError
from chatstream.request import CompletionRequest
from chatstream.session import StreamSession

logger = logging.getLogger(__name__)


class CancelHandle(Protocol):
    def cancel(self, msg=None) -> bool: ...


@dataclass
class RegistryEntry:
    session: StreamSession
    handle: CancelHandle | None = None


class StreamRegistry:
    """Active streams by identifier.

    The id map is the only state shared between streams and is guarded
    by a lock; each session is touched only by its own driving task.
    An entry is removed exactly once, by :meth:`release` on a terminal
    event or by :meth:`cancel`.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, RegistryEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, stream_id: Hashable) -> bool:
        with self._lock:
            return stream_id in self._entries

    def active_ids(self) -> list[Hashable]:
        with self._lock:
            return list(self._entries)

    def get(self, stream_id: Hashable) -> StreamSession | None:
        with self._lock:
            entry = self._entries.get(stream_id)
        return entry.session if entry else None

    def begin(self, stream_id: Hashable, request: CompletionRequest | None = None) -> StreamSession:
        """Create and register the session for a new stream.

        Raises:
            DuplicateStreamError: If ``stream_id`` is still active.
        """
        with self._lock:
            if stream_id in self._entries:
                raise DuplicateStreamError(stream_id)
            session = StreamSession(stream_id, request)
            self._entries[stream_id] = RegistryEntry(session=session)
        logger.debug(f"Registered stream {stream_id!r}")
        return session

    def attach(self, stream_id: Hashable, handle: CancelHandle) -> None:
        """Record the cancellation handle for an already-registered stream."""
        with self._lock:
            entry = self._entries.get(stream_id)
            if entry is not None:
                entry.handle = handle
                return
        # Cancelled between begin() and attach(): stop the transport too.
        handle.cancel()

    def is_current(self, stream_id: Hashable, session: StreamSession) -> bool:
        """Whether ``session`` is still the registered session for its id."""
        with self._lock:
            entry = self._entries.get(stream_id)
        return entry is not None and entry.session is session

    def release(self, stream_id: Hashable, session: StreamSession) -> bool:
        """Drop the entry after a terminal event, if it still belongs to ``session``."""
        with self._lock:
            entry = self._entries.get(stream_id)
            if entry is None or entry.session is not session:
                return False
            del self._entries[stream_id]
        logger.debug(f"Released stream {stream_id!r} ({session.state.value})")
        return True

    def cancel(self, stream_id: Hashable) -> bool:
        """Cancel one stream.  Unknown or finished ids are a no-op."""
        with self._lock:
            entry = self._entries.pop(stream_id, None)
        if entry is None:
            return False
        self._stop(entry)
        logger.info(f"Cancelled stream {stream_id!r}")
        return True

    def cancel_all(self) -> int:
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            self._stop(entry)
        if entries:
            logger.info(f"Cancelled {len(entries)} active streams")
        return len(entries)

    @staticmethod
    def _stop(entry: RegistryEntry) -> None:
        entry.session.cancel()
        if entry.handle is not None:
            entry.handle.cancel()
