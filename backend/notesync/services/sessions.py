"""
NoteSync Backend — Per-User Session Registry
==============================================

What:  Hands out one NoteSynchronizer per signed-in identity.
Why:   A synchronizer owns a user's displayed note sequence, its mutation lock
       and its refresh sequencing token. Requests from the same user must share
       them; different users must not.
How:   Synchronizers are created lazily on first use and dropped on sign-out
       or after `idle_timeout` seconds without a request. The gateways are
       shared; they carry no per-user state.

Idle eviction:
    Every get() sweeps sessions whose last use is older than idle_timeout.
    A session with a create or delete in flight is never evicted. An evicted
    user simply gets a fresh session (empty sequence) on their next request;
    the next refresh repopulates it from the record service.
"""

import logging
import time
from typing import Callable, Dict, Optional

from notesync.services.note_synchronizer import NoteSynchronizer
from notesync.services.paths import DEFAULT_NAMESPACE
from notesync.services.record_gateway import RecordGateway
from notesync.services.storage_gateway import StorageGateway

logger = logging.getLogger(__name__)


class SynchronizerRegistry:
    """Maps identity → NoteSynchronizer, evicting sessions left idle."""

    def __init__(
        self,
        records: RecordGateway,
        storage: StorageGateway,
        call_timeout: Optional[float] = None,
        namespace: str = DEFAULT_NAMESPACE,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            idle_timeout: Seconds of inactivity after which a session is
                          dropped. None keeps sessions until sign-out.
            clock: Monotonic time source (overridden in tests)
        """
        self.records = records
        self.storage = storage
        self.call_timeout = call_timeout
        self.namespace = namespace
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: Dict[str, NoteSynchronizer] = {}
        self._last_used: Dict[str, float] = {}

    def get(self, identity: str) -> NoteSynchronizer:
        now = self._clock()
        self._evict_idle(now)

        synchronizer = self._sessions.get(identity)
        if synchronizer is None:
            synchronizer = NoteSynchronizer(
                records=self.records,
                storage=self.storage,
                identity=identity,
                call_timeout=self.call_timeout,
                namespace=self.namespace,
            )
            self._sessions[identity] = synchronizer
            logger.info("Opened note session for %s", identity)
        self._last_used[identity] = now
        return synchronizer

    def _evict_idle(self, now: float) -> int:
        if self.idle_timeout is None:
            return 0
        cutoff = now - self.idle_timeout
        idle = [
            identity
            for identity, last_used in self._last_used.items()
            if last_used < cutoff and not self._sessions[identity].busy
        ]
        for identity in idle:
            del self._sessions[identity]
            del self._last_used[identity]
        if idle:
            logger.info("Evicted %d idle note sessions", len(idle))
        return len(idle)

    def discard(self, identity: str) -> bool:
        """Forget a user's session state (sign-out). Returns True if one existed."""
        self._last_used.pop(identity, None)
        removed = self._sessions.pop(identity, None) is not None
        if removed:
            logger.info("Closed note session for %s", identity)
        return removed

    def __len__(self) -> int:
        return len(self._sessions)
