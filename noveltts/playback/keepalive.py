import threading
import logging

logger = logging.getLogger(__name__)


class KeepAliveLease:
    """One scoped request to keep running in the background. Releasing twice is harmless."""

    def __init__(self, owner: "BackgroundActivity", reason: str):
        self._owner = owner
        self.reason = reason
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._owner._release(self)

    def __enter__(self) -> "KeepAliveLease":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


class BackgroundActivity:
    """Tracks outstanding keep-alive leases for the process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active = 0

    @property
    def active(self) -> int:
        return self._active

    def acquire(self, reason: str) -> KeepAliveLease:
        with self._lock:
            self._active += 1
        logger.debug("Keep-alive acquired (%s); %d active", reason, self._active)
        return KeepAliveLease(self, reason)

    def _release(self, lease: KeepAliveLease) -> None:
        with self._lock:
            self._active -= 1
        logger.debug("Keep-alive released (%s); %d active", lease.reason, self._active)
