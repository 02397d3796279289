"""Main-context dispatch: every state mutation runs on one context."""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Dispatcher(ABC):
    """Owns the single context that session and playback state live on."""

    @abstractmethod
    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Schedule fn(*args) on the main context. Safe to call from any thread."""
        ...

    @abstractmethod
    def run_in_worker(self, fn: Callable[[], Any], on_done: Callable[[Any], None] | None = None) -> None:
        """Run fn off the main context, then deliver its result to on_done on the main context.

        If fn raises, on_done receives the exception instance.
        """
        ...

    def shutdown(self) -> None:
        pass


class AsyncioDispatcher(Dispatcher):
    """Main context = an asyncio event loop; worker = one background thread.

    A single worker thread serializes every job handed to it, so document
    handles are only ever touched by one thread at a time.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="noveltts-worker")

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        if self._loop.is_closed():
            logger.debug("Dropping %s: event loop closed", getattr(fn, "__name__", fn))
            return
        self._loop.call_soon_threadsafe(fn, *args)

    def run_in_worker(self, fn: Callable[[], Any], on_done: Callable[[Any], None] | None = None) -> None:
        future = self._executor.submit(fn)
        if on_done is None:
            return

        def _deliver(fut) -> None:
            exc = fut.exception()
            self.post(on_done, exc if exc is not None else fut.result())

        future.add_done_callback(_deliver)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


class InlineDispatcher(Dispatcher):
    """Runs everything synchronously on the caller's thread (tests, scripts)."""

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        fn(*args)

    def run_in_worker(self, fn: Callable[[], Any], on_done: Callable[[Any], None] | None = None) -> None:
        try:
            result = fn()
        except Exception as e:
            result = e
        if on_done is not None:
            on_done(result)
