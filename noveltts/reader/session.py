import logging
from typing import Any, Protocol

from ..core.dispatch import Dispatcher
from ..core.errors import DocumentOpenError, PageOutOfRangeError
from ..library.catalog import title_for

logger = logging.getLogger(__name__)

NO_TEXT_PLACEHOLDER = "No text available"


class DocumentSource(Protocol):
    def open(self, ref: str) -> Any: ...
    def page_text(self, document: Any, page_index: int) -> str | None: ...
    def thumbnail(self, document: Any, page_index: int) -> bytes: ...


class PlaybackControl(Protocol):
    def stop(self) -> None: ...


class DocumentSession:
    """The open document, which page is shown, and that page's text.

    All methods must be called on the dispatcher's main context. Page text is
    extracted on the worker; each request is tagged with the open generation
    and page index it was made for, and a result whose tag no longer matches
    the current page is dropped.
    """

    def __init__(self, source: DocumentSource, dispatcher: Dispatcher, playback: PlaybackControl | None = None):
        self.source = source
        self.dispatcher = dispatcher
        self.playback = playback
        self.ref: str | None = None
        self.document: Any = None
        self.page_count: int = 0
        self.current_page_index: int | None = None
        self.current_page_text: str = ""
        self.extracting: bool = False
        self._generation = 0

    @property
    def has_document(self) -> bool:
        return self.document is not None

    @property
    def title(self) -> str:
        return title_for(self.ref) if self.ref else ""

    @property
    def at_first_page(self) -> bool:
        return self.current_page_index in (None, 0)

    @property
    def at_last_page(self) -> bool:
        return self.current_page_index is None or self.current_page_index >= self.page_count - 1

    # ── Lifecycle ────────────────────────────────────────────────────────

    def open(self, ref: str) -> "DocumentSession":
        """Open a document and show its first page. Raises DocumentOpenError."""
        try:
            document = self.source.open(ref)
        except DocumentOpenError:
            raise
        except Exception as e:
            raise DocumentOpenError(ref, str(e)) from e

        if self.has_document:
            self.close()

        self._generation += 1
        self.ref = ref
        self.document = document
        self.page_count = document.page_count
        self.current_page_index = 0
        logger.info("Session opened %s (%d pages)", self.title, self.page_count)
        self._extract(0)
        return self

    def close(self) -> None:
        if not self.has_document:
            return
        self._stop_playback()
        # Runs after any extraction already queued on the worker
        self.dispatcher.run_in_worker(self.document.close)
        logger.info("Session closed %s", self.title)
        self._generation += 1
        self.ref = None
        self.document = None
        self.page_count = 0
        self.current_page_index = None
        self.current_page_text = ""
        self.extracting = False

    # ── Navigation ───────────────────────────────────────────────────────

    def go_to(self, page_index: int) -> None:
        if not self.has_document or not 0 <= page_index < self.page_count:
            raise PageOutOfRangeError(page_index, self.page_count)
        self._stop_playback()
        self.current_page_index = page_index
        self._extract(page_index)

    def next(self) -> None:
        if self.has_document and not self.at_last_page:
            self.go_to(self.current_page_index + 1)

    def previous(self) -> None:
        if self.has_document and not self.at_first_page:
            self.go_to(self.current_page_index - 1)

    def advance_after_playback(self) -> None:
        """Called when an utterance finishes naturally. Stays put on the last page."""
        if self.at_last_page:
            logger.debug("Playback finished on last page; not advancing")
            return
        self.next()

    def thumbnail(self, page_index: int | None = None) -> bytes | None:
        if not self.has_document:
            return None
        if page_index is None:
            page_index = self.current_page_index
        if not 0 <= page_index < self.page_count:
            raise PageOutOfRangeError(page_index, self.page_count)
        return self.source.thumbnail(self.document, page_index)

    # ── Text extraction ──────────────────────────────────────────────────

    def _extract(self, page_index: int) -> None:
        tag = (self._generation, page_index)
        document = self.document
        self.current_page_text = ""
        self.extracting = True
        self.dispatcher.run_in_worker(
            lambda: self.source.page_text(document, page_index),
            lambda result: self._apply_extraction(tag, result),
        )

    def _apply_extraction(self, tag: tuple[int, int], result) -> None:
        if tag != (self._generation, self.current_page_index):
            logger.debug("Discarding stale extraction for page %d", tag[1])
            return
        if isinstance(result, Exception):
            logger.warning("Text extraction failed for page %d: %s", tag[1], result)
            result = None
        self.current_page_text = result or NO_TEXT_PLACEHOLDER
        self.extracting = False

    def _stop_playback(self) -> None:
        if self.playback is not None:
            self.playback.stop()

    def to_dict(self) -> dict:
        return {
            "has_document": self.has_document,
            "title": self.title,
            "page_count": self.page_count,
            "current_page_index": self.current_page_index,
            "current_page_text": self.current_page_text,
            "extracting": self.extracting,
        }
