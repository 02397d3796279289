"""Shared fakes and fixtures."""

import fitz
import pytest

from noveltts.core.dispatch import Dispatcher, InlineDispatcher
from noveltts.core.errors import DocumentOpenError
from noveltts.library.preferences import PreferencesStore
from noveltts.playback.base import SpeechSynthesizer


class FakeDocument:
    def __init__(self, pages: list[str | None]):
        self.pages = pages
        self.closed = False

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def close(self) -> None:
        self.closed = True


class FakeSource:
    """In-memory documents keyed by reference."""

    def __init__(self, docs: dict[str, list[str | None]] | None = None):
        self.docs = docs or {}
        self.extracted: list[int] = []
        self.opened: list[FakeDocument] = []

    def open(self, ref: str) -> FakeDocument:
        if ref not in self.docs or not self.docs[ref]:
            raise DocumentOpenError(ref, "unreadable")
        doc = FakeDocument(self.docs[ref])
        self.opened.append(doc)
        return doc

    def page_text(self, document: FakeDocument, page_index: int) -> str | None:
        self.extracted.append(page_index)
        text = document.pages[page_index]
        if text == "<error>":
            raise RuntimeError("broken page")
        return text

    def thumbnail(self, document: FakeDocument, page_index: int) -> bytes:
        return f"png-{page_index}".encode()


class FakeSynthesizer(SpeechSynthesizer):
    def __init__(self):
        super().__init__()
        self.calls: list[tuple] = []
        self.utterance: int | None = None

    def speak(self, utterance: int, text: str) -> None:
        self.utterance = utterance
        self.calls.append(("speak", text))

    def pause(self) -> None:
        self.calls.append(("pause",))

    def resume(self) -> None:
        self.calls.append(("resume",))

    def cancel(self) -> None:
        self.calls.append(("cancel",))

    # Simulate engine callbacks for the latest utterance
    def say_range(self, offset: int, length: int, utterance: int | None = None) -> None:
        self.listener.speech_range(utterance or self.utterance, offset, length)

    def finish(self, utterance: int | None = None) -> None:
        self.listener.speech_finished(utterance or self.utterance)

    def fail(self, error: Exception) -> None:
        self.listener.speech_failed(self.utterance, error)


class ManualDispatcher(Dispatcher):
    """Queues worker jobs so tests decide when (and in what order) they complete."""

    def __init__(self):
        self.jobs: list[tuple] = []

    def post(self, fn, *args) -> None:
        fn(*args)

    def run_in_worker(self, fn, on_done=None) -> None:
        self.jobs.append((fn, on_done))

    def complete(self, index: int = 0) -> None:
        fn, on_done = self.jobs.pop(index)
        try:
            result = fn()
        except Exception as e:
            result = e
        if on_done is not None:
            on_done(result)

    def complete_all(self) -> None:
        while self.jobs:
            self.complete()


def _write_pdf(path, pages: list[str]) -> str:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    doc.save(str(path))
    doc.close()
    return str(path)


FIVE_PAGES = [f"Text of page {i}" for i in range(5)]


@pytest.fixture
def five_pages():
    return list(FIVE_PAGES)


@pytest.fixture
def make_pdf(tmp_path):
    """Write a simple PDF under tmp_path with one line of text per page (blank string = no text)."""
    def _make(name: str, pages: list[str]) -> str:
        return _write_pdf(tmp_path / name, pages)
    return _make


@pytest.fixture
def make_source():
    return FakeSource


@pytest.fixture
def manual_dispatcher():
    return ManualDispatcher()


@pytest.fixture
def prefs(tmp_path):
    store = PreferencesStore(db_path=tmp_path / "prefs.db")
    yield store
    store.close()


@pytest.fixture
def source():
    return FakeSource({
        "/books/five.pdf": FIVE_PAGES,
        "/books/two.pdf": ["first", None],
    })


@pytest.fixture
def synth():
    return FakeSynthesizer()


@pytest.fixture
def dispatcher():
    return InlineDispatcher()
