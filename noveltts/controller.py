"""Top-level reader controller: owns the one catalog, session, and playback engine."""

import logging
from pathlib import Path

from .core.dispatch import Dispatcher
from .core.errors import DocumentOpenError, PageOutOfRangeError
from .library.catalog import CatalogEntry, CatalogStore
from .library.preferences import PreferencesStore
from .library.settings import Settings
from .playback.base import SpeechSynthesizer
from .playback.engine import PlaybackEngine
from .playback.keepalive import BackgroundActivity
from .playback.now_playing import NowPlayingCenter
from .reader.session import DocumentSession, DocumentSource

logger = logging.getLogger(__name__)


class ReaderController:
    """Wires the reading session to playback and the catalog.

    Every method must run on the dispatcher's main context.
    """

    def __init__(
        self,
        prefs: PreferencesStore,
        source: DocumentSource,
        synthesizer: SpeechSynthesizer,
        dispatcher: Dispatcher,
        library_dir: str | Path = "data/library",
        default_dark_mode: bool = False,
    ):
        self.prefs = prefs
        self.dispatcher = dispatcher
        self.library_dir = Path(library_dir)
        self.catalog = CatalogStore(prefs)
        self.settings = Settings(prefs, default_dark_mode=default_dark_mode)
        self.background = BackgroundActivity()
        self.engine = PlaybackEngine(synthesizer, dispatcher, background=self.background)
        self.session = DocumentSession(source, dispatcher, playback=self.engine)
        self.now_playing = NowPlayingCenter(self.engine)
        self.engine.add_finished_listener(self.session.advance_after_playback)
        self.catalog.load()

    # ── Catalog ──────────────────────────────────────────────────────────

    def add_document(self, path: str | Path) -> CatalogEntry:
        return self.catalog.add(str(path))

    def import_document(self, filename: str, data: bytes) -> CatalogEntry:
        """Save an uploaded PDF into the library, open it, and catalog it. Raises DocumentOpenError."""
        self.library_dir.mkdir(parents=True, exist_ok=True)
        target = self._unique_path(Path(filename).name)
        target.write_bytes(data)
        try:
            self.open_document(str(target))
        except DocumentOpenError:
            target.unlink(missing_ok=True)
            raise
        logger.info("Imported %s (%d bytes)", target.name, len(data))
        return self.catalog.add(str(target))

    def open_entry(self, entry_id: str) -> CatalogEntry | None:
        entry = self.catalog.get(entry_id)
        if entry is None:
            return None
        self.open_document(entry.location_ref)
        return entry

    def remove_entry(self, entry_id: str) -> None:
        entry = self.catalog.get(entry_id)
        if entry is not None and entry.location_ref == self.session.ref:
            self.close_document()
        self.catalog.remove(entry_id)

    def _unique_path(self, name: str) -> Path:
        target = self.library_dir / name
        stem, suffix = target.stem, target.suffix
        n = 1
        while target.exists():
            target = self.library_dir / f"{stem} ({n}){suffix}"
            n += 1
        return target

    # ── Session ──────────────────────────────────────────────────────────

    def open_document(self, ref: str) -> DocumentSession:
        """Open ref and publish it to the now-playing surface. Raises DocumentOpenError."""
        self.session.open(ref)
        artwork = None
        try:
            artwork = self.session.thumbnail(0)
        except Exception as e:
            logger.warning("No artwork for %s: %s", self.session.title, e)
        self.now_playing.publish(self.session.title, artwork)
        return self.session

    def close_document(self) -> None:
        self.session.close()
        self.now_playing.clear()

    def jump_to_page(self, raw: str) -> bool:
        """Go to a 1-based page number typed by the user. Bad input is ignored."""
        try:
            page_number = int(str(raw).strip())
        except ValueError:
            return False
        try:
            self.session.go_to(page_number - 1)
        except PageOutOfRangeError:
            return False
        return True

    # ── Playback ─────────────────────────────────────────────────────────

    def toggle_play_pause(self) -> None:
        if not self.session.has_document:
            return
        self.engine.toggle_play_pause(self.session.current_page_text)

    # ── Settings ─────────────────────────────────────────────────────────

    def factory_reset(self) -> None:
        self.catalog.clear()
        self.settings.reset()
        logger.info("Factory reset complete")

    def snapshot(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "playback": self.engine.to_dict(),
        }

    def shutdown(self) -> None:
        self.engine.stop()
        self.engine.synthesizer.close()
        self.close_document()
        self.dispatcher.shutdown()
        self.prefs.close()

