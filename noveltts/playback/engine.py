"""Speech playback state machine: idle / speaking / paused, plus the highlight range."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..core.dispatch import Dispatcher
from .base import SpeechSynthesizer
from .keepalive import BackgroundActivity, KeepAliveLease

logger = logging.getLogger(__name__)


class PlaybackPhase(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    PAUSED = "paused"


@dataclass(frozen=True)
class HighlightRange:
    offset: int
    length: int


class PlaybackEngine:
    """Drives a SpeechSynthesizer and mirrors its progress.

    State changes only happen on the dispatcher's main context; synthesizer
    callbacks are posted there first. Callbacks tagged with an utterance other
    than the live one are ignored.
    """

    def __init__(self, synthesizer: SpeechSynthesizer, dispatcher: Dispatcher,
                 background: BackgroundActivity | None = None):
        self.synthesizer = synthesizer
        self.dispatcher = dispatcher
        self.background = background or BackgroundActivity()
        self.phase = PlaybackPhase.IDLE
        self.highlight: HighlightRange | None = None
        self._utterance = 0
        self._lease: KeepAliveLease | None = None
        self._finished_listeners: list[Callable[[], None]] = []
        synthesizer.set_listener(self)

    def add_finished_listener(self, callback: Callable[[], None]) -> None:
        """Register an auto-advance handler, called after each natural completion."""
        self._finished_listeners.append(callback)

    # ── Transport ────────────────────────────────────────────────────────

    def speak(self, text: str) -> None:
        if self.phase != PlaybackPhase.IDLE:
            self.synthesizer.cancel()
        self._release_lease()
        self._utterance += 1
        self.highlight = None
        self.phase = PlaybackPhase.SPEAKING
        self._lease = self.background.acquire("speech")
        logger.debug("Utterance %d: speaking %d chars", self._utterance, len(text))
        self.synthesizer.speak(self._utterance, text)

    def pause(self) -> None:
        if self.phase != PlaybackPhase.SPEAKING:
            return
        self.synthesizer.pause()
        self.phase = PlaybackPhase.PAUSED

    def resume(self) -> None:
        if self.phase != PlaybackPhase.PAUSED:
            return
        self.synthesizer.resume()
        self.phase = PlaybackPhase.SPEAKING

    def stop(self) -> None:
        if self.phase != PlaybackPhase.IDLE:
            self.synthesizer.cancel()
            # Late callbacks for the cancelled utterance no longer match
            self._utterance += 1
        self._reset()

    def toggle_play_pause(self, text: str) -> None:
        """Pause while speaking; otherwise start the page over from the beginning."""
        if self.phase == PlaybackPhase.SPEAKING:
            self.pause()
            return
        self.highlight = None
        self.speak(text)

    # ── Synthesizer events (main context) ────────────────────────────────

    def on_range_will_speak(self, highlight: HighlightRange) -> None:
        self.highlight = highlight

    def on_utterance_finished(self) -> None:
        self._reset()
        logger.debug("Utterance %d finished", self._utterance)
        for callback in list(self._finished_listeners):
            callback()

    # ── SpeechListener (any thread) ──────────────────────────────────────

    def speech_range(self, utterance: int, offset: int, length: int) -> None:
        self.dispatcher.post(self._deliver_range, utterance, HighlightRange(offset, length))

    def speech_finished(self, utterance: int) -> None:
        self.dispatcher.post(self._deliver_finished, utterance)

    def speech_failed(self, utterance: int, error: Exception) -> None:
        self.dispatcher.post(self._deliver_failed, utterance, error)

    def _is_live(self, utterance: int) -> bool:
        return utterance == self._utterance and self.phase != PlaybackPhase.IDLE

    def _deliver_range(self, utterance: int, highlight: HighlightRange) -> None:
        if self._is_live(utterance):
            self.on_range_will_speak(highlight)

    def _deliver_finished(self, utterance: int) -> None:
        if self._is_live(utterance):
            self.on_utterance_finished()

    def _deliver_failed(self, utterance: int, error: Exception) -> None:
        if not self._is_live(utterance):
            return
        logger.error("Speech failed for utterance %d: %s", utterance, error)
        self.stop()

    # ── Internals ────────────────────────────────────────────────────────

    def _reset(self) -> None:
        self.phase = PlaybackPhase.IDLE
        self.highlight = None
        self._release_lease()

    def _release_lease(self) -> None:
        if self._lease is not None:
            self._lease.release()
            self._lease = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "highlight": (
                {"offset": self.highlight.offset, "length": self.highlight.length}
                if self.highlight else None
            ),
        }
