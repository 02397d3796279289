import queue
import threading
import logging

import pyttsx3

from .base import SpeechSynthesizer

logger = logging.getLogger(__name__)


class Pyttsx3Synthesizer(SpeechSynthesizer):
    """pyttsx3 speech driven from one long-lived thread.

    The speech thread creates the engine, runs its external loop
    (startLoop(False) + iterate()) and applies commands taken off a queue, so
    the engine is only ever touched by the thread that built it and the public
    methods never block.

    pyttsx3 has no pause, so pause stops the engine and remembers where the
    last word started; resume speaks the rest of the text from there. Word
    offsets reported to the listener are always relative to the full text.
    """

    POLL_INTERVAL_S = 0.05
    CLOSE_TIMEOUT_S = 2.0

    def __init__(self, voice: str | None = None, locale: str | None = None, rate: int = 180, volume: float = 1.0):
        super().__init__(voice=voice, locale=locale, rate=rate, volume=volume)
        self._commands: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._start_lock = threading.Lock()
        # Owned by the speech thread
        self._engine = None
        self._error: Exception | None = None
        self._utterance: int | None = None
        self._text = ""
        self._offset = 0
        self._position = 0
        self._active = False
        self._name: str | None = None

    # ── SpeechSynthesizer ────────────────────────────────────────────────

    def speak(self, utterance: int, text: str) -> None:
        self._send("speak", utterance, text)

    def pause(self) -> None:
        self._send("pause")

    def resume(self) -> None:
        self._send("resume")

    def cancel(self) -> None:
        self._send("cancel")

    def close(self) -> None:
        if self._thread is None:
            return
        self._commands.put(("quit", ()))
        self._thread.join(self.CLOSE_TIMEOUT_S)
        self._thread = None

    # ── Command side ─────────────────────────────────────────────────────

    def _send(self, command: str, *args) -> None:
        with self._start_lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name="speech", daemon=True)
                self._thread.start()
        self._commands.put((command, args))

    # ── Speech thread ────────────────────────────────────────────────────

    def _run(self) -> None:
        try:
            engine = pyttsx3.init()
            self._configure(engine)
            engine.connect("started-word", self._on_word)
            engine.connect("finished-utterance", self._on_finished)
            engine.startLoop(False)
            self._engine = engine
        except Exception as e:
            logger.exception("pyttsx3 could not start")
            self._error = e

        try:
            while True:
                try:
                    command, args = self._commands.get(timeout=self.POLL_INTERVAL_S)
                except queue.Empty:
                    command, args = None, ()
                if command == "quit":
                    break
                if command is not None:
                    self._handle(command, *args)
                if self._engine is not None:
                    self._engine.iterate()
        finally:
            if self._engine is not None:
                self._engine.endLoop()
                self._engine = None

    def _handle(self, command: str, *args) -> None:
        if self._error is not None:
            if command == "speak" and self.listener:
                self.listener.speech_failed(args[0], self._error)
            return

        try:
            if command == "speak":
                self._halt()
                self._utterance, self._text = args
                self._position = 0
                self._say_from(0)
            elif command == "pause":
                self._halt()
            elif command == "resume":
                if self._utterance is not None and not self._active:
                    self._say_from(self._position)
            elif command == "cancel":
                self._halt()
                self._utterance = None
        except Exception as e:
            logger.exception("pyttsx3 failed on %s", command)
            utterance = self._utterance
            self._active = False
            if utterance is not None and self.listener:
                self.listener.speech_failed(utterance, e)

    def _halt(self) -> None:
        # Clear the flag first: stop() reports the interrupted utterance as not completed
        self._active = False
        self._engine.stop()

    def _say_from(self, offset: int) -> None:
        self._offset = offset
        self._name = f"utterance-{self._utterance}@{offset}"
        self._active = True
        self._engine.say(self._text[offset:], self._name)

    def _is_current(self, name: str) -> bool:
        return self._active and name == self._name

    def _on_word(self, name, location, length) -> None:
        if not self._is_current(name):
            return
        self._position = self._offset + location
        if self.listener:
            self.listener.speech_range(self._utterance, self._position, length)

    def _on_finished(self, name, completed) -> None:
        if not completed or not self._is_current(name):
            return
        self._active = False
        utterance, self._utterance = self._utterance, None
        if self.listener:
            self.listener.speech_finished(utterance)

    def _configure(self, engine) -> None:
        engine.setProperty("rate", self.rate)
        engine.setProperty("volume", self.volume)
        voice_id = self.voice or self._voice_for_locale(engine)
        if voice_id:
            engine.setProperty("voice", voice_id)

    def _voice_for_locale(self, engine) -> str | None:
        if not self.locale:
            return None
        wanted = self.locale.lower().replace("_", "-")
        for v in engine.getProperty("voices") or []:
            langs = [
                (lang.decode("utf-8", "ignore") if isinstance(lang, bytes) else str(lang))
                for lang in (getattr(v, "languages", None) or [])
            ]
            meta = " ".join(langs + [str(v.id), str(getattr(v, "name", ""))]).lower().replace("_", "-")
            if wanted in meta:
                return v.id
        logger.warning("No voice found for locale %s; using default", self.locale)
        return None
