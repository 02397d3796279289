from abc import ABC, abstractmethod
from typing import Protocol


class SpeechListener(Protocol):
    """Receives synthesizer progress. Calls may arrive on any thread."""

    def speech_range(self, utterance: int, offset: int, length: int) -> None: ...
    def speech_finished(self, utterance: int) -> None: ...
    def speech_failed(self, utterance: int, error: Exception) -> None: ...


class SpeechSynthesizer(ABC):
    """Abstract interface for text-to-speech engines."""

    def __init__(self, voice: str | None = None, locale: str | None = None, rate: int = 180, volume: float = 1.0):
        self.voice = voice
        self.locale = locale
        self.rate = rate
        self.volume = volume
        self.listener: SpeechListener | None = None

    def set_listener(self, listener: SpeechListener) -> None:
        self.listener = listener

    @abstractmethod
    def speak(self, utterance: int, text: str) -> None:
        """Start vocalizing text, replacing anything in flight. Must not block."""
        ...

    @abstractmethod
    def pause(self) -> None:
        """Halt output, keeping the position for resume()."""
        ...

    @abstractmethod
    def resume(self) -> None:
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Stop immediately. No finished callback is sent for the cancelled utterance."""
        ...

    def close(self) -> None:
        """Release engine resources."""
