import logging
from dataclasses import dataclass

from .engine import PlaybackEngine

logger = logging.getLogger(__name__)


@dataclass
class NowPlayingInfo:
    title: str
    artwork: bytes | None = None


class NowPlayingCenter:
    """What external media controls display, and the play/pause commands they send."""

    def __init__(self, engine: PlaybackEngine):
        self.engine = engine
        self.info: NowPlayingInfo | None = None

    def publish(self, title: str, artwork: bytes | None = None) -> None:
        self.info = NowPlayingInfo(title=title, artwork=artwork)
        logger.info("Now playing: %s", title)

    def clear(self) -> None:
        self.info = None

    # Remote commands

    def play(self) -> None:
        self.engine.resume()

    def pause(self) -> None:
        self.engine.pause()

    def to_dict(self) -> dict:
        if self.info is None:
            return {"title": None, "has_artwork": False, "phase": self.engine.phase.value}
        return {
            "title": self.info.title,
            "has_artwork": self.info.artwork is not None,
            "phase": self.engine.phase.value,
        }
