"""The user's saved list of documents, persisted as one JSON array."""

import json
import uuid
import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

from .preferences import PreferencesStore

logger = logging.getLogger(__name__)

CATALOG_KEY = "catalog"


def parse_location(ref) -> str | None:
    """Return the filesystem path a reference points at, or None if it can't be parsed.

    Plain paths and file:// URIs are accepted.
    """
    if not isinstance(ref, str) or not ref.strip():
        return None
    parsed = urlparse(ref)
    if parsed.scheme == "file":
        path = unquote(parsed.path)
        return path or None
    # Single-letter schemes are Windows drive letters, not URIs
    if parsed.scheme and len(parsed.scheme) > 1:
        return None
    return ref


def title_for(ref: str) -> str:
    """Last path segment of a reference with the extension stripped."""
    path = parse_location(ref) or ref
    return PurePosixPath(path.replace("\\", "/")).stem


@dataclass
class CatalogEntry:
    location_ref: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def title(self) -> str:
        return title_for(self.location_ref)

    def to_record(self) -> dict:
        return {"locationRef": self.location_ref}


class CatalogStore:
    """Ordered, append-only catalog; every mutation overwrites the stored snapshot."""

    def __init__(self, prefs: PreferencesStore, key: str = CATALOG_KEY):
        self._prefs = prefs
        self._key = key
        self._entries: list[CatalogEntry] = []

    @property
    def entries(self) -> list[CatalogEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> CatalogEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def load(self) -> list[CatalogEntry]:
        """Read the persisted list. Never raises: bad data yields fewer (or no) entries."""
        self._entries = self._read()
        logger.info("Catalog loaded: %d entries", len(self._entries))
        return self.entries

    def _read(self) -> list[CatalogEntry]:
        raw = self._prefs.get(self._key)
        if raw is None:
            return []
        try:
            records = json.loads(raw)
        except ValueError:
            logger.warning("Stored catalog is not valid JSON; starting empty")
            return []
        if not isinstance(records, list):
            logger.warning("Stored catalog is not a list; starting empty")
            return []

        entries = []
        for record in records:
            ref = record.get("locationRef") if isinstance(record, dict) else None
            if parse_location(ref) is None:
                logger.warning("Dropping unreadable catalog record: %r", record)
                continue
            entries.append(CatalogEntry(location_ref=ref))
        return entries

    def append(self, entry: CatalogEntry) -> CatalogEntry:
        self._entries.append(entry)
        self._persist()
        logger.info("Catalog: added %s", entry.title)
        return entry

    def add(self, location_ref: str) -> CatalogEntry:
        return self.append(CatalogEntry(location_ref=location_ref))

    def remove(self, entry_id: str) -> None:
        remaining = [e for e in self._entries if e.id != entry_id]
        if len(remaining) == len(self._entries):
            return
        self._entries = remaining
        self._persist()
        logger.info("Catalog: removed %s", entry_id)

    def clear(self) -> None:
        self._entries.clear()
        self._prefs.remove(self._key)
        logger.info("Catalog cleared")

    def _persist(self) -> None:
        self._prefs.set(self._key, json.dumps([e.to_record() for e in self._entries]))
