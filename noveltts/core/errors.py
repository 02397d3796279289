"""Error types raised by the reading session."""


class NovelTTSError(Exception):
    """Base class for NovelTTS errors."""


class DocumentOpenError(NovelTTSError):
    """A document could not be opened (missing, unreadable, no pages, not a PDF)."""

    UNREADABLE = "unreadable"

    def __init__(self, ref: str, reason: str = ""):
        self.ref = ref
        self.kind = self.UNREADABLE
        self.reason = reason
        msg = f"Could not open {ref}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PageOutOfRangeError(NovelTTSError):
    """Requested page index is outside [0, page_count - 1]."""

    def __init__(self, index: int, page_count: int):
        self.index = index
        self.page_count = page_count
        super().__init__(f"Page index {index} out of range (document has {page_count} pages)")
