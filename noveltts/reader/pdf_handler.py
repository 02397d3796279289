import fitz  # PyMuPDF
import logging
import threading
from pathlib import Path
from dataclasses import dataclass, field

from ..core.errors import DocumentOpenError
from ..library.catalog import parse_location

logger = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 240


@dataclass
class OpenDocument:
    """Handle to an open PDF."""
    path: Path
    doc: fitz.Document
    lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def page_count(self) -> int:
        return self.doc.page_count

    def close(self) -> None:
        with self.lock:
            if not self.doc.is_closed:
                self.doc.close()


class PDFHandler:
    """Opens PDFs and pulls per-page text and thumbnails using PyMuPDF."""

    def open(self, ref: str | Path) -> OpenDocument:
        """Open a plain path or file:// URI. Raises DocumentOpenError."""
        location = parse_location(str(ref))
        if location is None:
            raise DocumentOpenError(str(ref), "not a local file reference")
        pdf_path = Path(location)
        if not pdf_path.is_file() or pdf_path.stat().st_size == 0:
            raise DocumentOpenError(str(pdf_path), "file is missing or empty")
        try:
            doc = fitz.open(str(pdf_path))
        except Exception as e:
            raise DocumentOpenError(str(pdf_path), str(e)) from e

        if not doc.is_pdf or doc.page_count == 0:
            doc.close()
            raise DocumentOpenError(str(pdf_path), "not a PDF with pages")

        logger.info("Opened %s (%d pages)", pdf_path.name, doc.page_count)
        return OpenDocument(path=pdf_path, doc=doc)

    def page_text(self, document: OpenDocument, page_index: int) -> str | None:
        """Plain text of one page (0-indexed), or None when the page has none."""
        with document.lock:
            text = document.doc[page_index].get_text("text").strip()
        logger.debug("Extracted %d chars from page %d of %s", len(text), page_index, document.path.name)
        return text or None

    def thumbnail(self, document: OpenDocument, page_index: int, width: int = THUMBNAIL_WIDTH) -> bytes:
        """Render one page to PNG, scaled to the given width."""
        with document.lock:
            page = document.doc[page_index]
            zoom = width / page.rect.width if page.rect.width else 1.0
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom))
        return pix.tobytes("png")
