# kengine/processor/parsers/pdf_parser.py
import os
import logging

from kengine.processor.models import Page, RawDocument
from .base import BaseParser

logger = logging.getLogger(__name__)


class PdfParser(BaseParser):
    """
    Parser para archivos .pdf.

    Extrae el texto de cada página usando PyMuPDF (fitz).
    Una Page por página del PDF, incluso si está vacía: el detector
    de secciones necesita la paginación completa para no perder índices.

    Requiere: pip install pymupdf
    """

    def can_handle(self, file_path: str) -> bool:
        return file_path.lower().endswith(".pdf")

    def parse(self, file_path: str) -> RawDocument:
        try:
            import fitz  # pymupdf
        except ImportError:
            raise ImportError(
                "El soporte PDF requiere pymupdf. Instálalo con: pip install pymupdf"
            )

        doc = fitz.open(file_path)
        try:
            pages = [
                Page(
                    index              = i,
                    source_page_number = i + 1,
                    text               = _normalize_whitespace(page.get_text("text")),
                )
                for i, page in enumerate(doc)
            ]
            metadata_title = (doc.metadata or {}).get("title") or ""
        finally:
            doc.close()

        logger.debug("%s: %d páginas extraídas", file_path, len(pages))

        return RawDocument(
            title       = metadata_title.strip() or os.path.splitext(os.path.basename(file_path))[0],
            source_path = file_path,
            pages       = pages,
        )


def _normalize_whitespace(text: str) -> str:
    """Los fragmentos de texto de una página se unen con un solo espacio."""
    return " ".join(text.split())
