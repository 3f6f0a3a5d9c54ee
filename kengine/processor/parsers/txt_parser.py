import os
from kengine.processor.models import Page, RawDocument
from .base import BaseParser

_SUPPORTED_EXTENSIONS = {'.txt', '.md'}

# Salto de página (form feed), el separador que dejan pdftotext y similares
_PAGE_BREAK = '\f'


class TxtParser(BaseParser):
    """
    Parser para archivos .txt y .md.

    Estrategia de paginación:
      - Cada salto de página (\\f) cierra una página.
      - Sin saltos de página, el archivo entero es una sola página.

    El título se extrae, en orden de prioridad:
      - Primera línea si parece un título (≤10 palabras, sin punto final)
      - Nombre del archivo sin extensión
    """

    def can_handle(self, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path)
        return ext.lower() in _SUPPORTED_EXTENSIONS

    def parse(self, file_path: str) -> RawDocument:
        raw = self._read_file(file_path)
        chunks = raw.split(_PAGE_BREAK)
        # un \f final no abre una página nueva
        if len(chunks) > 1 and not chunks[-1].strip():
            chunks.pop()

        pages = [
            Page(index=i, source_page_number=i + 1, text=chunk.strip())
            for i, chunk in enumerate(chunks)
        ]
        return RawDocument(
            title       = self._extract_title(raw, file_path),
            source_path = file_path,
            pages       = pages,
        )

    # ------------------------------------------------------------------ #
    #  Helpers privados                                                    #
    # ------------------------------------------------------------------ #

    def _read_file(self, file_path: str) -> str:
        """Lee el archivo intentando UTF-8 primero, latin-1 como fallback."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError:
            with open(file_path, 'r', encoding='latin-1') as f:
                return f.read()

    def _extract_title(self, text: str, file_path: str) -> str:
        first_line = text.strip().split('\n')[0].strip().lstrip('#').strip()
        words = first_line.split()
        if words and len(words) <= 10 and not first_line.endswith('.'):
            return first_line
        return os.path.splitext(os.path.basename(file_path))[0]
