import os
from kengine.processor.models import RawDocument
from .base import BaseParser
from .pdf_parser import PdfParser
from .txt_parser import TxtParser

# Límite de tamaño de documento
MAX_FILE_BYTES = 50 * 1024 * 1024


class UnsupportedFormatError(Exception):
    """Se lanza cuando ningún parser registrado puede manejar el archivo."""
    pass


class DocumentTooLargeError(Exception):
    """El archivo supera MAX_FILE_BYTES."""
    pass


class ParserFactory:
    """
    Registro central de parsers.

    Uso básico:
        doc = ParserFactory.parse_file("/ruta/al/documento.pdf")

    Uso con parser registrado externamente:
        factory = ParserFactory()
        factory.register(MiParserCustom())
        doc = factory.parse("/ruta/a/las/notas.md")

    Los parsers se evalúan en orden de registro.
    El primero que responda True a can_handle() gana.
    """

    # Parsers disponibles por defecto — en orden de prioridad
    _DEFAULT_PARSERS: list[BaseParser] = [
        PdfParser(),
        TxtParser(),   # va último porque .txt es el fallback más permisivo
    ]

    def __init__(self, max_bytes: int = MAX_FILE_BYTES):
        self._parsers: list[BaseParser] = list(self._DEFAULT_PARSERS)
        self._max_bytes = max_bytes

    def register(self, parser: BaseParser) -> None:
        """Registra un parser adicional al inicio de la lista (mayor prioridad)."""
        self._parsers.insert(0, parser)

    def parse(self, file_path: str) -> RawDocument:
        """
        Detecta el parser correcto para el archivo y devuelve un RawDocument.

        Raises:
            FileNotFoundError: si el archivo no existe.
            DocumentTooLargeError: si supera el límite de tamaño.
            UnsupportedFormatError: si ningún parser puede manejarlo.
        """
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Archivo no encontrado: {file_path}")

        size = os.path.getsize(file_path)
        if size > self._max_bytes:
            raise DocumentTooLargeError(
                f"El archivo pesa {size / 1024 / 1024:.1f} MB; "
                f"el máximo es {self._max_bytes // 1024 // 1024} MB"
            )

        for parser in self._parsers:
            if parser.can_handle(file_path):
                return parser.parse(file_path)

        ext = os.path.splitext(file_path)[1].lower()
        raise UnsupportedFormatError(
            f"Formato '{ext}' no soportado. "
            f"Formatos disponibles: .pdf, .txt, .md"
        )

    @classmethod
    def parse_file(cls, file_path: str) -> RawDocument:
        """Shortcut: ParserFactory.parse_file('documento.pdf')"""
        return cls().parse(file_path)
