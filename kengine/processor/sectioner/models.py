from dataclasses import dataclass, field
from enum import Enum

from kengine.processor.models import Section


class DetectionStrategy(Enum):
    """Qué nivel de la heurística produjo las secciones."""
    HEADINGS       = "headings"         # encabezados y páginas cortas
    WINDOWS        = "windows"          # ventanas de tamaño fijo
    WHOLE_DOCUMENT = "whole_document"   # documento vacío → una sola sección


@dataclass
class DetectionResult:
    sections: list[Section]
    strategy: DetectionStrategy

    @property
    def page_count(self) -> int:
        return sum(len(s.pages) for s in self.sections)


@dataclass
class SectionConfig:
    """Configuración del detector. Centralizada y explícita."""
    short_page_chars:    int = 100   # página "corta" = posible portadilla
    min_pages_before_split: int = 2  # la sección en curso debe tener MÁS que esto
    title_max_chars:     int = 60
    window_min_pages:    int = 3
    window_max_sections: int = 8
    window_pages_per_section: int = 4
    window_trigger_pages: int = 5    # el fallback solo aplica con más páginas que esto

    first_title:    str = "Introduction"
    opening_title:  str = "Opening"
    document_title: str = "Document"

    # Palabra clave estructural seguida de un numeral, al inicio del texto
    heading_patterns: list[str] = field(default_factory=lambda: [
        r'^(chapter|section|part|unit)\s+\d+[:\s]*(.*)',
    ])
