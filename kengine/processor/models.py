from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ReadingMode(Enum):
    """Cómo quiere leer el usuario. Decide si hay preguntas de repaso."""
    CASUAL = "casual"
    STUDY  = "study"
    DEEP   = "deep"

    @property
    def quizzes(self) -> bool:
        return self is not ReadingMode.CASUAL

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_LABELS = {
    ReadingMode.CASUAL: "Just Read",
    ReadingMode.STUDY:  "Study Mode",
    ReadingMode.DEEP:   "Deep Dive",
}


class UnitKind(Enum):
    """Tipo semántico de una unidad de contenido."""
    NARRATIVE  = "narrative"
    CONCEPTUAL = "conceptual"
    FACTUAL    = "factual"


class UnitOrigin(Enum):
    """De dónde salieron las unidades de una página."""
    GENERATED = "generated"   # respuesta del modelo decodificada
    FALLBACK  = "fallback"    # splitter determinístico por oraciones


@dataclass(frozen=True)
class Page:
    """Lo que sale de cualquier Parser: una página de texto plano."""
    index:              int    # posición 0-based en el documento
    source_page_number: int    # número de página original (1-based)
    text:               str


@dataclass(frozen=True)
class Section:
    """
    Tramo contiguo de páginas con un título compartido.
    Las secciones particionan el documento: sin huecos, sin solapes.
    """
    title:            str
    start_page_index: int
    pages:            tuple[Page, ...] = ()


@dataclass
class RecallCheck:
    question:      str
    options:       list[str]
    correct_index: int
    hint:          str = ""


@dataclass
class ContentUnit:
    """Pieza mínima presentable. El orden dentro de la página es el de lectura."""
    text:           str
    kind:           UnitKind = UnitKind.NARRATIVE
    imagine_prompt: Optional[str] = None
    recall_check:   Optional[RecallCheck] = None


@dataclass
class PageUnits:
    page_title: str
    units:      list[ContentUnit] = field(default_factory=list)
    origin:     UnitOrigin = UnitOrigin.GENERATED


@dataclass
class SectionResult:
    """
    Resultado del pipeline para una sección.
    Total: cada índice de página de la sección tiene su entrada no vacía.
    """
    section_index: int
    pages:         dict[int, PageUnits] = field(default_factory=dict)

    def page(self, page_index: int) -> Optional[PageUnits]:
        return self.pages.get(page_index)

    @property
    def unit_count(self) -> int:
        return sum(len(p.units) for p in self.pages.values())

    @property
    def fallback_pages(self) -> list[int]:
        return sorted(
            i for i, p in self.pages.items() if p.origin == UnitOrigin.FALLBACK
        )


@dataclass
class RawDocument:
    """Lo que sale de cualquier Parser: páginas en orden + metadata."""
    title:       str
    source_path: str
    pages:       list[Page]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def full_text(self, max_chars: Optional[int] = None) -> str:
        text = "\n\n".join(p.text for p in self.pages)
        return text if max_chars is None else text[:max_chars]
