import logging
import math
import re
from typing import Optional, Sequence

from kengine.processor.models import Page, Section
from .models import DetectionResult, DetectionStrategy, SectionConfig

logger = logging.getLogger(__name__)


class SectionDetector:
    """
    Responsabilidad única: tomar las páginas en orden y devolver secciones
    que las cubren exactamente una vez, sin reordenar.
    No sabe nada del contenido más allá de encabezados superficiales.
    """

    def __init__(self, config: SectionConfig | None = None):
        self._config = config or SectionConfig()
        self._compiled = self._compile_patterns()

    def detect(self, pages: Sequence[Page]) -> DetectionResult:
        """
        Detecta secciones con degradación progresiva:
        1. Encabezados + páginas cortas
        2. Ventanas de tamaño fijo si la detección no encontró estructura
        3. Una sola sección "Document" si no hay páginas
        """
        pages = list(pages)
        sections = self._detect_by_headings(pages)

        if len(sections) <= 1 and len(pages) > self._config.window_trigger_pages:
            windows = self._split_windows(pages)
            logger.info(
                "Sin estructura detectable en %d páginas; %d ventanas fijas",
                len(pages), len(windows),
            )
            return DetectionResult(windows, DetectionStrategy.WINDOWS)

        if not sections:
            return DetectionResult(
                [Section(title=self._config.document_title, start_page_index=0, pages=tuple(pages))],
                DetectionStrategy.WHOLE_DOCUMENT,
            )

        return DetectionResult(sections, DetectionStrategy.HEADINGS)

    def window_size(self, page_count: int) -> int:
        cfg = self._config
        if page_count <= 0:
            return cfg.window_min_pages
        divisor = min(cfg.window_max_sections, math.ceil(page_count / cfg.window_pages_per_section))
        return max(cfg.window_min_pages, math.ceil(page_count / divisor))

    # ------------------------------------------------------------------
    # Niveles de la heurística
    # ------------------------------------------------------------------

    def _detect_by_headings(self, pages: list[Page]) -> list[Section]:
        cfg = self._config
        sections: list[Section] = []
        current_pages: list[Page] = []
        current_title = cfg.first_title
        current_start = 0
        last = len(pages) - 1

        for i, page in enumerate(pages):
            stripped = page.text.strip()
            heading = self._match_heading(stripped)
            is_short = (
                len(stripped) < cfg.short_page_chars
                and 0 < i < last
                and len(current_pages) > cfg.min_pages_before_split
            )

            if not current_pages:
                # Encabezado en la primera página: siembra el título, no corta
                if heading is not None:
                    current_title = self._heading_title(heading)
                current_pages.append(page)
                continue

            if heading is not None or is_short:
                sections.append(Section(
                    title            = current_title,
                    start_page_index = current_start,
                    pages            = tuple(current_pages),
                ))
                current_title = (
                    self._heading_title(heading)
                    if heading is not None
                    else f"Section {len(sections) + 1}"
                )
                current_start = i
                current_pages = [page]
            else:
                current_pages.append(page)

        # cerrar la última sección
        if current_pages:
            sections.append(Section(
                title            = current_title,
                start_page_index = current_start,
                pages            = tuple(current_pages),
            ))
        return sections

    def _split_windows(self, pages: list[Page]) -> list[Section]:
        size = self.window_size(len(pages))
        windows: list[Section] = []
        for start in range(0, len(pages), size):
            title = self._config.opening_title if start == 0 else f"Section {len(windows) + 1}"
            windows.append(Section(
                title            = title,
                start_page_index = start,
                pages            = tuple(pages[start:start + size]),
            ))
        return windows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _match_heading(self, stripped: str) -> Optional[re.Match]:
        for pattern in self._compiled:
            match = pattern.match(stripped)
            if match:
                return match
        return None

    def _heading_title(self, match: re.Match) -> str:
        return match.group(0)[: self._config.title_max_chars].strip()

    def _compile_patterns(self) -> list[re.Pattern]:
        """Compila los patrones de encabezado una sola vez."""
        return [re.compile(p, re.IGNORECASE) for p in self._config.heading_patterns]
