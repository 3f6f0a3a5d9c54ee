# kengine/orchestrator.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from kengine.explorer import Explorer
from kengine.pipeline.models import SectionStatus
from kengine.pipeline.scheduler import PrefetchScheduler, SectionProgressCallback
from kengine.pipeline.section_pipeline import SectionPipeline
from kengine.processor.models import (
    ContentUnit,
    PageUnits,
    RawDocument,
    ReadingMode,
    Section,
    SectionResult,
)
from kengine.processor.parsers.factory import ParserFactory
from kengine.processor.sectioner.detector import SectionDetector
from kengine.processor.sectioner.models import DetectionResult

logger = logging.getLogger(__name__)

# Unidades estimadas por página para secciones todavía no preparadas
_ESTIMATED_UNITS_PER_PAGE = 3


# ------------------------------------------------------------------
# Errores propios del Orchestrator
# ------------------------------------------------------------------

class NoDocumentError(Exception):
    """Se usó la sesión antes de abrir un documento."""
    pass


class ModeNotSelectedError(Exception):
    """Se intentó leer antes de elegir el modo de lectura."""
    pass


# ------------------------------------------------------------------
# Estado de la sesión que consume el CLI
# ------------------------------------------------------------------

@dataclass
class Document:
    raw:       RawDocument
    detection: DetectionResult

    @property
    def sections(self) -> list[Section]:
        return self.detection.sections


@dataclass
class ReadingCursor:
    section: int = 0
    page:    int = 0
    unit:    int = 0


# ------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------

class Orchestrator:
    """
    Dirige la sesión de lectura de extremo a extremo.
    No tiene lógica de negocio propia — coordina módulos.

    Responsabilidades:
    - Abrir el documento y detectar sus secciones
    - Preparar la primera sección al elegir el modo (bloquea la lectura)
    - Mover el cursor y disparar el look-ahead al entrar en cada sección
    - Descartar todo al reiniciar
    """

    def __init__(
        self,
        parser_factory: ParserFactory,
        detector:       SectionDetector,
        pipeline:       SectionPipeline,
        explorer:       Optional[Explorer] = None,
        on_progress:    Optional[SectionProgressCallback] = None,
    ):
        self._parser_factory = parser_factory
        self._detector       = detector
        self._pipeline       = pipeline
        self._explorer       = explorer
        self._on_progress    = on_progress

        self._document:  Optional[Document] = None
        self._scheduler: Optional[PrefetchScheduler] = None
        self.cursor = ReadingCursor()

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def open(self, file_path: str) -> Document:
        """Parsea el archivo y detecta secciones. Errores del parser se propagan."""
        self.reset()
        path = Path(file_path).resolve()
        raw  = self._parser_factory.parse(str(path))
        detection = self._detector.detect(raw.pages)

        self._document = Document(raw=raw, detection=detection)
        logger.info(
            "'%s': %d páginas, %d secciones (%s)",
            raw.title, raw.page_count, len(detection.sections), detection.strategy.value,
        )
        return self._document

    async def select_mode(self, mode: ReadingMode) -> SectionResult:
        """
        Elige el modo y prepara la primera sección.
        La lectura no empieza hasta que esta llamada vuelve.
        """
        document = self._require_document()
        if self._scheduler is not None:
            self._scheduler.reset()

        self._scheduler = PrefetchScheduler(
            sections    = document.sections,
            pipeline    = self._pipeline,
            mode        = mode,
            on_progress = self._on_progress,
        )
        self.cursor = ReadingCursor()

        first = await self._scheduler.start()
        self._scheduler.on_enter_section(0)
        return first

    def reset(self) -> None:
        """Descarta documento, secciones y estado del pipeline."""
        if self._scheduler is not None:
            self._scheduler.reset()
        self._document  = None
        self._scheduler = None
        self.cursor     = ReadingCursor()

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    @property
    def document(self) -> Optional[Document]:
        return self._document

    @property
    def mode(self) -> Optional[ReadingMode]:
        return self._scheduler.mode if self._scheduler else None

    @property
    def is_loading(self) -> bool:
        """True mientras la sección bajo el cursor no está lista."""
        return self._current_result() is None

    def section_status(self, section_index: int) -> SectionStatus:
        """Estado de carga de una sección (para spinners y barras de progreso)."""
        return self._require_scheduler().status(section_index)

    def current_page(self) -> Optional[PageUnits]:
        result = self._current_result()
        return result.page(self.cursor.page) if result else None

    def current_unit(self) -> Optional[ContentUnit]:
        page = self.current_page()
        if page is None or self.cursor.unit >= len(page.units):
            return None
        return page.units[self.cursor.unit]

    def current_page_text(self) -> str:
        document = self._require_document()
        pages = document.sections[self.cursor.section].pages
        return pages[self.cursor.page].text if self.cursor.page < len(pages) else ""

    def advance(self) -> bool:
        """
        Unidad → página → sección. Devuelve False si no se movió:
        fin del documento o sección todavía cargando.
        Debe llamarse dentro del event loop: el look-ahead se lanza como tarea.
        """
        scheduler = self._require_scheduler()
        document  = self._require_document()
        page = self.current_page()
        if page is None:
            return False

        cursor = self.cursor
        if cursor.unit < len(page.units) - 1:
            cursor.unit += 1
            return True

        if cursor.page < len(document.sections[cursor.section].pages) - 1:
            cursor.page += 1
            cursor.unit = 0
            return True

        if cursor.section < len(document.sections) - 1:
            self.cursor = ReadingCursor(section=cursor.section + 1)
            scheduler.on_enter_section(self.cursor.section)
            return True

        return False

    async def wait_current_section(self) -> SectionResult:
        """Espera a que la sección bajo el cursor esté lista."""
        scheduler = self._require_scheduler()
        result = await scheduler.ensure(self.cursor.section)
        # el look-ahead se salta mientras esta misma sección estaba en vuelo
        scheduler.on_enter_section(self.cursor.section)
        return result

    async def jump(self, section_index: int) -> SectionResult:
        """Salto directo: el lector espera a que la sección esté lista."""
        scheduler = self._require_scheduler()
        if not 0 <= section_index < scheduler.section_count:
            raise IndexError(f"Sección fuera de rango: {section_index}")

        self.cursor = ReadingCursor(section=section_index)
        scheduler.on_enter_section(section_index)
        result = await scheduler.ensure(section_index)
        scheduler.on_enter_section(section_index)
        return result

    def progress_percent(self) -> int:
        """
        Unidades leídas sobre unidades totales. Las secciones que aún no
        están listas cuentan con 3 unidades estimadas por página.
        """
        document  = self._require_document()
        scheduler = self._require_scheduler()
        cursor    = self.cursor
        total = done = 0

        for ci, section in enumerate(document.sections):
            result = scheduler.result(ci)
            if result is None:
                total += len(section.pages) * _ESTIMATED_UNITS_PER_PAGE
                continue
            for pi in range(len(section.pages)):
                page  = result.page(pi)
                count = len(page.units) if page else 0
                total += count
                if ci < cursor.section or (ci == cursor.section and pi < cursor.page):
                    done += count
                elif ci == cursor.section and pi == cursor.page:
                    done += cursor.unit

        if total == 0:
            return 0
        return int(done / total * 100 + 0.5)

    async def ask(self, question: str, page_text: Optional[str] = None) -> Optional[str]:
        """
        Pregunta libre sobre el documento (Explorer).
        Sin page_text explícito se usa la página bajo el cursor.
        """
        if self._explorer is None:
            raise RuntimeError("Explorer no configurado")
        document = self._require_document()
        if page_text is None:
            page_text = self.current_page_text() if self._scheduler else ""
        return await self._explorer.ask(question, document.raw, page_text)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _current_result(self) -> Optional[SectionResult]:
        if self._scheduler is None:
            return None
        return self._scheduler.result(self.cursor.section)

    def _require_document(self) -> Document:
        if self._document is None:
            raise NoDocumentError("No hay documento abierto. Llama a open() primero")
        return self._document

    def _require_scheduler(self) -> PrefetchScheduler:
        if self._scheduler is None:
            raise ModeNotSelectedError("Elige un modo de lectura con select_mode() primero")
        return self._scheduler
