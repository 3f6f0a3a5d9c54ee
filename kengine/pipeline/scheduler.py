# pipeline/scheduler.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from kengine.processor.models import ReadingMode, Section, SectionResult
from kengine.pipeline.models import SectionStatus
from kengine.pipeline.section_pipeline import SectionPipeline

logger = logging.getLogger(__name__)

# (índice de sección, páginas procesadas, páginas totales)
SectionProgressCallback = Callable[[int, int, int], None]


@dataclass
class _Slot:
    status: SectionStatus = SectionStatus.NOT_REQUESTED
    task:   Optional[asyncio.Task] = None
    result: Optional[SectionResult] = None


class PipelineState:
    """
    Estado por sección: NOT_REQUESTED → IN_FLIGHT → READY.

    Las transiciones son compare-and-set: begin() solo gana si la sección
    estaba NOT_REQUESTED, así una sección nunca se pide dos veces.
    Todo corre en un único event loop; no hace falta lock.
    """

    def __init__(self):
        self._slots: dict[int, _Slot] = {}

    def status(self, index: int) -> SectionStatus:
        return self._slot(index).status

    def result(self, index: int) -> Optional[SectionResult]:
        return self._slot(index).result

    def task(self, index: int) -> Optional[asyncio.Task]:
        return self._slot(index).task

    def begin(self, index: int) -> bool:
        slot = self._slot(index)
        if slot.status != SectionStatus.NOT_REQUESTED:
            return False
        slot.status = SectionStatus.IN_FLIGHT
        logger.debug("Sección %d → IN_FLIGHT", index)
        return True

    def attach(self, index: int, task: asyncio.Task) -> None:
        self._slot(index).task = task

    def complete(self, index: int, result: SectionResult) -> None:
        slot = self._slot(index)
        if slot.status != SectionStatus.IN_FLIGHT:
            raise ValueError(f"Sección {index} no está en vuelo ({slot.status.value})")
        slot.status = SectionStatus.READY
        slot.result = result
        slot.task   = None
        logger.debug("Sección %d → READY", index)

    def abandon(self, index: int) -> None:
        """IN_FLIGHT → NOT_REQUESTED cuando la carga falló de forma inesperada."""
        slot = self._slot(index)
        if slot.status == SectionStatus.IN_FLIGHT:
            self._slots[index] = _Slot()
            logger.debug("Sección %d → NOT_REQUESTED (abandonada)", index)

    def ready_sections(self) -> list[int]:
        return sorted(i for i, s in self._slots.items() if s.status == SectionStatus.READY)

    def _slot(self, index: int) -> _Slot:
        return self._slots.setdefault(index, _Slot())


class PrefetchScheduler:
    """
    Decide cuándo se prepara cada sección para que el lector nunca espere.

    - start(): la primera sección se pide en cuanto se elige el modo y
      su carga bloquea la entrada a la lectura.
    - on_enter_section(i): al entrar en la sección i se prepara i+1 en
      segundo plano. Como mucho una de estas cargas a la vez.
    - ensure(j): salto directo; el lector espera a que j esté lista.
    - reset(): descarta todo el estado. Las cargas en vuelo no se cancelan;
      su resultado se ignora al llegar.
    """

    def __init__(
        self,
        sections:    Sequence[Section],
        pipeline:    SectionPipeline,
        mode:        ReadingMode,
        on_progress: Optional[SectionProgressCallback] = None,
    ):
        self._sections    = list(sections)
        self._pipeline    = pipeline
        self._mode        = mode
        self._on_progress = on_progress
        self._state       = PipelineState()
        self._generation  = 0
        self._lookahead: Optional[asyncio.Task] = None

    @property
    def mode(self) -> ReadingMode:
        return self._mode

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def section_count(self) -> int:
        return len(self._sections)

    def status(self, index: int) -> SectionStatus:
        return self._state.status(index)

    def result(self, index: int) -> Optional[SectionResult]:
        return self._state.result(index)

    async def start(self) -> SectionResult:
        """Carga ansiosa de la primera sección."""
        if not self._sections:
            raise ValueError("No hay secciones que preparar")
        return await self.ensure(0)

    def on_enter_section(self, index: int) -> Optional[asyncio.Task]:
        """
        Disparador de look-ahead. Devuelve la tarea lanzada o None si no
        hacía falta (no hay siguiente, ya pedida, u otro look-ahead en vuelo).
        """
        next_index = index + 1
        if next_index >= len(self._sections):
            return None
        if self._state.status(next_index) != SectionStatus.NOT_REQUESTED:
            return None
        if self._lookahead is not None and not self._lookahead.done():
            logger.debug(
                "Look-ahead de sección %d pospuesto: ya hay uno en vuelo", next_index,
            )
            return None

        task = self._launch(next_index)
        self._lookahead = task
        return task

    async def ensure(self, index: int) -> SectionResult:
        """
        Devuelve la sección lista, esperándola si hace falta.
        Nunca lanza una segunda carga de una sección en vuelo.
        """
        if not 0 <= index < len(self._sections):
            raise IndexError(f"Sección fuera de rango: {index}")

        status = self._state.status(index)
        if status == SectionStatus.READY:
            return self._state.result(index)

        task = self._state.task(index) if status == SectionStatus.IN_FLIGHT else None
        if task is None:
            task = self._launch(index)
        # shield: si quien espera se cancela, la carga sigue para los demás
        return await asyncio.shield(task)

    def reset(self) -> None:
        """Descarta el estado entero; las cargas en vuelo quedan huérfanas."""
        self._generation += 1
        self._state      = PipelineState()
        self._lookahead  = None
        logger.info("Estado del pipeline descartado (generación %d)", self._generation)

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _launch(self, index: int) -> asyncio.Task:
        if not self._state.begin(index):
            raise RuntimeError(f"Sección {index} ya fue pedida")
        task = asyncio.get_running_loop().create_task(
            self._load(index, self._generation, self._state),
            name=f"section-{index}",
        )
        self._state.attach(index, task)
        task.add_done_callback(_log_task_failure)
        return task

    async def _load(self, index: int, generation: int, state: PipelineState) -> SectionResult:
        section = self._sections[index]
        try:
            result = await self._pipeline.run(
                section,
                index,
                self._mode,
                on_progress=self._progress_for(index, generation),
            )
        except Exception:
            state.abandon(index)
            raise

        if generation != self._generation:
            logger.info("Resultado de sección %d descartado (documento reiniciado)", index)
            return result

        state.complete(index, result)
        return result

    def _progress_for(self, index: int, generation: int):
        if self._on_progress is None:
            return None

        def report(done: int, total: int) -> None:
            if generation == self._generation:
                self._on_progress(index, done, total)

        return report


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Carga de %s falló: %s", task.get_name(), error)
