# pipeline/section_pipeline.py
import logging
from typing import Callable, Optional

from kengine.processor.models import ReadingMode, Section, SectionResult
from kengine.pipeline.models import PipelineConfig
from kengine.pipeline.transformer import ChunkTransformer

logger = logging.getLogger(__name__)

# (páginas procesadas, páginas totales)
ProgressCallback = Callable[[int, int], None]


class SectionPipeline:
    """
    Recorre las páginas de una sección en lotes fijos y arma un
    SectionResult total.

    Los lotes van en secuencia, nunca en paralelo: como mucho una
    llamada al modelo por sección a la vez, y el orden de páginas es
    determinístico.
    """

    def __init__(self, transformer: ChunkTransformer, config: Optional[PipelineConfig] = None):
        self._transformer = transformer
        self._config      = config or PipelineConfig()

    async def run(
        self,
        section:       Section,
        section_index: int,
        mode:          ReadingMode,
        on_progress:   Optional[ProgressCallback] = None,
    ) -> SectionResult:
        result = SectionResult(section_index=section_index)
        pages  = section.pages
        total  = len(pages)
        size   = self._config.batch_size

        logger.info(
            "Sección %d '%s': %d páginas en lotes de %d",
            section_index, section.title, total, size,
        )

        for start in range(0, total, size):
            batch = pages[start:start + size]

            try:
                batch_results = await self._transformer.transform_batch(batch, mode, offset=start)
            except Exception as e:
                logger.error(
                    "Transformador falló en sección %d, páginas %d-%d: %s",
                    section_index, start + 1, start + len(batch), e,
                )
                batch_results = {}

            # Solo entradas del lote actual y con al menos una unidad
            for position, page_units in batch_results.items():
                if start <= position < start + len(batch) and page_units.units:
                    result.pages[position] = page_units

            for i, page in enumerate(batch):
                position = start + i
                if position not in result.pages:
                    result.pages[position] = self._transformer.fallback_page(page, position)

            _report_progress(on_progress, start + len(batch), total)

        logger.info(
            "Sección %d lista: %d páginas, %d unidades, %d con fallback",
            section_index, total, result.unit_count, len(result.fallback_pages),
        )
        return result


def _report_progress(on_progress: Optional[ProgressCallback], done: int, total: int) -> None:
    """El progreso es solo informativo: un callback roto no detiene nada."""
    if on_progress is None:
        return
    try:
        on_progress(done, total)
    except Exception as e:
        logger.warning("Callback de progreso falló: %s", e)
