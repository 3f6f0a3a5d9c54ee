# pipeline/transformer.py
import logging
import re
from numbers import Integral
from typing import Any, Optional, Sequence

from kengine.processor.models import (
    ContentUnit,
    Page,
    PageUnits,
    ReadingMode,
    RecallCheck,
    UnitKind,
    UnitOrigin,
)
from kengine.pipeline.models import PipelineConfig
from kengine.router.prompt_builder import build_batch_payload, build_chunk_prompt
from kengine.router.response_parser import decode_page_results
from kengine.router.router import Router

logger = logging.getLogger(__name__)

# Oración = texto hasta una o más marcas de puntuación final
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")

_RECALL_OPTIONS = 4


class ChunkTransformer:
    """
    Convierte un lote de páginas consecutivas en unidades de contenido.

    Una sola llamada al modelo por lote (no por página). Sin reintentos:
    cualquier página sin resultado válido pasa al splitter determinístico,
    así que cada página del lote siempre sale con al menos una unidad.
    """

    def __init__(self, router: Router, config: Optional[PipelineConfig] = None):
        self._router = router
        self._config = config or PipelineConfig()

    async def transform_batch(
        self,
        pages:  Sequence[Page],
        mode:   ReadingMode,
        offset: int = 0,
    ) -> dict[int, PageUnits]:
        """
        Devuelve un PageUnits por página del lote, indexado por la posición
        de la página dentro de la sección (offset + i).
        """
        raw_text = await self._request(pages, mode, offset)
        decoded  = decode_page_results(raw_text)

        results: dict[int, PageUnits] = {}
        for item in decoded:
            if item.position >= len(pages):
                logger.debug("Objeto extra en la posición %d ignorado", item.position)
                continue
            position   = offset + item.position
            page_units = normalize_page(item.data, position, mode)
            if page_units is not None:
                results[position] = page_units

        for i, page in enumerate(pages):
            position = offset + i
            if position not in results:
                logger.info("Página %d sin resultado del modelo, usando fallback", position + 1)
                results[position] = self.fallback_page(page, position)

        return results

    def fallback_page(self, page: Page, position: int) -> PageUnits:
        """Resultado determinístico para una página, sin modelo."""
        return PageUnits(
            page_title = _default_title(position),
            units      = split_fallback_units(
                page.text,
                sentences_per_unit = self._config.fallback_sentences_per_unit,
                max_chars          = self._config.fallback_max_chars,
            ),
            origin     = UnitOrigin.FALLBACK,
        )

    async def _request(self, pages: Sequence[Page], mode: ReadingMode, offset: int) -> Optional[str]:
        """Fallo de transporte → None. Nunca se propaga."""
        try:
            return await self._router.complete(
                build_batch_payload(pages, offset),
                build_chunk_prompt(mode),
            )
        except Exception as e:
            logger.warning(
                "Lote de páginas %d-%d sin respuesta (%s): %s",
                offset + 1, offset + len(pages), type(e).__name__, e,
            )
            return None


# ------------------------------------------------------------------
# Fallback determinístico
# ------------------------------------------------------------------

def split_fallback_units(
    text:               str,
    sentences_per_unit: int = 3,
    max_chars:          int = 300,
) -> list[ContentUnit]:
    """
    Agrupa las oraciones de la página de N en N, cada grupo una unidad
    "narrative" sin imagen ni pregunta. El resto final sin puntuación
    cuenta como una oración más.
    Sin oraciones reconocibles → una unidad con los primeros max_chars.
    """
    sentences = [s.strip() for s in _SENTENCE_RE.findall(text)]
    sentences = [s for s in sentences if s]

    if not sentences:
        return [ContentUnit(text=text.strip()[:max_chars], kind=UnitKind.NARRATIVE)]

    matched_end = 0
    for match in _SENTENCE_RE.finditer(text):
        matched_end = match.end()
    tail = text[matched_end:].strip()
    if tail:
        sentences.append(tail)

    return [
        ContentUnit(
            text = " ".join(sentences[i:i + sentences_per_unit]),
            kind = UnitKind.NARRATIVE,
        )
        for i in range(0, len(sentences), sentences_per_unit)
    ]


# ------------------------------------------------------------------
# Normalización de la salida del modelo
# ------------------------------------------------------------------

def normalize_page(data: dict, position: int, mode: ReadingMode) -> Optional[PageUnits]:
    """
    Garantiza que el resultado de página tiene la forma esperada.
    Descarta unidades inválidas; si no queda ninguna devuelve None
    y la página pasa al fallback.
    """
    units = [
        unit for unit in (normalize_unit(raw, mode) for raw in data.get("chunks") or [])
        if unit is not None
    ]
    if not units:
        return None

    title = str(data.get("pageTitle") or "").strip() or _default_title(position)
    return PageUnits(page_title=title, units=units, origin=UnitOrigin.GENERATED)


def normalize_unit(raw: Any, mode: ReadingMode) -> Optional[ContentUnit]:
    """
    Acepta los nombres de campo actuales y los antiguos
    (type / imagination / quiz / correct).
    """
    if isinstance(raw, str):
        raw = {"text": raw}
    if not isinstance(raw, dict):
        return None

    text = str(raw.get("text") or "").strip()
    if not text:
        return None

    kind = _parse_kind(raw.get("kind") or raw.get("type"))

    imagine = raw.get("imaginePrompt") or raw.get("imagination")
    imagine = str(imagine).strip() if imagine else None

    # Preguntas solo si el modo las permite y la unidad no es narrativa
    recall = None
    if mode.quizzes and kind != UnitKind.NARRATIVE:
        recall = normalize_recall(raw.get("recallCheck") or raw.get("quiz"))

    return ContentUnit(
        text           = text,
        kind           = kind,
        imagine_prompt = imagine or None,
        recall_check   = recall,
    )


def normalize_recall(raw: Any) -> Optional[RecallCheck]:
    if not isinstance(raw, dict):
        return None

    question = str(raw.get("question") or "").strip()
    options  = raw.get("options")
    if not question or not isinstance(options, list) or len(options) != _RECALL_OPTIONS:
        return None

    correct = raw.get("correctIndex", raw.get("correct"))
    if not isinstance(correct, Integral) or isinstance(correct, bool):
        return None
    if not 0 <= correct < _RECALL_OPTIONS:
        return None

    return RecallCheck(
        question      = question,
        options       = [str(o) for o in options],
        correct_index = int(correct),
        hint          = str(raw.get("hint") or "").strip(),
    )


def _parse_kind(value: Any) -> UnitKind:
    try:
        return UnitKind(str(value).strip().lower())
    except ValueError:
        return UnitKind.NARRATIVE


def _default_title(position: int) -> str:
    return f"Page {position + 1}"
