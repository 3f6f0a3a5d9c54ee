# router/response_parser.py
import json
import re
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Marcas de bloque de código: ``` o ```json / ```JSON / ```javascript...
_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?")

# Objetos JSON pegados sin separador: }{  o  }\n{
_GLUED_OBJECTS_RE = re.compile(r"\}\s*\{")


@dataclass(frozen=True)
class DecodedPage:
    """
    Un resultado de página aceptado por el decodificador.
    position es el índice del objeto dentro de la respuesta del modelo,
    incluidos los objetos descartados, para que la alineación con las
    páginas del lote no se desplace.
    """
    position: int
    data:     dict


def strip_fences(raw_text: str) -> str:
    """Quita las marcas de bloque markdown y el whitespace alrededor."""
    return _FENCE_RE.sub("", raw_text).strip()


def parse_payload(raw_text: Optional[str]) -> list[Any]:
    """
    Intenta parsear la respuesta con degradación progresiva.

    Estrategia:
    1. JSON directo tras quitar las marcas de bloque (el camino feliz)
    2. Reparación: objetos concatenados sin coma → array JSON
    3. Fallo total → lista vacía

    Nunca lanza excepción. Un objeto suelto se devuelve como lista de uno.
    """
    if not raw_text:
        return []

    text = strip_fences(raw_text)
    if not text:
        return []

    # Intento 1: JSON directo
    ok, data = _try_parse(text)
    if ok:
        return _as_items(data)

    # Intento 2: reparar objetos concatenados
    ok, data = _try_parse("[" + _GLUED_OBJECTS_RE.sub("},{", text) + "]")
    if ok:
        logger.warning("Respuesta con objetos JSON concatenados, reparada como array")
        return _as_items(data)

    logger.error(
        "Respuesta no parseable (%d caracteres). Se usará el fallback por página",
        len(text),
    )
    return []


def decode_page_results(raw_text: Optional[str]) -> list[DecodedPage]:
    """
    Decodifica la respuesta cruda en resultados de página.

    Validación laxa: solo se aceptan objetos con una lista "chunks".
    El resto se descarta en silencio; la cobertura la garantiza
    el fallback determinístico del transformador.
    """
    accepted: list[DecodedPage] = []
    items = parse_payload(raw_text)

    for position, item in enumerate(items):
        if isinstance(item, dict) and isinstance(item.get("chunks"), list):
            accepted.append(DecodedPage(position=position, data=item))

    dropped = len(items) - len(accepted)
    if dropped:
        logger.debug("%d objetos sin 'chunks' descartados", dropped)

    return accepted


def _try_parse(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (ValueError, RecursionError):
        # RecursionError: anidamiento patológico, tan inválido como JSON roto
        return False, None


def _as_items(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    return [data]
