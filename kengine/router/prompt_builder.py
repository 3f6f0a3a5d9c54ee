# router/prompt_builder.py
from typing import Sequence

from kengine.processor.models import Page, ReadingMode


_CHUNK_SYSTEM = """\
    Eres un transformador de conocimiento experto.
    Tu tarea es partir el texto de cada página en unidades de aprendizaje pequeñas y digeribles.

    --- REGLAS ---
    - Cada unidad: 2-4 frases COMO MÁXIMO. Legible en 10-15 segundos.
    - Tono cálido y conversacional, como un amigo brillante explicando con un café.
    - SIN viñetas, SIN encabezados, SIN markdown. Prosa continua.
    - Escribe en el mismo idioma que el texto de la página.
    - Clasifica cada unidad en "kind":
      "narrative" (historias, descripciones), "conceptual" (teorías, marcos)
      o "factual" (fechas, eventos, datos).

    --- CAMPOS DE CADA UNIDAD ---
    - text: el contenido (2-4 frases)
    - kind: "narrative" | "conceptual" | "factual"
    - imaginePrompt: 1-2 frases que describan una ESCENA VISUAL del concepto:
      colores, luz, relaciones espaciales, objetos, atmósfera. Se usará para
      generar una imagen, así que sé concreto con los elementos visuales.
    {recall_rule}

    --- FORMATO DE SALIDA (ESTRICTO) ---
    Devuelve UN objeto JSON por página, en el mismo orden de los marcadores
    "=== PAGE n ===", todos dentro de un único array JSON.
    No uses markdown. No uses ```json. No añadas comentarios ni texto extra.

    Estructura exacta de cada objeto:
    {{
      "pageTitle": "título evocador de la página",
      "chunks": [
        {unit_example}
      ]
    }}
    """

_RECALL_DISABLED = (
    "- recallCheck: Siempre null. En este modo no hay preguntas de repaso."
)

_RECALL_ENABLED = (
    "- recallCheck: Para unidades \"conceptual\" o \"factual\", una pregunta rápida de repaso:\n"
    "      {{\"question\": \"...\", \"options\": [\"A\", \"B\", \"C\", \"D\"], "
    "\"correctIndex\": 0, \"hint\": \"pista breve\"}}.\n"
    "      Exactamente 4 opciones; correctIndex entre 0 y 3. Para \"narrative\" siempre null."
)

_UNIT_EXAMPLE_PLAIN = (
    '{"text": "...", "kind": "narrative", "imaginePrompt": "...", "recallCheck": null}'
)

_UNIT_EXAMPLE_QUIZ = (
    '{"text": "...", "kind": "conceptual", "imaginePrompt": "...", '
    '"recallCheck": {"question": "...", "options": ["A", "B", "C", "D"], '
    '"correctIndex": 0, "hint": "..."}}'
)

_EXPLORER_SYSTEM = (
    "Responde usando el contenido del documento. "
    "Conversacional, claro, sin viñetas. Prosa continua."
)

# El marcador que separa páginas dentro de un lote
PAGE_MARKER = "=== PAGE {position} (doc page {source_page}) ==="

_BATCH_HEADER = "Break these pages into learning chunks:"


def build_chunk_prompt(mode: ReadingMode) -> str:
    """
    Construye el system prompt para transformar páginas en unidades.

    El texto de las páginas NO va aquí: viaja como mensaje de usuario.
    La regla de preguntas de repaso depende del modo de lectura.
    """
    if mode.quizzes:
        recall_rule  = _RECALL_ENABLED.format()
        unit_example = _UNIT_EXAMPLE_QUIZ
    else:
        recall_rule  = _RECALL_DISABLED
        unit_example = _UNIT_EXAMPLE_PLAIN
    return _CHUNK_SYSTEM.format(
        recall_rule  = recall_rule,
        unit_example = unit_example,
    )


def build_batch_payload(pages: Sequence[Page], offset: int = 0) -> str:
    """
    Payload de usuario para un lote de páginas consecutivas.

    offset es la posición (0-based, dentro de la sección) de la primera
    página del lote; los marcadores usan posiciones 1-based.
    """
    blocks = [
        f"{PAGE_MARKER.format(position=offset + i + 1, source_page=page.source_page_number)}\n{page.text}"
        for i, page in enumerate(pages)
    ]
    return f"{_BATCH_HEADER}\n\n" + "\n\n".join(blocks)


def build_explorer_prompt() -> str:
    return _EXPLORER_SYSTEM


def build_explorer_payload(question: str, document_text: str, page_text: str) -> str:
    """Documento (ya recortado), página actual y la pregunta del lector."""
    return (
        f"PDF:\n{document_text}\n\n"
        f"Current page: \"{page_text}\"\n\n"
        f"Q: \"{question}\""
    )
