# kengine/explorer.py
import logging
from typing import Optional

from kengine.processor.models import RawDocument
from kengine.router.prompt_builder import build_explorer_payload, build_explorer_prompt
from kengine.router.router import Router

logger = logging.getLogger(__name__)


class Explorer:
    """
    Preguntas libres del lector sobre el documento (modo Deep Dive).
    Envía un recorte del documento y de la página actual como contexto.
    """

    def __init__(self, router: Router, document_chars: int = 12_000, page_chars: int = 2_000):
        self._router         = router
        self._document_chars = document_chars
        self._page_chars     = page_chars

    async def ask(
        self,
        question:  str,
        document:  RawDocument,
        page_text: str = "",
    ) -> Optional[str]:
        """Respuesta del modelo, o None si el transporte falló."""
        question = (question or "").strip()
        if not question:
            raise ValueError("La pregunta no puede estar vacía")

        payload = build_explorer_payload(
            question      = question,
            document_text = document.full_text(self._document_chars),
            page_text     = (page_text or "")[: self._page_chars],
        )
        answer = await self._router.complete(payload, build_explorer_prompt())
        if answer is None:
            logger.warning("Pregunta sin respuesta: %r", question[:80])
        return answer
