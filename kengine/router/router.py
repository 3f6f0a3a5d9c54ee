# router/router.py
import logging
from typing import Optional

from kengine.router.base import BaseModel
from kengine.router.models import ModelResponse

logger = logging.getLogger(__name__)


class AllModelsExhaustedError(Exception):
    """Se lanza cuando ningún modelo pudo responder."""
    pass


class Router:
    """
    Decide qué modelo usar en cada llamada.
    El pipeline llama a Router.complete() — nunca a un adaptador directamente.

    Responsabilidades:
    - Seleccionar el modelo disponible de mayor prioridad
    - Hacer failover si el modelo falla por error de red o rate limit
    - Propagar errores de contenido (no son de disponibilidad)
    """

    def __init__(self, models: list[BaseModel]):
        # La lista ya viene ordenada por prioridad desde el config
        if not models:
            raise ValueError("El Router necesita al menos un modelo")
        self._models = models

    async def complete_strict(self, user_content: str, system_prompt: str) -> ModelResponse:
        """
        Intenta la llamada con el mejor modelo disponible.
        Si falla por rate limit o red, hace failover automático.
        Lanza AllModelsExhaustedError si ninguno responde.
        """
        last_error: Exception | None = None

        for model in self._models:
            if not model.is_available():
                logger.info("Modelo %s en cooldown, saltando", model.name)
                continue

            try:
                logger.debug("Intentando llamada con %s", model.name)
                response = await model.complete(user_content, system_prompt)
                logger.info(
                    "Respuesta de %s | tokens: %d+%d",
                    model.name,
                    response.tokens_input,
                    response.tokens_output,
                )
                return response

            except Exception as e:
                if _is_content_error(e):
                    logger.error(
                        "Error de contenido en %s — no se hace failover: %s",
                        model.name, e,
                    )
                    raise

                logger.warning(
                    "Modelo %s falló con error retryable: %s. Pasando al siguiente.",
                    model.name, e,
                )
                last_error = e
                continue

        raise AllModelsExhaustedError(
            f"Ningún modelo disponible. Último error: {last_error}"
        )

    async def complete(self, user_content: str, system_prompt: str) -> Optional[str]:
        """
        Contrato de transporte del pipeline: texto crudo o None.
        Un fallo de transporte nunca se propaga como excepción.
        """
        try:
            response = await self.complete_strict(user_content, system_prompt)
        except Exception as e:
            logger.warning("Llamada generativa fallida (%s): %s", type(e).__name__, e)
            return None

        text = (response.text or "").strip()
        if not text:
            logger.warning("%s devolvió una respuesta vacía", response.model_used)
            return None
        return text

    def available_models(self) -> list[str]:
        """Útil para logging y para el CLI."""
        return [m.name for m in self._models if m.is_available()]


def _is_content_error(e: Exception) -> bool:
    """
    Determina si el error es del contenido enviado (no de disponibilidad).
    Estos errores no activan failover — son el mismo error en cualquier modelo.
    """
    import anthropic
    import google.api_core.exceptions as google_ex

    content_errors = (
        anthropic.BadRequestError,
        google_ex.InvalidArgument,
        ValueError,
    )
    return isinstance(e, content_errors)
