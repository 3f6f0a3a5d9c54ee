# router/claude.py
import logging

import anthropic

from kengine.router.base import BaseModel
from kengine.router.models import ModelConfig, ModelResponse

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"

# Errores que activan failover hacia otro modelo
_RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


class ClaudeAdapter(BaseModel):

    def __init__(self, config: ModelConfig):
        super().__init__(config)
        client_kwargs = {"api_key": config.api_key}
        if config.timeout_seconds is not None:
            client_kwargs["timeout"] = config.timeout_seconds
        self._client = anthropic.AsyncAnthropic(**client_kwargs)

    async def complete(self, user_content: str, system_prompt: str) -> ModelResponse:
        try:
            response = await self._client.messages.create(
                model       = self._config.model_id or _DEFAULT_MODEL,
                max_tokens  = self._config.max_tokens,
                temperature = self._config.temperature,
                system      = system_prompt,
                messages    = [{"role": "user", "content": user_content}],
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Claude error retryable: %s", e)
            self._start_cooldown()
            raise   # El Router captura esto y hace failover

        except anthropic.BadRequestError as e:
            # El contenido en sí tiene problemas, no es un error de disponibilidad
            logger.error("Claude BadRequest: %s", e)
            raise

        # Todos los bloques de texto, en orden
        raw_text = "\n".join(
            block.text for block in response.content if getattr(block, "text", None)
        )

        return ModelResponse(
            text          = raw_text,
            model_used    = self.name,
            tokens_input  = response.usage.input_tokens,
            tokens_output = response.usage.output_tokens,
        )
