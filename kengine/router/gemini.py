# router/gemini.py
import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from kengine.router.base import BaseModel
from kengine.router.models import ModelConfig, ModelResponse

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-2.0-flash"

_RETRYABLE_ERRORS = (
    google_exceptions.ResourceExhausted,   # 429
    google_exceptions.DeadlineExceeded,    # timeout
    google_exceptions.ServiceUnavailable,
)


class GeminiAdapter(BaseModel):

    def __init__(self, config: ModelConfig):
        super().__init__(config)
        genai.configure(api_key=config.api_key)
        self._model = genai.GenerativeModel(
            model_name        = config.model_id or _DEFAULT_MODEL,
            generation_config = genai.GenerationConfig(
                temperature       = config.temperature,
                max_output_tokens = config.max_tokens,
            ),
        )

    async def complete(self, user_content: str, system_prompt: str) -> ModelResponse:
        full_prompt = f"{system_prompt}\n\n{user_content}"
        request_options = (
            {"timeout": self._config.timeout_seconds}
            if self._config.timeout_seconds is not None
            else None
        )

        try:
            response = await self._model.generate_content_async(
                full_prompt,
                request_options=request_options,
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Gemini error retryable: %s", e)
            self._start_cooldown()
            raise

        usage = response.usage_metadata
        return ModelResponse(
            text          = response.text,
            model_used    = self.name,
            tokens_input  = usage.prompt_token_count,
            tokens_output = usage.candidates_token_count,
        )
