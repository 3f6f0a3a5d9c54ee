# router/base.py
import time
from abc import ABC, abstractmethod

from kengine.router.models import ModelConfig, ModelResponse

# Tras un error de red/quota el adaptador descansa este tiempo
COOLDOWN_SECONDS = 300


class BaseModel(ABC):
    """
    Contrato que deben cumplir todos los adaptadores.
    El pipeline y el Router solo hablan con esta interfaz.
    Nunca importan claude.py ni gemini.py directamente.
    """

    def __init__(self, config: ModelConfig):
        self._config = config

    @abstractmethod
    async def complete(self, user_content: str, system_prompt: str) -> ModelResponse:
        """
        Envía el contenido al modelo y devuelve el texto crudo.
        No interpreta la respuesta: el decodificador es responsabilidad
        de quien llama.
        SÍ puede lanzar: TimeoutError, RateLimitError, APIError.
        El Router los captura y hace failover.
        """
        ...

    @property
    def name(self) -> str:
        """Identificador del modelo en el config."""
        return self._config.name

    def is_available(self) -> bool:
        """¿Está fuera del cooldown temporal por error de red?"""
        until = self._config._unavailable_until
        if until is not None:
            if time.time() < until:
                return False
            self._config._unavailable_until = None  # cooldown expirado
        return True

    def _start_cooldown(self) -> None:
        self._config._unavailable_until = time.time() + COOLDOWN_SECONDS
