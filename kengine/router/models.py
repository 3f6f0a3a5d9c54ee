# router/models.py
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ModelResponse:
    text:          str
    model_used:    str
    tokens_input:  int = 0
    tokens_output: int = 0


@dataclass
class ModelConfig:
    """
    Configuración de un modelo individual.
    Se carga desde ~/.kengine/config.yaml.
    """
    name:            str
    priority:        int
    api_key:         Optional[str]   = None
    model_id:        Optional[str]   = None   # None → el default del adaptador
    timeout_seconds: Optional[float] = None   # None → sin timeout propio
    temperature:     float = 0.7
    max_tokens:      int   = 4096

    # Control de cooldown temporal (no viene del YAML, es runtime)
    _unavailable_until: Optional[float] = field(
        default=None, compare=False, repr=False
    )
