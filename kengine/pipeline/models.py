# pipeline/models.py
from dataclasses import dataclass
from enum import Enum


class SectionStatus(Enum):
    NOT_REQUESTED = "not_requested"
    IN_FLIGHT     = "in_flight"
    READY         = "ready"


@dataclass
class PipelineConfig:
    """Configuración del pipeline de unidades. Centralizada y explícita."""
    batch_size:                  int = 3     # páginas por llamada al modelo
    fallback_sentences_per_unit: int = 3
    fallback_max_chars:          int = 300   # página sin oraciones → primeros N caracteres
