# kengine/factory.py
import logging
from typing import Optional

from kengine.explorer import Explorer
from kengine.orchestrator import Orchestrator
from kengine.pipeline.models import PipelineConfig
from kengine.pipeline.scheduler import SectionProgressCallback
from kengine.pipeline.section_pipeline import SectionPipeline
from kengine.pipeline.transformer import ChunkTransformer
from kengine.processor.parsers.factory import ParserFactory
from kengine.processor.sectioner.detector import SectionDetector
from kengine.processor.sectioner.models import SectionConfig
from kengine.router.claude import ClaudeAdapter
from kengine.router.config_loader import load_model_configs
from kengine.router.gemini import GeminiAdapter
from kengine.router.router import Router

logger = logging.getLogger(__name__)


def build_orchestrator(
    config_path:     Optional[str] = None,
    pipeline_config: Optional[PipelineConfig] = None,
    section_config:  Optional[SectionConfig] = None,
    on_progress:     Optional[SectionProgressCallback] = None,
) -> Orchestrator:
    """
    Ensambla el Orchestrator con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.
    """
    router   = build_router(config_path)
    pipeline_config = pipeline_config or PipelineConfig()

    return Orchestrator(
        parser_factory = ParserFactory(),
        detector       = SectionDetector(section_config),
        pipeline       = SectionPipeline(ChunkTransformer(router, pipeline_config), pipeline_config),
        explorer       = Explorer(router),
        on_progress    = on_progress,
    )


def build_router(config_path: Optional[str] = None) -> Router:
    return Router(_build_models(config_path))


def _build_models(config_path: Optional[str]) -> list:
    """
    Carga el config y construye los adaptadores disponibles.
    Si un adaptador no tiene api_key configurada, lo omite.
    """
    configs  = load_model_configs(config_path)
    adapters = {
        "claude": ClaudeAdapter,
        "gemini": GeminiAdapter,
    }
    models = []

    for config in configs:
        adapter_class = adapters.get(config.name)
        if not adapter_class:
            logger.warning("Modelo desconocido en config: %s", config.name)
            continue
        if not config.api_key:
            logger.warning("%s: sin api_key, omitiendo", config.name)
            continue
        models.append(adapter_class(config))

    if not models:
        raise RuntimeError(
            "Ningún modelo configurado. "
            "Revisa ~/.kengine/config.yaml y tus variables de entorno."
        )

    return models
