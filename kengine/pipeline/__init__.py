# pipeline/__init__.py
from kengine.pipeline.models import PipelineConfig, SectionStatus
from kengine.pipeline.transformer import ChunkTransformer, split_fallback_units
from kengine.pipeline.section_pipeline import SectionPipeline
from kengine.pipeline.scheduler import PipelineState, PrefetchScheduler

__all__ = [
    "PipelineConfig", "SectionStatus",
    "ChunkTransformer", "split_fallback_units",
    "SectionPipeline",
    "PipelineState", "PrefetchScheduler",
]
