from kengine.router.router import Router, AllModelsExhaustedError
from kengine.router.base import BaseModel
from kengine.router.models import ModelResponse, ModelConfig
from kengine.router.prompt_builder import build_chunk_prompt, build_batch_payload
from kengine.router.response_parser import decode_page_results, parse_payload
from kengine.router.config_loader import load_model_configs

__all__ = [
    "Router",
    "AllModelsExhaustedError",
    "BaseModel",
    "ModelResponse",
    "ModelConfig",
    "build_chunk_prompt",
    "build_batch_payload",
    "decode_page_results",
    "parse_payload",
    "load_model_configs",
]
