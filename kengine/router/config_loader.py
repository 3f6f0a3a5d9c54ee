# router/config_loader.py
import os
from pathlib import Path
from typing import Optional

import yaml

from kengine.router.models import ModelConfig

_DEFAULT_CONFIG_PATH = Path.home() / ".kengine" / "config.yaml"

# Variable de entorno que apunta a otro config.yaml
CONFIG_PATH_ENV = "KENGINE_CONFIG_PATH"


class ConfigError(ValueError):
    """El config.yaml existe pero su contenido no tiene la forma esperada."""
    pass


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    """Ruta explícita > KENGINE_CONFIG_PATH > ~/.kengine/config.yaml."""
    return Path(config_path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH)


def load_model_configs(config_path: Optional[str] = None) -> list[ModelConfig]:
    """
    Lee la lista `models:` del config de kengine.

    Cada entrada describe un proveedor generativo (claude, gemini) que el
    Router usa para transformar páginas y responder preguntas. Las api_key
    con la forma ${VAR} se leen del entorno (o del .env que carga el CLI).
    Devuelve la lista ordenada por prioridad ascendente: la primera es la
    que el Router prueba antes.
    """
    path = resolve_config_path(config_path)

    if not path.exists():
        raise FileNotFoundError(
            f"Config de kengine no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.kengine/config.yaml "
            f"o apunta {CONFIG_PATH_ENV} a tu archivo"
        )

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: se esperaba un mapa con la clave 'models'")

    entries = raw.get("models") or []
    if not isinstance(entries, list):
        raise ConfigError(f"{path}: 'models' debe ser una lista de proveedores")

    configs = [_parse_entry(entry, i, path) for i, entry in enumerate(entries)]
    return sorted(configs, key=lambda c: c.priority)


def _parse_entry(entry, position: int, path: Path) -> ModelConfig:
    if not isinstance(entry, dict) or not entry.get("name"):
        raise ConfigError(f"{path}: el proveedor #{position + 1} no tiene 'name'")

    return ModelConfig(
        name            = str(entry["name"]).strip().lower(),
        priority        = int(entry.get("priority", 99)),
        api_key         = _resolve_env(entry.get("api_key")),
        model_id        = entry.get("model_id"),
        timeout_seconds = entry.get("timeout_seconds"),
        temperature     = float(entry.get("temperature", 0.7)),
        max_tokens      = int(entry.get("max_tokens", 4096)),
    )


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
