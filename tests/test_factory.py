# tests/test_factory.py
import pytest
from kengine.factory import build_orchestrator, build_router
from kengine.orchestrator import Orchestrator
from kengine.router.router import Router


def write_config(tmp_path, body: str):
    f = tmp_path / "config.yaml"
    f.write_text(body, encoding="utf-8")
    return str(f)


class TestFactory:

    def test_construye_orchestrator_con_claude(self, tmp_path):
        path = write_config(tmp_path, "models:\n  - name: claude\n    priority: 1\n    api_key: sk-test\n")
        assert isinstance(build_orchestrator(path), Orchestrator)

    def test_omite_modelos_sin_api_key_y_desconocidos(self, tmp_path):
        path = write_config(tmp_path, (
            "models:\n"
            "  - name: claude\n    priority: 1\n    api_key: sk-test\n"
            "  - name: gemini\n    priority: 2\n"
            "  - name: otro\n    priority: 3\n    api_key: x\n"
        ))
        router = build_router(path)
        assert isinstance(router, Router)
        assert router.available_models() == ["claude"]

    def test_sin_modelos_utilizables_lanza_error(self, tmp_path):
        path = write_config(tmp_path, "models:\n  - name: claude\n    priority: 1\n")
        with pytest.raises(RuntimeError):
            build_router(path)
