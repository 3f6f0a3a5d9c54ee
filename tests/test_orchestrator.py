# tests/test_orchestrator.py
import asyncio

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from kengine.explorer import Explorer
from kengine.orchestrator import ModeNotSelectedError, NoDocumentError, Orchestrator
from kengine.pipeline.models import SectionStatus
from kengine.pipeline.section_pipeline import SectionPipeline
from kengine.pipeline.transformer import ChunkTransformer
from kengine.processor.models import ReadingMode, UnitOrigin
from kengine.processor.parsers.factory import ParserFactory
from kengine.processor.sectioner.detector import SectionDetector


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

_PAGES = [
    "Chapter 1 Inicio\nUna frase corta.",
    "Otra frase en la página dos.",
    "Chapter 2 Medio\nTexto del medio.",
    "Más texto del medio.",
    "Chapter 3 Final\nTexto final.",
]


@pytest.fixture
def doc_file(tmp_path) -> Path:
    """Documento .txt de 5 páginas y 3 capítulos."""
    f = tmp_path / "documento.txt"
    f.write_text("\f".join(_PAGES), encoding="utf-8")
    return f


def make_mock_router(answer=None):
    """Router que nunca responde: todas las páginas salen por fallback."""
    router = MagicMock()
    router.complete = AsyncMock(return_value=answer)
    return router


def make_orchestrator(router=None, with_explorer: bool = True) -> Orchestrator:
    router = router or make_mock_router()
    return Orchestrator(
        parser_factory = ParserFactory(),
        detector       = SectionDetector(),
        pipeline       = SectionPipeline(ChunkTransformer(router)),
        explorer       = Explorer(router) if with_explorer else None,
    )


# ------------------------------------------------------------------
# Apertura y modo
# ------------------------------------------------------------------

class TestApertura:

    def test_open_detecta_secciones(self, doc_file):
        orch = make_orchestrator()
        document = orch.open(str(doc_file))

        assert document.raw.page_count == 5
        assert [s.title for s in document.sections] == [
            "Chapter 1 Inicio", "Chapter 2 Medio", "Chapter 3 Final",
        ]

    def test_archivo_inexistente_propaga_error(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            make_orchestrator().open(str(tmp_path / "no_existe.txt"))

    def test_leer_sin_documento_lanza_error(self):
        orch = make_orchestrator()
        with pytest.raises(NoDocumentError):
            asyncio.run(orch.select_mode(ReadingMode.CASUAL))

    def test_avanzar_sin_modo_lanza_error(self, doc_file):
        orch = make_orchestrator()
        orch.open(str(doc_file))
        with pytest.raises(ModeNotSelectedError):
            orch.advance()

    def test_select_mode_prepara_primera_seccion_y_lanza_look_ahead(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            first = await orch.select_mode(ReadingMode.STUDY)
            return orch, first, orch.section_status(1), orch.section_status(2)

        orch, first, status_1, status_2 = asyncio.run(scenario())

        assert orch.mode == ReadingMode.STUDY
        assert first.section_index == 0
        assert not orch.is_loading
        assert status_1 == SectionStatus.IN_FLIGHT
        assert status_2 == SectionStatus.NOT_REQUESTED

    def test_modelo_caido_sigue_siendo_legible(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            return orch.current_page(), orch.current_unit()

        page, unit = asyncio.run(scenario())

        assert page.origin == UnitOrigin.FALLBACK
        assert page.page_title == "Page 1"
        assert "Una frase corta." in unit.text


# ------------------------------------------------------------------
# Navegación
# ------------------------------------------------------------------

class TestNavegacion:

    def test_recorre_todo_el_documento(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            visited = []
            while True:
                if orch.is_loading:
                    await orch.wait_current_section()
                visited.append((orch.cursor.section, orch.cursor.page))
                if not orch.advance():
                    break
            return visited

        visited = asyncio.run(scenario())

        assert visited == [(0, 0), (0, 1), (1, 0), (1, 1), (2, 0)]

    def test_entrar_en_seccion_lanza_la_siguiente(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            await orch.wait_current_section()
            orch.advance()                       # página 2 de la sección 0
            orch.advance()                       # entra en la sección 1
            await orch.wait_current_section()
            return orch.section_status(2)

        status = asyncio.run(scenario())
        assert status in (SectionStatus.IN_FLIGHT, SectionStatus.READY)

    def test_jump_espera_la_seccion(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            result = await orch.jump(2)
            return orch, result

        orch, result = asyncio.run(scenario())

        assert result.section_index == 2
        assert orch.cursor.section == 2
        assert not orch.is_loading

    def test_jump_fuera_de_rango(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            await orch.jump(7)

        with pytest.raises(IndexError):
            asyncio.run(scenario())

    def test_reset_descarta_todo(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            orch.reset()
            return orch

        orch = asyncio.run(scenario())

        assert orch.document is None
        assert orch.mode is None
        with pytest.raises(NoDocumentError):
            orch.current_page_text()


# ------------------------------------------------------------------
# Progreso
# ------------------------------------------------------------------

class TestProgreso:

    def test_secciones_pendientes_cuentan_tres_por_pagina(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            at_start = orch.progress_percent()
            orch.advance()
            return at_start, orch.progress_percent()

        at_start, after_one = asyncio.run(scenario())

        # sección 0 lista: 2 unidades; pendientes: (2 + 1) páginas × 3 = 9
        assert at_start == 0
        assert after_one == 9      # 1 / 11

    def test_con_todo_listo_cuenta_unidades_reales(self, doc_file):
        async def scenario():
            orch = make_orchestrator()
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.CASUAL)
            await orch.jump(1)
            await orch.jump(2)
            return orch.progress_percent()

        # 4 de 5 unidades antes de la última página
        assert asyncio.run(scenario()) == 80


# ------------------------------------------------------------------
# Explorer
# ------------------------------------------------------------------

class TestAsk:

    def test_ask_usa_la_pagina_actual(self, doc_file):
        router = make_mock_router(answer="Porque sí.")

        async def scenario():
            orch = make_orchestrator(router)
            orch.open(str(doc_file))
            await orch.select_mode(ReadingMode.DEEP)
            return await orch.ask("¿Por qué?")

        answer = asyncio.run(scenario())

        assert answer == "Porque sí."
        payload, _ = router.complete.call_args.args
        assert 'Current page: "Chapter 1 Inicio\nUna frase corta."' in payload
        assert payload.endswith('Q: "¿Por qué?"')

    def test_ask_sin_explorer_lanza_error(self, doc_file):
        orch = make_orchestrator(with_explorer=False)
        orch.open(str(doc_file))
        with pytest.raises(RuntimeError):
            asyncio.run(orch.ask("¿Algo?"))

    def test_pregunta_vacia_rechazada(self, doc_file):
        orch = make_orchestrator()
        orch.open(str(doc_file))
        with pytest.raises(ValueError):
            asyncio.run(orch.ask("   ", page_text=""))

    def test_documento_largo_se_recorta(self):
        from kengine.processor.models import Page, RawDocument

        router = make_mock_router(answer="ok")
        explorer = Explorer(router, document_chars=50, page_chars=10)
        raw = RawDocument("Largo", "x.txt", [Page(0, 1, "a" * 200)])

        asyncio.run(explorer.ask("¿Qué?", raw, page_text="b" * 40))

        payload, _ = router.complete.call_args.args
        assert "a" * 50 + "\n" in payload
        assert "a" * 51 not in payload
        assert f'Current page: "{"b" * 10}"' in payload
