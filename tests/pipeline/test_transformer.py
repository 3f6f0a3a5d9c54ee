import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from kengine.processor.models import Page, ReadingMode, UnitKind, UnitOrigin
from kengine.pipeline.transformer import (
    ChunkTransformer,
    normalize_recall,
    normalize_unit,
    split_fallback_units,
)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def make_pages(count: int, text: str = "Primera frase. Segunda frase.") -> list[Page]:
    return [Page(index=i, source_page_number=i + 1, text=f"{text} ({i})") for i in range(count)]


def make_router(response=None, raises=None):
    router = MagicMock()
    router.complete = AsyncMock(return_value=response, side_effect=raises)
    return router


def quiz(correct=1, options=4) -> dict:
    return {
        "question":     "¿Cuál?",
        "options":      [f"op{i}" for i in range(options)],
        "correctIndex": correct,
        "hint":         "piensa",
    }


def page_obj(title="Título", chunks=None) -> dict:
    if chunks is None:
        chunks = [{"text": "Una idea clara.", "kind": "conceptual", "recallCheck": quiz()}]
    return {"pageTitle": title, "chunks": chunks}


# ------------------------------------------------------------------
# Fallback determinístico
# ------------------------------------------------------------------

class TestFallback:

    def test_agrupa_oraciones_de_tres_en_tres(self):
        units = split_fallback_units("Uno. Dos! Tres? Cuatro.")
        assert [u.text for u in units] == ["Uno. Dos! Tres?", "Cuatro."]
        assert all(u.kind == UnitKind.NARRATIVE for u in units)
        assert all(u.recall_check is None and u.imagine_prompt is None for u in units)

    def test_es_deterministico(self):
        text = "Alfa. Beta. Gamma. Delta. Épsilon."
        first  = [u.text for u in split_fallback_units(text)]
        second = [u.text for u in split_fallback_units(text)]
        assert first == second

    def test_texto_sin_puntuacion_usa_primeros_300(self):
        text = "palabra " * 100
        units = split_fallback_units(text)
        assert len(units) == 1
        assert units[0].text == text.strip()[:300]

    def test_resto_final_sin_puntuacion_se_conserva(self):
        units = split_fallback_units("Hola. Esto queda sin punto")
        assert units[0].text == "Hola. Esto queda sin punto"

    def test_puntuacion_repetida_cuenta_como_una_oracion(self):
        units = split_fallback_units("¿En serio?! Sí... Vale.", sentences_per_unit=1)
        assert [u.text for u in units] == ["¿En serio?!", "Sí...", "Vale."]


# ------------------------------------------------------------------
# Normalización
# ------------------------------------------------------------------

class TestNormalizeUnit:

    def test_nombres_antiguos_se_aceptan(self):
        raw = {
            "text":        "Texto.",
            "type":        "factual",
            "imagination": "Un mapa antiguo",
            "quiz":        {"question": "¿Q?", "options": ["a", "b", "c", "d"], "correct": 2},
        }
        unit = normalize_unit(raw, ReadingMode.STUDY)
        assert unit.kind == UnitKind.FACTUAL
        assert unit.imagine_prompt == "Un mapa antiguo"
        assert unit.recall_check.correct_index == 2

    def test_modo_casual_elimina_preguntas(self):
        raw = {"text": "Texto.", "kind": "conceptual", "recallCheck": quiz()}
        assert normalize_unit(raw, ReadingMode.CASUAL).recall_check is None

    def test_unidad_narrativa_nunca_lleva_pregunta(self):
        raw = {"text": "Texto.", "kind": "narrative", "recallCheck": quiz()}
        assert normalize_unit(raw, ReadingMode.DEEP).recall_check is None

    def test_kind_desconocido_es_narrative(self):
        assert normalize_unit({"text": "x", "kind": "poema"}, ReadingMode.CASUAL).kind == UnitKind.NARRATIVE

    def test_string_suelto_es_texto(self):
        unit = normalize_unit("  solo texto  ", ReadingMode.CASUAL)
        assert unit.text == "solo texto"

    @pytest.mark.parametrize("raw", [{"text": ""}, {"kind": "factual"}, 42, None])
    def test_unidad_sin_texto_se_descarta(self, raw):
        assert normalize_unit(raw, ReadingMode.STUDY) is None


class TestNormalizeRecall:

    @pytest.mark.parametrize("correct", [-1, 4, "1", True, 1.0])
    def test_indice_invalido_descarta_pregunta(self, correct):
        assert normalize_recall(quiz(correct=correct)) is None

    @pytest.mark.parametrize("options", [3, 5])
    def test_exactamente_cuatro_opciones(self, options):
        assert normalize_recall(quiz(options=options)) is None

    def test_pregunta_valida(self):
        check = normalize_recall(quiz(correct=3))
        assert check.correct_index == 3
        assert check.hint == "piensa"


# ------------------------------------------------------------------
# transform_batch
# ------------------------------------------------------------------

class TestTransformBatch:

    def test_una_sola_llamada_por_lote(self):
        router = make_router(json.dumps([page_obj("A"), page_obj("B"), page_obj("C")]))
        transformer = ChunkTransformer(router)

        results = asyncio.run(transformer.transform_batch(make_pages(3), ReadingMode.STUDY))

        router.complete.assert_awaited_once()
        assert [results[i].page_title for i in range(3)] == ["A", "B", "C"]
        assert all(r.origin == UnitOrigin.GENERATED for r in results.values())

    def test_offset_indexa_por_posicion_en_seccion(self):
        router = make_router(json.dumps([page_obj("X")]))
        transformer = ChunkTransformer(router)

        results = asyncio.run(transformer.transform_batch(make_pages(1), ReadingMode.CASUAL, offset=6))

        assert list(results) == [6]

    def test_fallo_de_transporte_usa_fallback_para_todas(self):
        transformer = ChunkTransformer(make_router(None))

        results = asyncio.run(transformer.transform_batch(make_pages(3), ReadingMode.STUDY))

        assert sorted(results) == [0, 1, 2]
        assert all(r.origin == UnitOrigin.FALLBACK for r in results.values())
        assert results[1].page_title == "Page 2"

    def test_excepcion_del_router_no_se_propaga(self):
        transformer = ChunkTransformer(make_router(raises=RuntimeError("boom")))

        results = asyncio.run(transformer.transform_batch(make_pages(2), ReadingMode.CASUAL))

        assert all(r.origin == UnitOrigin.FALLBACK for r in results.values())

    def test_respuesta_parcial_completa_con_fallback(self):
        raw = json.dumps([page_obj("A"), {"pageTitle": "sin chunks"}, page_obj("C")])
        transformer = ChunkTransformer(make_router(raw))

        results = asyncio.run(transformer.transform_batch(make_pages(3), ReadingMode.STUDY))

        assert results[0].page_title == "A"
        assert results[1].origin == UnitOrigin.FALLBACK
        assert results[2].page_title == "C"

    def test_pagina_con_chunks_vacios_usa_fallback(self):
        raw = json.dumps([page_obj("A", chunks=[{"text": ""}])])
        transformer = ChunkTransformer(make_router(raw))

        results = asyncio.run(transformer.transform_batch(make_pages(1), ReadingMode.STUDY))

        assert results[0].origin == UnitOrigin.FALLBACK
        assert results[0].units

    def test_objetos_extra_se_ignoran(self):
        raw = json.dumps([page_obj("A"), page_obj("B"), page_obj("extra")])
        transformer = ChunkTransformer(make_router(raw))

        results = asyncio.run(transformer.transform_batch(make_pages(2), ReadingMode.STUDY))

        assert sorted(results) == [0, 1]

    def test_titulo_vacio_usa_page_n(self):
        raw = json.dumps([page_obj(""), page_obj("B")])
        transformer = ChunkTransformer(make_router(raw))

        results = asyncio.run(transformer.transform_batch(make_pages(2), ReadingMode.STUDY, offset=3))

        assert results[3].page_title == "Page 4"
