# kengine/cli.py
import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from kengine.factory import build_orchestrator
from kengine.orchestrator import Orchestrator
from kengine.processor.models import ContentUnit, ReadingMode
from kengine.processor.parsers.factory import (
    DocumentTooLargeError,
    ParserFactory,
    UnsupportedFormatError,
)
from kengine.processor.sectioner.detector import SectionDetector
from kengine.router.config_loader import ConfigError


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

# Extensiones soportadas
_SUPPORTED_FORMATS = {".pdf", ".txt", ".md"}

_MODE_CHOICES = [m.value for m in ReadingMode]


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="kengine")
@click.option("--verbose", "-v", is_flag=True, help="Muestra logs de depuración")
def main(verbose: bool):
    """
    Knowledge Engine: lectura progresiva de documentos.

    Parte un documento en secciones y cada página en unidades
    pequeñas de aprendizaje, preparando la siguiente sección
    mientras lees la actual.
    """
    logging.basicConfig(
        level  = logging.DEBUG if verbose else logging.WARNING,
        format = "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ------------------------------------------------------------------
# kengine sections
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--doc", "-d",
    required = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Ruta al documento (.pdf, .txt, .md)",
)
def sections(doc: str):
    """Muestra las secciones detectadas, sin llamar a ningún modelo."""
    _validate_file(doc)

    try:
        raw = ParserFactory().parse(doc)
    except (UnsupportedFormatError, DocumentTooLargeError, FileNotFoundError) as e:
        _abort(str(e))

    detection = SectionDetector().detect(raw.pages)

    click.echo(f"[kengine] {raw.title}")
    click.echo(
        f"[kengine] {raw.page_count} páginas · {len(detection.sections)} secciones"
        f" (estrategia: {detection.strategy.value})"
    )
    click.echo("─" * 50)
    for i, section in enumerate(detection.sections):
        first = section.start_page_index + 1
        last  = section.start_page_index + len(section.pages)
        click.echo(f"  {i:>3}  {section.title}  [páginas {first}-{last}]")


# ------------------------------------------------------------------
# kengine read
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--doc", "-d",
    required = True,
    type     = click.Path(exists=False),
    help     = "Ruta al documento (.pdf, .txt, .md)",
)
@click.option(
    "--mode", "-m",
    default      = ReadingMode.CASUAL.value,
    show_default = True,
    type         = click.Choice(_MODE_CHOICES, case_sensitive=False),
    help         = "casual (sin preguntas), study (con preguntas de repaso), deep (study + preguntas libres)",
)
@click.option(
    "--section", "-s",
    default = 0,
    type    = click.IntRange(min=0),
    help    = "Empieza en esta sección (índice 0-based)",
)
@click.option("--config", "config_path", default=None, help="Ruta al config.yaml")
def read(doc: str, mode: str, section: int, config_path: str | None):
    """Lee el documento unidad por unidad, preparando la siguiente sección en segundo plano."""
    _validate_file(doc)
    reading_mode = ReadingMode(mode.lower())

    try:
        orchestrator = build_orchestrator(config_path=config_path, on_progress=_print_progress)
    except (FileNotFoundError, ConfigError) as e:
        _abort(str(e))
    except RuntimeError as e:
        _abort(str(e))

    try:
        percent = asyncio.run(_read_document(orchestrator, doc, reading_mode, section))

    except (UnsupportedFormatError, DocumentTooLargeError, FileNotFoundError) as e:
        _abort(str(e))

    except IndexError as e:
        _abort(str(e))

    except KeyboardInterrupt:
        click.echo("\n[kengine] Lectura interrumpida.")
        sys.exit(0)

    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)

    click.echo("─" * 50)
    click.echo(f"[kengine] ✓ Fin del documento — progreso {percent}%")


# ------------------------------------------------------------------
# kengine ask
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--doc", "-d",
    required = True,
    type     = click.Path(exists=False),
    help     = "Ruta al documento (.pdf, .txt, .md)",
)
@click.option("--question", "-q", required=True, help="Pregunta sobre el documento")
@click.option(
    "--page", "-p",
    default = None,
    type    = click.IntRange(min=1),
    help    = "Página de contexto (1-based)",
)
@click.option("--config", "config_path", default=None, help="Ruta al config.yaml")
def ask(doc: str, question: str, page: int | None, config_path: str | None):
    """Pregunta libre sobre el documento (modo Deep Dive)."""
    _validate_file(doc)
    if not question.strip():
        _abort("--question no puede estar vacía.")

    try:
        orchestrator = build_orchestrator(config_path=config_path)
    except (FileNotFoundError, ConfigError) as e:
        _abort(str(e))
    except RuntimeError as e:
        _abort(str(e))

    try:
        answer = asyncio.run(_ask_document(orchestrator, doc, question, page))
    except (UnsupportedFormatError, DocumentTooLargeError, FileNotFoundError, IndexError) as e:
        _abort(str(e))
    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)

    if answer is None:
        _error("El modelo no respondió. Inténtalo de nuevo más tarde.")
        sys.exit(2)

    click.echo(answer)


# ------------------------------------------------------------------
# Flujos async
# ------------------------------------------------------------------

async def _read_document(
    orchestrator: Orchestrator,
    doc:          str,
    mode:         ReadingMode,
    start:        int,
) -> int:
    document = orchestrator.open(doc)
    click.echo(
        f"[kengine] {document.raw.title} — {document.raw.page_count} páginas · "
        f"{len(document.sections)} secciones · modo {mode.label}"
    )
    click.echo("[kengine] Preparando la primera sección...")
    await orchestrator.select_mode(mode)

    if start:
        await orchestrator.jump(start)

    shown_section = shown_page = None
    while True:
        if orchestrator.is_loading:
            click.echo("[kengine] Preparando sección...")
            await orchestrator.wait_current_section()

        cursor = orchestrator.cursor
        if cursor.section != shown_section:
            title = document.sections[cursor.section].title
            click.echo("")
            click.echo(click.style(f"══ {title} ══", bold=True))
            shown_section, shown_page = cursor.section, None

        if cursor.page != shown_page:
            page = orchestrator.current_page()
            if page is not None:
                click.echo(click.style(f"\n— {page.page_title} —", fg="cyan"))
            shown_page = cursor.page

        unit = orchestrator.current_unit()
        if unit is not None:
            _print_unit(unit)

        if not orchestrator.advance():
            break

    return orchestrator.progress_percent()


async def _ask_document(
    orchestrator: Orchestrator,
    doc:          str,
    question:     str,
    page:         int | None,
) -> str | None:
    document = orchestrator.open(doc)
    page_text = ""
    if page is not None:
        if page > document.raw.page_count:
            raise IndexError(f"El documento solo tiene {document.raw.page_count} páginas")
        page_text = document.raw.pages[page - 1].text
    return await orchestrator.ask(question, page_text=page_text)


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str) -> None:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in _SUPPORTED_FORMATS:
        supported = ", ".join(sorted(_SUPPORTED_FORMATS))
        _abort(
            f"Formato no soportado: '{p.suffix}'\n"
            f"Formatos disponibles: {supported}"
        )


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _print_unit(unit: ContentUnit) -> None:
    click.echo(f"\n[{unit.kind.value}] {unit.text}")

    if unit.imagine_prompt:
        click.echo(click.style(f"  ✦ {unit.imagine_prompt}", dim=True))

    check = unit.recall_check
    if check is not None:
        click.echo(f"  ? {check.question}")
        for i, option in enumerate(check.options):
            click.echo(f"    {chr(65 + i)}) {option}")
        click.echo(click.style(f"    → {chr(65 + check.correct_index)}", fg="green"))
        if check.hint:
            click.echo(click.style(f"    💡 {check.hint}", fg="yellow"))


def _print_progress(section_index: int, done: int, total: int) -> None:
    click.echo(f"[kengine] Sección {section_index}: {done}/{total} páginas preparadas", err=True)


def _abort(message: str) -> None:
    """Error de validación — culpa del usuario."""
    click.echo(click.style(f"[kengine] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema — no es culpa del usuario."""
    click.echo(click.style(f"[kengine] {message}", fg="red"), err=True)
