# doctask/cli.py
import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from doctask.client.config_loader import load_config
from doctask.client.errors import BackendError, BackendUnavailableError, describe_task_error
from doctask.client.models import EstimateConfig, TaskStatus, TaskType
from doctask.estimator import EstimationDebouncer
from doctask.factory import build_backend, build_task_view
from doctask.processor.pages.segmenter import PageSegmenter
from doctask.processor.render.bidi import BidiTextFormatter
from doctask.processor.render.code_blocks import CodeBlockDetector
from doctask.processor.render.models import CodeBlock
from doctask.view import Notice, NoticeLevel, ViewMode


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

_NOTICE_COLORS = {
    NoticeLevel.INFO:    None,
    NoticeLevel.SUCCESS: "green",
    NoticeLevel.WARNING: "yellow",
    NoticeLevel.ERROR:   "red",
}

_VIEW_CHOICE = click.Choice([m.value for m in ViewMode], case_sensitive=False)


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="doctask")
@click.option("--config", "config_path", default=None, type=click.Path(), help="Ruta al config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Muestra el log interno")
@click.pass_context
def main(ctx, config_path: str | None, verbose: bool):
    """
    doctask — visor de tareas de documentos.

    Reconstruye las páginas de un documento extraído/traducido,
    las muestra con dirección RTL/LTR correcta y sigue el
    procesamiento en el backend hasta que termina.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ------------------------------------------------------------------
# doctask split (sin backend)
# ------------------------------------------------------------------

@main.command()
@click.option("--file", "-f", "file_path", required=True, type=click.Path(exists=False), help="Archivo de texto plano")
@click.option("--pages", "-n", "total_pages", required=True, type=int, help="Número de páginas del documento")
@click.option("--page", "-p", "page_number", type=int, default=None, help="Mostrar solo esta página")
@click.option("--raw", is_flag=True, help="Sin marcas direccionales")
def split(file_path: str, total_pages: int, page_number: int | None, raw: bool):
    """Divide un archivo de texto en páginas como lo haría la vista de tarea."""
    path = Path(file_path)
    if not path.is_file():
        _abort(f"Archivo no encontrado: {file_path}")
    if total_pages < 1:
        _abort("--pages debe ser mayor o igual que 1.")

    segmenter = PageSegmenter()
    pages = segmenter.segment(path.read_text(encoding="utf-8"), total_pages)

    if not pages:
        click.echo("[doctask] El archivo está vacío.")
        return

    strategy = segmenter.last_strategy.value if segmenter.last_strategy else "-"
    click.echo(f"[doctask] {len(pages)} páginas (estrategia: {strategy})")

    total = len(pages)
    if page_number is not None:
        page_number = max(1, min(total, page_number))
        pages = [pages[page_number - 1]]

    for page in pages:
        _print_page(page.page_number, total, page.content, raw)


# ------------------------------------------------------------------
# doctask show
# ------------------------------------------------------------------

@main.command()
@click.option("--task", "-t", "task_id", required=True, help="Id de la tarea")
@click.option("--view", "view_mode", default="extracted", show_default=True, type=_VIEW_CHOICE)
@click.option("--page", "-p", "page_number", type=int, default=1, show_default=True)
@click.option("--raw", is_flag=True, help="Sin marcas direccionales")
@click.pass_context
def show(ctx, task_id: str, view_mode: str, page_number: int, raw: bool):
    """Muestra el estado de una tarea y una de sus páginas."""

    async def _show(view):
        _print_status(view.task)
        _select_view(view, view_mode)
        if not view.editor.pages:
            click.echo("[doctask] La tarea todavía no tiene texto.")
            return 0
        current = view.editor.go_to(page_number)
        _print_page(current, view.editor.total_pages, None, raw, blocks=view.render_current_page())
        return 0

    sys.exit(_run_view(ctx, task_id, _show))


# ------------------------------------------------------------------
# doctask watch / process
# ------------------------------------------------------------------

@main.command()
@click.option("--task", "-t", "task_id", required=True, help="Id de la tarea")
@click.pass_context
def watch(ctx, task_id: str):
    """Sigue la tarea hasta que termina (o se agota el tiempo de espera)."""

    async def _watch(view):
        if view.poller.active:
            click.echo("[doctask] Esperando al backend...")
            await view.wait()
        return _print_outcome(view)

    sys.exit(_run_view(ctx, task_id, _watch, follow=True))


@main.command()
@click.option("--task", "-t", "task_id", required=True, help="Id de la tarea")
@click.option("--no-watch", is_flag=True, help="No esperar a que termine")
@click.pass_context
def process(ctx, task_id: str, no_watch: bool):
    """Lanza (o relanza) el procesamiento de una tarea."""

    async def _process(view):
        if not await view.process():
            return 1
        click.echo("[doctask] Procesamiento iniciado.")
        if no_watch:
            return 0
        await view.wait()
        return _print_outcome(view)

    sys.exit(_run_view(ctx, task_id, _process, follow=True))


# ------------------------------------------------------------------
# doctask edit-page / delete-page
# ------------------------------------------------------------------

@main.command("edit-page")
@click.option("--task", "-t", "task_id", required=True, help="Id de la tarea")
@click.option("--page", "-p", "page_number", required=True, type=int)
@click.option("--file", "-f", "file_path", required=True, type=click.Path(exists=False), help="Nuevo contenido")
@click.option("--view", "view_mode", default="extracted", show_default=True, type=_VIEW_CHOICE)
@click.pass_context
def edit_page(ctx, task_id: str, page_number: int, file_path: str, view_mode: str):
    """Reemplaza el contenido de una página y lo guarda en el backend."""
    path = Path(file_path)
    if not path.is_file():
        _abort(f"Archivo no encontrado: {file_path}")
    content = path.read_text(encoding="utf-8").strip()

    async def _edit(view):
        _select_view(view, view_mode)
        return 0 if await view.replace_page(page_number, content) else 1

    sys.exit(_run_view(ctx, task_id, _edit))


@main.command("delete-page")
@click.option("--task", "-t", "task_id", required=True, help="Id de la tarea")
@click.option("--page", "-p", "page_number", required=True, type=int)
@click.option("--view", "view_mode", default="extracted", show_default=True, type=_VIEW_CHOICE)
@click.option("--yes", "-y", is_flag=True, help="No pedir confirmación")
@click.pass_context
def delete_page(ctx, task_id: str, page_number: int, view_mode: str, yes: bool):
    """Elimina una página y renumera las siguientes."""
    if not yes and not click.confirm(f"¿Seguro que quieres eliminar la página {page_number}?", default=False):
        click.echo("[doctask] Sin cambios.")
        return

    async def _delete(view):
        _select_view(view, view_mode)
        if not await view.delete_page(page_number):
            return 1
        click.echo(f"[doctask] Quedan {view.editor.total_pages} páginas.")
        return 0

    sys.exit(_run_view(ctx, task_id, _delete))


# ------------------------------------------------------------------
# doctask ask
# ------------------------------------------------------------------

@main.command()
@click.option("--task", "-t", "task_id", required=True, help="Id de la tarea")
@click.option("--language", default="fa", show_default=True, metavar="LANG")
@click.option("--top-k", default=5, show_default=True, type=int)
@click.argument("question")
@click.pass_context
def ask(ctx, task_id: str, language: str, top_k: int, question: str):
    """Pregunta sobre un documento indexado en la base de conocimiento."""
    if not question.strip():
        _abort("La pregunta no puede estar vacía.")

    async def _ask(view):
        task = view.task
        if task.status != TaskStatus.COMPLETED or not task.task_type.has_knowledge_base:
            _abort("La tarea no tiene una base de conocimiento lista para preguntas.")
        conversation = await view.ask_question(question, language=language, top_k=top_k)
        if conversation is None:
            return 1
        formatter = BidiTextFormatter()
        click.echo(formatter.format_text(conversation.answer))
        return 0

    sys.exit(_run_view(ctx, task_id, _ask))


# ------------------------------------------------------------------
# doctask estimate
# ------------------------------------------------------------------

@main.command()
@click.option("--document", "-d", "document_id", required=True, help="Id del documento")
@click.option(
    "--type", "task_type",
    required = True,
    type     = click.Choice([t.value for t in TaskType], case_sensitive=False),
)
@click.option("--tool", default="auto", show_default=True, help="Herramienta de extracción")
@click.option("--from", "source_lang", default="fa", show_default=True, metavar="LANG")
@click.option("--to", "target_lang", default=None, metavar="LANG")
@click.option("--dpi", type=int, default=None)
@click.option("--page-start", type=int, default=None)
@click.option("--page-end", type=int, default=None)
@click.pass_context
def estimate(ctx, document_id, task_type, tool, source_lang, target_lang, dpi, page_start, page_end):
    """Estima el coste de procesar un documento con la configuración dada."""
    task_type = TaskType(task_type)

    if task_type.has_translation and not target_lang:
        _abort("--to es obligatorio para tareas con traducción.")
    if (page_start is None) != (page_end is None):
        _abort("--page-start y --page-end van juntos.")
    if page_start is not None and (page_start < 1 or page_end < page_start):
        _abort(f"Rango de páginas inválido: {page_start}-{page_end}")
    if dpi is not None and dpi <= 0:
        _abort("--dpi debe ser positivo.")

    config = EstimateConfig(
        document_id     = document_id,
        task_type       = task_type,
        extraction_tool = tool,
        source_language = source_lang,
        target_language = target_lang,
        page_start      = page_start,
        page_end        = page_end,
        dpi             = dpi,
    )
    app_config = _load_config(ctx)
    errors: list[BackendError] = []

    async def _estimate():
        async with build_backend(app_config) as backend:
            debouncer = EstimationDebouncer(
                backend,
                on_error     = errors.append,
                quiet_ms     = app_config.estimate.quiet_ms,
                highlight_ms = app_config.estimate.highlight_ms,
            )
            debouncer.request_estimate(config)
            await debouncer.wait_idle()
            debouncer.cancel()
            return debouncer.estimate

    result = asyncio.run(_estimate())
    if result is None:
        detail = errors[-1].message if errors else "sin respuesta"
        _error(f"No se pudo estimar el coste: {detail}")
        sys.exit(2)

    click.echo("─" * 50)
    for name, amount in result.components.items():
        click.echo(f"[doctask]   {name:<17}: {amount:.2f}")
    click.echo(f"[doctask]   {'total':<17}: {result.total:.2f}")
    click.echo(f"[doctask]   {'saldo':<17}: {result.wallet_balance:.2f}")
    if result.sufficient:
        click.echo(click.style("[doctask] ✓ Saldo suficiente", fg="green"))
    else:
        click.echo(click.style("[doctask] ⚠ Saldo insuficiente", fg="yellow"))
    click.echo("─" * 50)


# ------------------------------------------------------------------
# Helpers de ejecución
# ------------------------------------------------------------------

def _load_config(ctx):
    try:
        return load_config(ctx.obj.get("config_path"))
    except FileNotFoundError as e:
        _abort(str(e))
    except ValueError as e:
        _abort(str(e))


def _run_view(ctx, task_id: str, action, follow: bool = False) -> int:
    """
    Abre backend y vista como recursos con alcance, ejecuta la acción
    y garantiza el cierre (polling y estimaciones) pase lo que pase.
    """
    config = _load_config(ctx)
    last_status: list[TaskStatus] = []

    def on_task(task):
        if follow and (not last_status or last_status[-1] != task.status):
            click.echo(f"[doctask] Estado: {task.status.value}")
        last_status.append(task.status)

    async def _main() -> int:
        async with build_backend(config) as backend:
            view = build_task_view(
                task_id,
                config    = config,
                backend   = backend,
                on_notice = _echo_notice,
                on_task   = on_task,
            )
            try:
                if not await view.load():
                    # Backend caído: no es culpa del usuario
                    return 2 if isinstance(view.load_error, BackendUnavailableError) else 1
                return await action(view)
            finally:
                view.close()

    try:
        return asyncio.run(_main())
    except KeyboardInterrupt:
        click.echo("\n[doctask] Interrumpido. La tarea sigue en el servidor.")
        return 0


def _select_view(view, view_mode: str) -> None:
    try:
        view.set_view_mode(ViewMode(view_mode))
    except ValueError as e:
        _abort(str(e))


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _echo_notice(notice: Notice) -> None:
    color = _NOTICE_COLORS[notice.level]
    message = f"[doctask] {notice.message}"
    err = notice.level in (NoticeLevel.WARNING, NoticeLevel.ERROR)
    click.echo(click.style(message, fg=color) if color else message, err=err)


def _print_status(task) -> None:
    click.echo(f"[doctask] Tarea {task.id} | {task.task_type.value} | {task.status.value}")
    if task.status == TaskStatus.FAILED:
        click.echo(click.style(
            f"[doctask] {describe_task_error(task.error_message, task.error_code)}", fg="red",
        ))


def _print_page(number: int, total: int | None, content: str | None, raw: bool, blocks=None) -> None:
    header = f" Página {number} / {total} " if total else f" Página {number} "
    click.echo(f"──{header}{'─' * max(0, 46 - len(header))}")

    if blocks is None:
        blocks = CodeBlockDetector().split_blocks(content or "")
    if not blocks:
        click.echo("(página vacía)")
        return

    for block in blocks:
        if isinstance(block, CodeBlock):
            click.echo(f"```{block.language}")
            click.echo(block.formatted)
            click.echo("```")
        else:
            click.echo(block.text if raw else block.formatted)


def _print_outcome(view) -> int:
    """Resumen final. Código de salida: 0 completada, 1 fallida, 2 sin resolver."""
    task = view.task
    click.echo("")
    click.echo("─" * 50)
    if view.gave_up or not task.status.is_terminal:
        click.echo("[doctask] ⚠ La tarea sigue en proceso")
        code = 2
    elif task.status == TaskStatus.FAILED:
        click.echo(click.style("[doctask] ✗ La tarea falló", fg="red"))
        code = 1
    else:
        click.echo("[doctask] ✓ Tarea completada")
        code = 0

    if task.processing:
        click.echo(f"[doctask]   Páginas      : {len(view.extracted_pages)}")
        click.echo(f"[doctask]   Palabras     : {task.processing.word_count}")
        if view.translated_pages:
            click.echo(f"[doctask]   Traducidas   : {len(view.translated_pages)}")
    if view.conversations:
        click.echo(f"[doctask]   Preguntas    : {len(view.conversations)}")
    click.echo("─" * 50)
    return code


def _abort(message: str) -> None:
    """Error de validación — culpa del usuario."""
    click.echo(click.style(f"[doctask] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema — no es culpa del usuario."""
    click.echo(click.style(f"[doctask] {message}", fg="red"), err=True)
