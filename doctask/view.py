# doctask/view.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from doctask.client.base import TaskBackend
from doctask.client.errors import BackendError, describe_task_error
from doctask.client.models import (
    Conversation, CostEstimate, EstimateConfig, EstimateTiming, PollConfig, Task, TaskStatus,
)
from doctask.estimator import EstimationDebouncer
from doctask.poller import TaskPoller
from doctask.processor.models import Page
from doctask.processor.pages.editor import LastPageError, PageEditor, PageOutOfRangeError
from doctask.processor.pages.segmenter import PageSegmenter
from doctask.processor.render.code_blocks import CodeBlockDetector
from doctask.processor.render.models import CodeBlock, TextBlock

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Avisos para el usuario que muestra la UI o el CLI
# ------------------------------------------------------------------

class NoticeLevel(Enum):
    INFO    = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR   = "error"


@dataclass
class Notice:
    level:   NoticeLevel
    message: str


class ViewMode(Enum):
    EXTRACTED  = "extracted"
    TRANSLATED = "translated"


# Estados en los que la carga inicial arranca el polling
_POLLABLE = {
    TaskStatus.PENDING, TaskStatus.QUEUED,
    TaskStatus.EXTRACTING, TaskStatus.TRANSLATING, TaskStatus.EMBEDDING,
}


class TaskView:
    """
    Dueña exclusiva del estado de UNA tarea visible: la tarea, las páginas
    extraídas y traducidas, la página actual, el buffer de edición, la sesión
    de polling y el temporizador de estimación.

    Se usa como recurso con alcance:

        async with TaskView(backend, task_id) as view:
            ...

    Al salir (por la razón que sea) se detiene el polling y se cancela
    cualquier estimación pendiente. Los fallos del backend nunca escapan:
    se convierten en reintentos silenciosos o en Notices.
    """

    def __init__(
        self,
        backend:         TaskBackend,
        task_id:         str,
        segmenter:       Optional[PageSegmenter] = None,
        detector:        Optional[CodeBlockDetector] = None,
        poll_config:     Optional[PollConfig] = None,
        estimate_timing: Optional[EstimateTiming] = None,
        on_notice:       Optional[Callable[[Notice], None]] = None,
        on_task:         Optional[Callable[[Task], None]] = None,
    ):
        poll_config     = poll_config or PollConfig()
        estimate_timing = estimate_timing or EstimateTiming()

        self._backend   = backend
        self._task_id   = str(task_id)
        self._segmenter = segmenter or PageSegmenter()
        self._detector  = detector or CodeBlockDetector()
        self._on_notice = on_notice
        self._on_task   = on_task

        self.task: Optional[Task] = None
        self.conversations: list[Conversation] = []
        self.notices: list[Notice] = []
        self.gave_up = False
        self.view_mode = ViewMode.EXTRACTED
        self.load_error: Optional[BackendError] = None

        self._editors = {
            ViewMode.EXTRACTED:  PageEditor(),
            ViewMode.TRANSLATED: PageEditor(),
        }

        self.poller = TaskPoller(
            backend,
            on_update    = self._apply_task,
            on_terminal  = self._handle_terminal,
            on_give_up   = self._handle_give_up,
            interval_ms  = poll_config.interval_ms,
            max_attempts = poll_config.max_attempts,
        )
        self.estimator = EstimationDebouncer(
            backend,
            on_error     = self._handle_estimate_error,
            quiet_ms     = estimate_timing.quiet_ms,
            highlight_ms = estimate_timing.highlight_ms,
        )

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "TaskView":
        await self.load()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.poller.stop()
        self.estimator.cancel()

    async def load(self) -> bool:
        """
        Carga inicial. Devuelve False si la tarea no se pudo obtener;
        el error queda en load_error.
        """
        self.load_error = None
        try:
            task = await self._backend.get_task(self._task_id)
        except BackendError as e:
            self.load_error = e
            logger.error("No se pudo cargar la tarea %s: %s", self._task_id, e)
            self._notify(NoticeLevel.ERROR, f"No se pudo cargar la tarea: {e.message}")
            return False

        self._apply_task(task)
        self._resegment(task)

        if task.status == TaskStatus.COMPLETED and task.task_type.has_knowledge_base:
            await self._load_conversations()
        if task.status == TaskStatus.FAILED:
            self._notify(NoticeLevel.ERROR, describe_task_error(task.error_message, task.error_code))
        if task.status in _POLLABLE:
            self.start_polling()
        return True

    def start_polling(self) -> None:
        self.gave_up = False
        self.poller.start(self._task_id)

    async def wait(self) -> None:
        """Espera a que termine la sesión de polling actual."""
        await self.poller.wait()

    # ------------------------------------------------------------------
    # Procesar / reintentar
    # ------------------------------------------------------------------

    async def process(self) -> bool:
        """
        Acción del usuario: lanzar o relanzar el procesamiento.
        Vacía las páginas hasta que lleguen datos nuevos. Si el backend
        rechaza la petición, las páginas actuales se conservan.
        """
        try:
            task = await self._backend.process_task(self._task_id)
        except BackendError as e:
            logger.error("No se pudo procesar la tarea %s: %s", self._task_id, e)
            self._notify(NoticeLevel.ERROR, f"No se pudo iniciar el procesamiento: {e.message}")
            return False

        for editor in self._editors.values():
            editor.reset()
        self.view_mode = ViewMode.EXTRACTED

        # El reintento reinicia el estado: no se valida el orden aquí
        self.task = task
        if self._on_task:
            self._on_task(task)

        if task.status.is_terminal:
            await self._handle_terminal(task)
        else:
            self.start_polling()
        return True

    # ------------------------------------------------------------------
    # Páginas
    # ------------------------------------------------------------------

    @property
    def editor(self) -> PageEditor:
        return self._editors[self.view_mode]

    @property
    def extracted_pages(self) -> list[Page]:
        return self._editors[ViewMode.EXTRACTED].pages

    @property
    def translated_pages(self) -> list[Page]:
        return self._editors[ViewMode.TRANSLATED].pages

    @property
    def can_show_translation(self) -> bool:
        return (
            self.task is not None
            and self.task.task_type.has_translation
            and self.task.processing is not None
            and bool(self.task.processing.translated_text)
        )

    def set_view_mode(self, mode: ViewMode) -> None:
        if mode == ViewMode.TRANSLATED and not self.can_show_translation:
            raise ValueError("Esta tarea no tiene texto traducido")
        self.editor.cancel_edit()
        self.view_mode = mode
        self.editor.go_to(1)

    def render_current_page(self) -> list[TextBlock | CodeBlock]:
        page = self.editor.current
        if page is None:
            return []
        return self._detector.split_blocks(page.content)

    async def save_page(self) -> bool:
        """Persiste el buffer de edición de la página actual."""
        editor = self.editor
        if not editor.is_editing:
            return False
        return await self._persist(editor, editor.edited_pages(), "Página guardada")

    async def replace_page(self, page_number: int, content: str) -> bool:
        editor = self.editor
        try:
            pages = editor.with_content(page_number, content)
        except PageOutOfRangeError as e:
            self._notify(NoticeLevel.WARNING, str(e))
            return False
        return await self._persist(editor, pages, "Página guardada")

    async def delete_page(self, page_number: Optional[int] = None) -> bool:
        editor = self.editor
        target = page_number or editor.current_page
        try:
            pages = editor.pages_without(target)
        except (LastPageError, PageOutOfRangeError) as e:
            self._notify(NoticeLevel.WARNING, str(e))
            return False
        return await self._persist(editor, pages, "Página eliminada")

    async def _persist(self, editor: PageEditor, pages: list[Page], success: str) -> bool:
        # Primero el backend, luego el estado local: si falla no se toca nada
        text = self._segmenter.rejoin(pages)
        field = (
            {"translated_text": text}
            if self.view_mode == ViewMode.TRANSLATED
            else {"extracted_text": text}
        )
        try:
            await self._backend.update_processing_text(self._task_id, **field)
        except BackendError as e:
            logger.error("No se pudo guardar el texto de la tarea %s: %s", self._task_id, e)
            self._notify(NoticeLevel.ERROR, f"No se pudo guardar: {e.message}")
            return False

        editor.commit(pages)
        logger.info("Texto de la tarea %s actualizado (%d páginas)", self._task_id, len(pages))
        self._notify(NoticeLevel.SUCCESS, success)
        return True

    # ------------------------------------------------------------------
    # Preguntas y respuestas
    # ------------------------------------------------------------------

    async def ask_question(self, question: str, language: str = "fa", top_k: int = 5) -> Optional[Conversation]:
        if not question.strip():
            return None
        try:
            conversation = await self._backend.ask_question(self._task_id, question, language, top_k)
        except BackendError as e:
            self._notify(NoticeLevel.ERROR, f"No se pudo responder la pregunta: {e.message}")
            return None
        self.conversations = [conversation] + self.conversations
        return conversation

    async def delete_conversation(self, conversation_id: str) -> None:
        try:
            await self._backend.delete_conversation(self._task_id, conversation_id)
        except BackendError as e:
            # Se elimina localmente aunque el backend falle
            logger.warning("No se pudo borrar la conversación %s: %s", conversation_id, e)
        self.conversations = [c for c in self.conversations if c.id != conversation_id]

    # ------------------------------------------------------------------
    # Estimación de coste
    # ------------------------------------------------------------------

    def request_estimate(self, config: EstimateConfig) -> None:
        self.estimator.request_estimate(config)

    @property
    def estimate(self) -> Optional[CostEstimate]:
        return self.estimator.estimate

    # ------------------------------------------------------------------
    # Callbacks del poller
    # ------------------------------------------------------------------

    def _apply_task(self, task: Task) -> None:
        previous = self.task
        if previous is not None and not task.status.can_follow(previous.status):
            logger.warning(
                "Transición hacia atrás en la tarea %s: %s → %s",
                task.id, previous.status.value, task.status.value,
            )
        self.task = task
        if self._on_task:
            self._on_task(task)

    async def _handle_terminal(self, task: Task) -> None:
        self._resegment(task)
        if task.status == TaskStatus.COMPLETED:
            if task.task_type.has_knowledge_base:
                await self._load_conversations()
            self._notify(NoticeLevel.SUCCESS, "Procesamiento completado")
        else:
            logger.error("La tarea %s falló: %s", task.id, task.error_message)
            self._notify(NoticeLevel.ERROR, describe_task_error(task.error_message, task.error_code))

    def _handle_give_up(self, reason: str) -> None:
        self.gave_up = True
        self._notify(NoticeLevel.WARNING, reason)

    def _handle_estimate_error(self, error: BackendError) -> None:
        self._notify(NoticeLevel.ERROR, f"No se pudo estimar el coste: {error.message}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resegment(self, task: Task) -> None:
        processing = task.processing
        if processing is None:
            return
        total = task.total_pages
        if processing.extracted_text:
            self._editors[ViewMode.EXTRACTED].reset(
                self._segmenter.segment(processing.extracted_text, total)
            )
        if processing.translated_text:
            self._editors[ViewMode.TRANSLATED].reset(
                self._segmenter.segment(processing.translated_text, total)
            )

    async def _load_conversations(self) -> None:
        try:
            self.conversations = await self._backend.get_conversations(self._task_id)
        except BackendError as e:
            logger.info("Sin conversaciones para la tarea %s todavía: %s", self._task_id, e)
            self.conversations = []

    def _notify(self, level: NoticeLevel, message: str) -> None:
        notice = Notice(level=level, message=message)
        self.notices.append(notice)
        if self._on_notice:
            self._on_notice(notice)
