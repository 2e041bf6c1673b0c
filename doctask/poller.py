# doctask/poller.py
import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from doctask.client.base import TaskBackend
from doctask.client.errors import BackendError
from doctask.client.models import Task

logger = logging.getLogger(__name__)

GIVE_UP_MESSAGE = (
    "El procesamiento está tardando demasiado. "
    "Actualiza más tarde para comprobar el estado de la tarea."
)

TaskCallback   = Callable[[Task], Union[None, Awaitable[None]]]
GiveUpCallback = Callable[[str], Union[None, Awaitable[None]]]


@dataclass
class PollSession:
    """Estado de la sesión de polling activa. Una por vista de tarea."""
    task_id:      str
    interval_ms:  int
    max_attempts: int
    attempts:     int  = 0
    active:       bool = True


class TaskPoller:
    """
    Sigue un trabajo asíncrono del backend hasta un estado terminal.

    Bucle de un solo hueco: espera el intervalo, consulta, procesa la
    respuesta y solo entonces programa la siguiente consulta. Nunca hay
    dos consultas en vuelo para la misma sesión.

    - completed / failed → on_update + on_terminal, una sola vez, y se detiene.
    - Estado no terminal o fallo transitorio → suma un intento.
    - Al llegar a max_attempts → on_give_up(motivo) sin lanzar excepción.
      El trabajo puede seguir vivo en el servidor.
    """

    def __init__(
        self,
        backend:      TaskBackend,
        on_update:    Optional[TaskCallback]   = None,
        on_terminal:  Optional[TaskCallback]   = None,
        on_give_up:   Optional[GiveUpCallback] = None,
        interval_ms:  int = 3000,
        max_attempts: int = 60,
        sleep:        Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts debe ser >= 1")
        self._backend      = backend
        self._on_update    = on_update
        self._on_terminal  = on_terminal
        self._on_give_up   = on_give_up
        self._interval_ms  = interval_ms
        self._max_attempts = max_attempts
        self._sleep        = sleep
        self._session: Optional[PollSession] = None
        self._runner:  Optional[asyncio.Task] = None

    @property
    def session(self) -> Optional[PollSession]:
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None and self._session.active

    def start(self, task_id: str) -> PollSession:
        """
        Arranca una sesión nueva. Cancela cualquier sesión previa para
        no acumular temporizadores duplicados.
        Debe llamarse dentro de un event loop en marcha.
        """
        self.stop()
        session = PollSession(
            task_id      = task_id,
            interval_ms  = self._interval_ms,
            max_attempts = self._max_attempts,
        )
        self._session = session
        self._runner  = asyncio.get_running_loop().create_task(self._run(session))
        logger.debug("Polling iniciado para la tarea %s cada %d ms", task_id, self._interval_ms)
        return session

    def stop(self) -> None:
        if self._session is not None:
            self._session.active = False
        runner, self._runner = self._runner, None
        # Si stop() se llama desde un callback del propio bucle, basta con marcar la sesión
        if runner is not None and not runner.done() and runner is not asyncio.current_task():
            runner.cancel()

    async def wait(self) -> None:
        """Espera a que la sesión actual termine (terminal, rendición o stop)."""
        runner = self._runner
        if runner is None:
            return
        try:
            await runner
        except asyncio.CancelledError:
            if not runner.cancelled():
                raise

    # ------------------------------------------------------------------
    # Bucle
    # ------------------------------------------------------------------

    async def _run(self, session: PollSession) -> None:
        while session.active:
            await self._sleep(session.interval_ms / 1000)
            if not session.active:
                return

            try:
                task = await self._backend.get_task(session.task_id)
            except BackendError as e:
                session.attempts += 1
                logger.warning(
                    "Fallo transitorio consultando la tarea %s (intento %d/%d): %s",
                    session.task_id, session.attempts, session.max_attempts, e,
                )
                if session.attempts >= session.max_attempts:
                    await self._give_up(session)
                    return
                continue

            if not session.active:
                return

            await _call(self._on_update, task)

            if task.status.is_terminal:
                session.active = False
                logger.info("Tarea %s terminó en estado %s", session.task_id, task.status.value)
                await _call(self._on_terminal, task)
                return

            session.attempts += 1
            logger.debug(
                "Tarea %s en %s (intento %d/%d)",
                session.task_id, task.status.value, session.attempts, session.max_attempts,
            )
            if session.attempts >= session.max_attempts:
                await self._give_up(session)
                return

    async def _give_up(self, session: PollSession) -> None:
        session.active = False
        logger.warning(
            "Polling de la tarea %s abandonado tras %d intentos",
            session.task_id, session.attempts,
        )
        await _call(self._on_give_up, GIVE_UP_MESSAGE)


async def _call(callback, arg) -> None:
    if callback is None:
        return
    result = callback(arg)
    if inspect.isawaitable(result):
        await result
