# doctask/estimator.py
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from doctask.client.base import TaskBackend
from doctask.client.errors import BackendError
from doctask.client.models import CostEstimate, EstimateConfig

logger = logging.getLogger(__name__)

EstimateCallback = Callable[[CostEstimate], Union[None, Awaitable[None]]]
ErrorCallback    = Callable[[BackendError], Union[None, Awaitable[None]]]


class EstimationDebouncer:
    """
    Agrupa ráfagas de cambios de configuración en UNA petición de estimación.

    - Cada request_estimate() cancela y reinicia el temporizador de silencio.
    - Al vencer, se emite la petición con un número de secuencia creciente.
    - Solo se aplica la respuesta de la última petición emitida: una respuesta
      lenta de una petición anterior se descarta aunque llegue después.
    - Si el total cambia respecto al estimado aceptado anterior, price_changed
      queda en True durante highlight_ms y luego se limpia solo.
    """

    def __init__(
        self,
        backend:      TaskBackend,
        on_estimate:  Optional[EstimateCallback] = None,
        on_error:     Optional[ErrorCallback]    = None,
        quiet_ms:     int = 300,
        highlight_ms: int = 600,
    ):
        self._backend      = backend
        self._on_estimate  = on_estimate
        self._on_error     = on_error
        self._quiet_ms     = quiet_ms
        self._highlight_ms = highlight_ms

        self._timer:    Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._highlight: Optional[asyncio.TimerHandle] = None

        self._issued  = 0   # última secuencia emitida
        self._applied = 0   # última secuencia aplicada
        self._estimate: Optional[CostEstimate] = None
        self.price_changed = False

    @property
    def estimate(self) -> Optional[CostEstimate]:
        return self._estimate

    @property
    def requests_issued(self) -> int:
        return self._issued

    @property
    def pending(self) -> bool:
        return (self._timer is not None and not self._timer.done()) or bool(self._inflight)

    def request_estimate(self, config: EstimateConfig) -> None:
        """Programa una estimación tras el periodo de silencio. No bloquea."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire_after_quiet(config))

    async def wait_idle(self) -> None:
        """Espera a que venza el temporizador y terminen las peticiones en vuelo."""
        while self.pending:
            timer = self._timer
            if timer is not None and not timer.done():
                await asyncio.gather(timer, return_exceptions=True)
                continue
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def cancel(self) -> None:
        """Libera todo: temporizador pendiente, peticiones en vuelo y resaltado."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()
        if self._highlight is not None:
            self._highlight.cancel()
            self._highlight = None
        self.price_changed = False

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    async def _fire_after_quiet(self, config: EstimateConfig) -> None:
        await asyncio.sleep(self._quiet_ms / 1000)
        self._issued += 1
        sequence = self._issued
        logger.debug("Estimación #%d emitida para el documento %s", sequence, config.document_id)

        fetch = asyncio.get_running_loop().create_task(self._fetch(sequence, config))
        self._inflight.add(fetch)
        fetch.add_done_callback(self._inflight.discard)

    async def _fetch(self, sequence: int, config: EstimateConfig) -> None:
        try:
            estimate = await self._backend.estimate_cost(config)
        except BackendError as e:
            logger.warning("Estimación #%d falló: %s", sequence, e)
            if sequence == self._issued:
                await _call(self._on_error, e)
            return

        if sequence != self._issued or sequence < self._applied:
            logger.warning(
                "Respuesta obsoleta de la estimación #%d descartada (última emitida: #%d)",
                sequence, self._issued,
            )
            return

        previous = self._estimate
        self._estimate = estimate
        self._applied  = sequence

        if previous is not None and previous.total != estimate.total:
            self._flag_price_change()

        logger.info(
            "Estimación #%d aplicada: total %.2f, saldo %.2f",
            sequence, estimate.total, estimate.wallet_balance,
        )
        await _call(self._on_estimate, estimate)

    def _flag_price_change(self) -> None:
        self.price_changed = True
        if self._highlight is not None:
            self._highlight.cancel()
        self._highlight = asyncio.get_running_loop().call_later(
            self._highlight_ms / 1000, self._clear_price_change,
        )

    def _clear_price_change(self) -> None:
        self.price_changed = False
        self._highlight = None


async def _call(callback, arg) -> None:
    if callback is None:
        return
    result = callback(arg)
    if inspect.isawaitable(result):
        await result
