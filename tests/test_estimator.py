import asyncio
from unittest.mock import MagicMock

import pytest

from doctask.client.errors import BackendError
from doctask.client.models import EstimateConfig, TaskType
from doctask.estimator import EstimationDebouncer


@pytest.fixture
def config():
    return EstimateConfig(document_id="55", task_type=TaskType.TRANSLATE_ONLY, target_language="en")


def make_debouncer(backend, quiet_ms=20, highlight_ms=50):
    callbacks = MagicMock()
    debouncer = EstimationDebouncer(
        backend,
        on_estimate  = callbacks.on_estimate,
        on_error     = callbacks.on_error,
        quiet_ms     = quiet_ms,
        highlight_ms = highlight_ms,
    )
    return debouncer, callbacks


class TestDebounce:

    def test_rafaga_produce_una_sola_peticion(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[(0, estimate_factory(12.0))])

        async def scenario():
            debouncer, callbacks = make_debouncer(backend)
            for page_end in range(1, 6):
                config.page_end = page_end
                debouncer.request_estimate(config)
                await asyncio.sleep(0)
            await debouncer.wait_idle()
            return debouncer, callbacks

        debouncer, callbacks = asyncio.run(scenario())

        assert len(backend.estimate_calls) == 1
        assert debouncer.requests_issued == 1
        assert debouncer.estimate.total == 12.0
        callbacks.on_estimate.assert_called_once()

    def test_peticiones_separadas_no_se_agrupan(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[(0, estimate_factory(5.0))])

        async def scenario():
            debouncer, _ = make_debouncer(backend)
            debouncer.request_estimate(config)
            await debouncer.wait_idle()
            debouncer.request_estimate(config)
            await debouncer.wait_idle()
            return debouncer

        debouncer = asyncio.run(scenario())

        assert len(backend.estimate_calls) == 2
        assert debouncer.requests_issued == 2


class TestRespuestasObsoletas:

    def test_respuesta_lenta_anterior_se_descarta(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[
            (0.1, estimate_factory(10.0)),   # primera petición: lenta
            (0,   estimate_factory(20.0)),   # segunda: rápida
        ])

        async def scenario():
            debouncer, callbacks = make_debouncer(backend)
            debouncer.request_estimate(config)
            await asyncio.sleep(0.04)            # vence el silencio: sale la #1
            debouncer.request_estimate(config)
            await debouncer.wait_idle()          # espera también a la #1
            return debouncer, callbacks

        debouncer, callbacks = asyncio.run(scenario())

        assert len(backend.estimate_calls) == 2
        assert debouncer.estimate.total == 20.0
        callbacks.on_estimate.assert_called_once()
        assert callbacks.on_estimate.call_args.args[0].total == 20.0

    def test_error_de_la_ultima_peticion_se_notifica(self, fake_backend_cls, config):
        error = BackendError("HTTP 400", status_code=400)
        backend = fake_backend_cls(estimates=[(0, error)])

        async def scenario():
            debouncer, callbacks = make_debouncer(backend)
            debouncer.request_estimate(config)
            await debouncer.wait_idle()
            return debouncer, callbacks

        debouncer, callbacks = asyncio.run(scenario())

        callbacks.on_error.assert_called_once_with(error)
        assert debouncer.estimate is None

    def test_error_de_peticion_obsoleta_se_ignora(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[
            (0.1, BackendError("lento y roto")),
            (0,   estimate_factory(7.0)),
        ])

        async def scenario():
            debouncer, callbacks = make_debouncer(backend)
            debouncer.request_estimate(config)
            await asyncio.sleep(0.04)
            debouncer.request_estimate(config)
            await debouncer.wait_idle()
            return debouncer, callbacks

        debouncer, callbacks = asyncio.run(scenario())

        callbacks.on_error.assert_not_called()
        assert debouncer.estimate.total == 7.0


class TestCambioDePrecio:

    def test_price_changed_se_activa_y_se_limpia(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[
            (0, estimate_factory(10.0)),
            (0, estimate_factory(20.0)),
        ])

        async def scenario():
            debouncer, _ = make_debouncer(backend, highlight_ms=50)
            debouncer.request_estimate(config)
            await debouncer.wait_idle()
            first = debouncer.price_changed

            debouncer.request_estimate(config)
            await debouncer.wait_idle()
            during = debouncer.price_changed

            await asyncio.sleep(0.1)
            return first, during, debouncer.price_changed

        first, during, after = asyncio.run(scenario())

        assert first is False
        assert during is True
        assert after is False

    def test_mismo_total_no_resalta(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[(0, estimate_factory(10.0))])

        async def scenario():
            debouncer, _ = make_debouncer(backend)
            for _ in range(2):
                debouncer.request_estimate(config)
                await debouncer.wait_idle()
            return debouncer.price_changed

        assert asyncio.run(scenario()) is False


class TestCancel:

    def test_cancel_descarta_el_temporizador(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[(0, estimate_factory(1.0))])

        async def scenario():
            debouncer, _ = make_debouncer(backend)
            debouncer.request_estimate(config)
            debouncer.cancel()
            await asyncio.sleep(0.05)
            return debouncer

        debouncer = asyncio.run(scenario())

        assert backend.estimate_calls == []
        assert debouncer.pending is False
        assert debouncer.estimate is None

    def test_cancel_descarta_peticiones_en_vuelo(self, fake_backend_cls, estimate_factory, config):
        backend = fake_backend_cls(estimates=[(0.1, estimate_factory(1.0))])

        async def scenario():
            debouncer, callbacks = make_debouncer(backend)
            debouncer.request_estimate(config)
            await asyncio.sleep(0.04)
            debouncer.cancel()
            await asyncio.sleep(0.15)
            return debouncer, callbacks

        debouncer, callbacks = asyncio.run(scenario())

        assert len(backend.estimate_calls) == 1
        assert debouncer.estimate is None
        callbacks.on_estimate.assert_not_called()
