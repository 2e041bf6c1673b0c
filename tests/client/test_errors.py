import pytest

from doctask.client.errors import (
    GENERIC_FAILURE_MESSAGE, classify_task_error, describe_task_error,
)


class TestClassifyTaskError:

    @pytest.mark.parametrize("message, code", [
        ("Insufficient balance in wallet", "insufficient_balance"),
        ("No text found in document", "empty_document"),
        ("Worker lost while processing", "queue_interrupted"),
        ("Task timed out after 600s", "timeout"),
        ("Translation service returned 503", "translation_unavailable"),
        ("Connection reset by peer", "network_error"),
        ("File not found on storage", "file_missing"),
        ("Unsupported file type", "unsupported_format"),
    ])
    def test_reconoce_mensajes_del_backend(self, message, code):
        assert classify_task_error(message) == code

    def test_el_orden_decide_entre_coincidencias(self):
        # "connection timed out" contiene patrones de red y de timeout
        assert classify_task_error("connection timed out") == "timeout"

    def test_codigo_conocido_gana_al_texto(self):
        assert classify_task_error("network unreachable", "file_missing") == "file_missing"

    def test_codigo_desconocido_usa_el_texto(self):
        assert classify_task_error("network unreachable", "weird_code") == "network_error"

    @pytest.mark.parametrize("message", [None, "", "algo totalmente inesperado"])
    def test_sin_coincidencia(self, message):
        assert classify_task_error(message) is None


class TestDescribeTaskError:

    def test_mensaje_generico(self):
        assert describe_task_error("kaboom") == GENERIC_FAILURE_MESSAGE

    def test_mensaje_especifico(self):
        assert "Saldo insuficiente" in describe_task_error("not enough credit")

    def test_nunca_devuelve_texto_vacio(self):
        assert describe_task_error(None, None)
