# client/http_backend.py
import logging
from typing import Optional

import httpx

from doctask.client.base import TaskBackend
from doctask.client.errors import (
    BackendError, BackendUnavailableError, InvalidPayloadError, TaskNotFoundError,
)
from doctask.client.models import BackendConfig, Conversation, CostEstimate, EstimateConfig, Task
from doctask.client.payloads import parse_conversation, parse_estimate, parse_task

logger = logging.getLogger(__name__)


class HttpTaskBackend(TaskBackend):
    """
    Adaptador REST sobre httpx.AsyncClient.
    Ningún error de httpx sale de esta clase: todo se convierte en BackendError.
    """

    def __init__(
        self,
        config:    BackendConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        headers = {"Content-Type": "application/json"}
        if config.api_token:
            headers["Authorization"] = f"Bearer {config.api_token}"

        self._client = httpx.AsyncClient(
            base_url  = config.base_url.rstrip("/"),
            headers   = headers,
            timeout   = config.timeout_seconds,
            transport = transport,
        )

    async def __aenter__(self) -> "HttpTaskBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Tareas
    # ------------------------------------------------------------------

    async def get_task(self, task_id: str) -> Task:
        data = await self._request("GET", f"/documents/tasks/{task_id}/")
        return parse_task(data)

    async def process_task(self, task_id: str) -> Task:
        data = await self._request("POST", f"/documents/tasks/{task_id}/process/")
        if isinstance(data, dict) and isinstance(data.get("task"), dict):
            return parse_task(data["task"])
        return parse_task(data)

    async def update_processing_text(
        self,
        task_id:         str,
        extracted_text:  Optional[str] = None,
        translated_text: Optional[str] = None,
    ) -> None:
        body = {}
        if extracted_text is not None:
            body["extracted_text"] = extracted_text
        if translated_text is not None:
            body["translated_text"] = translated_text
        if not body:
            raise ValueError("Nada que actualizar: falta extracted_text o translated_text")
        await self._request("PATCH", f"/documents/tasks/{task_id}/processing/", json=body)

    # ------------------------------------------------------------------
    # Conversaciones
    # ------------------------------------------------------------------

    async def get_conversations(self, task_id: str) -> list[Conversation]:
        data = await self._request("GET", f"/documents/tasks/{task_id}/conversations/")
        return [parse_conversation(item) for item in (data or [])]

    async def ask_question(
        self,
        task_id:  str,
        question: str,
        language: str = "fa",
        top_k:    int = 5,
    ) -> Conversation:
        data = await self._request(
            "POST",
            f"/documents/tasks/{task_id}/ask/",
            json={"question": question, "language": language, "top_k": top_k},
        )
        if not isinstance(data, dict) or not data.get("success"):
            raise BackendError(_error_text(data) or "El backend no pudo responder la pregunta")
        return parse_conversation(data.get("conversation"))

    async def delete_conversation(self, task_id: str, conversation_id: str) -> None:
        await self._request(
            "DELETE", f"/documents/tasks/{task_id}/conversations/{conversation_id}/"
        )

    # ------------------------------------------------------------------
    # Estimación de coste
    # ------------------------------------------------------------------

    async def estimate_cost(self, config: EstimateConfig) -> CostEstimate:
        data = await self._request(
            "POST",
            f"/documents/{config.document_id}/tasks/estimate/",
            json=config.to_payload(),
        )
        return parse_estimate(data)

    # ------------------------------------------------------------------
    # Transporte
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, json: Optional[dict] = None):
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise BackendUnavailableError(f"Timeout en {method} {path}: {e}") from e
        except httpx.TransportError as e:
            raise BackendUnavailableError(f"Error de red en {method} {path}: {e}") from e

        if response.status_code >= 400:
            raise _error_for(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise InvalidPayloadError(f"Respuesta no JSON en {method} {path}") from e


def _error_for(response: httpx.Response) -> BackendError:
    try:
        detail = _error_text(response.json())
    except ValueError:
        detail = None
    message = detail or f"HTTP {response.status_code}"
    status  = response.status_code

    if status == 404:
        return TaskNotFoundError(message, status_code=status)
    if status >= 500 or status in (408, 429):
        return BackendUnavailableError(message, status_code=status)
    return BackendError(message, status_code=status)


def _error_text(data) -> Optional[str]:
    if isinstance(data, dict):
        value = data.get("error") or data.get("detail") or data.get("message")
        return str(value) if value else None
    return None
