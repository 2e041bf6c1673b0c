# client/payloads.py
import logging
from typing import Optional

from doctask.client.errors import InvalidPayloadError
from doctask.client.models import (
    Conversation, CostEstimate, Processing, Task, TaskStatus, TaskType,
)

logger = logging.getLogger(__name__)

_COST_COMPONENTS = ("extraction_cost", "translation_cost", "embedding_cost")


def parse_task(data: dict) -> Task:
    """
    Convierte el JSON de una tarea en Task.
    Campos opcionales ausentes → None. Estado o tipo desconocido → InvalidPayloadError.
    """
    if not isinstance(data, dict):
        raise InvalidPayloadError(f"Se esperaba un objeto de tarea, llegó {type(data).__name__}")

    try:
        status    = TaskStatus(data.get("status"))
        task_type = TaskType(data.get("task_type"))
    except ValueError as e:
        raise InvalidPayloadError(f"Tarea con valores desconocidos: {e}") from e

    task_id = data.get("id")
    if task_id is None:
        raise InvalidPayloadError("Tarea sin id")

    return Task(
        id              = str(task_id),
        status          = status,
        task_type       = task_type,
        processing      = _parse_processing(data.get("processing")),
        error_message   = data.get("error_message") or None,
        error_code      = data.get("error_code") or None,
        extraction_tool = data.get("extraction_tool"),
        source_language = data.get("source_language"),
        target_language = data.get("target_language"),
        dpi             = _to_int(data.get("dpi")),
        credit_cost     = _to_float(data.get("credit_cost")),
        page_start      = _to_int(data.get("page_start")),
        page_end        = _to_int(data.get("page_end")),
    )


def parse_conversation(data: dict) -> Conversation:
    if not isinstance(data, dict) or data.get("id") is None:
        raise InvalidPayloadError("Conversación sin id")
    return Conversation(
        id       = str(data["id"]),
        question = str(data.get("question") or ""),
        answer   = str(data.get("answer") or ""),
    )


def parse_estimate(data: dict) -> CostEstimate:
    if not isinstance(data, dict) or not isinstance(data.get("estimated_cost"), dict):
        raise InvalidPayloadError("Respuesta de estimación sin 'estimated_cost'")

    raw = data["estimated_cost"]
    components = {
        name: _to_float(raw.get(name)) or 0.0
        for name in _COST_COMPONENTS
        if name in raw
    }
    total = _to_float(raw.get("total"))
    if total is None:
        total = sum(components.values())

    estimate = CostEstimate(
        components     = components,
        total          = total,
        wallet_balance = _to_float(data.get("wallet_balance")) or 0.0,
    )

    reported = data.get("sufficient_balance")
    if reported is not None and bool(reported) != estimate.sufficient:
        logger.warning(
            "sufficient_balance=%s del backend no coincide con saldo %.2f / total %.2f",
            reported, estimate.wallet_balance, estimate.total,
        )
    return estimate


def _parse_processing(data: Optional[dict]) -> Optional[Processing]:
    if not isinstance(data, dict):
        return None
    return Processing(
        extracted_text  = data.get("extracted_text") or "",
        extracted_pages = max(1, _to_int(data.get("extracted_pages")) or 1),
        word_count      = _to_int(data.get("word_count")) or 0,
        translated_text = data.get("translated_text") or None,
    )


def _to_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def _to_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None
