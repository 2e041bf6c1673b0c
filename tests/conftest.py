# tests/conftest.py
import asyncio

import pytest

from doctask.client.base import TaskBackend
from doctask.client.errors import BackendError
from doctask.client.models import (
    Conversation, CostEstimate, Processing, Task, TaskStatus, TaskType,
)


def make_task(
    status:          TaskStatus = TaskStatus.COMPLETED,
    task_type:       TaskType   = TaskType.TRANSLATE_KB,
    extracted_text:  str | None = "Página uno\n\n---PAGE---\n\nPágina dos",
    translated_text: str | None = "Page one\n\n---PAGE---\n\nPage two",
    pages:           int        = 2,
    error_message:   str | None = None,
    task_id:         str        = "42",
) -> Task:
    processing = None
    if extracted_text is not None:
        processing = Processing(
            extracted_text  = extracted_text,
            extracted_pages = pages,
            word_count      = len(extracted_text.split()),
            translated_text = translated_text,
        )
    return Task(
        id            = task_id,
        status        = status,
        task_type     = task_type,
        processing    = processing,
        error_message = error_message,
    )


class FakeBackend(TaskBackend):
    """
    Backend en memoria. get_task devuelve en orden las respuestas de
    `task_responses` (una Task o una excepción); la última se repite.
    """

    def __init__(self, task_responses=None, conversations=None, estimates=None):
        self.task_responses = list(task_responses or [make_task()])
        self.conversations  = list(conversations or [])
        self.estimates      = list(estimates or [])
        self.get_task_calls = 0
        self.process_calls  = 0
        self.updates: list[dict] = []
        self.estimate_calls: list = []
        self.deleted: list[str] = []
        self.fail_updates   = False
        self.fail_conversations = False
        self.process_response: Task | None = None
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    async def get_task(self, task_id):
        index = min(self.get_task_calls, len(self.task_responses) - 1)
        self.get_task_calls += 1
        response = self.task_responses[index]
        if isinstance(response, Exception):
            raise response
        return response

    async def process_task(self, task_id):
        self.process_calls += 1
        if isinstance(self.process_response, Exception):
            raise self.process_response
        return self.process_response or make_task(status=TaskStatus.QUEUED, extracted_text=None)

    async def update_processing_text(self, task_id, extracted_text=None, translated_text=None):
        if self.fail_updates:
            raise BackendError("HTTP 500", status_code=500)
        body = {}
        if extracted_text is not None:
            body["extracted_text"] = extracted_text
        if translated_text is not None:
            body["translated_text"] = translated_text
        self.updates.append(body)

    async def get_conversations(self, task_id):
        if self.fail_conversations:
            raise BackendError("HTTP 404", status_code=404)
        return list(self.conversations)

    async def ask_question(self, task_id, question, language="fa", top_k=5):
        return Conversation(id=str(len(self.conversations) + 100), question=question, answer="پاسخ")

    async def delete_conversation(self, task_id, conversation_id):
        self.deleted.append(conversation_id)

    async def estimate_cost(self, config):
        """`estimates` admite (delay_segundos, CostEstimate|Exception)."""
        index = len(self.estimate_calls)
        self.estimate_calls.append(config)
        delay, result = self.estimates[min(index, len(self.estimates) - 1)]
        if delay:
            await asyncio.sleep(delay)
        if isinstance(result, Exception):
            raise result
        return result


def make_estimate(total: float, wallet: float = 100.0) -> CostEstimate:
    return CostEstimate(
        components     = {"extraction_cost": total / 2, "translation_cost": total / 2},
        total          = total,
        wallet_balance = wallet,
    )


@pytest.fixture
def fake_backend_cls():
    return FakeBackend


@pytest.fixture
def task_factory():
    return make_task


@pytest.fixture
def estimate_factory():
    return make_estimate
