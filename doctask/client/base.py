# client/base.py
from abc import ABC, abstractmethod
from typing import Optional

from doctask.client.models import Conversation, CostEstimate, EstimateConfig, Task


class TaskBackend(ABC):
    """
    Contrato con el backend de tareas.
    TaskView, TaskPoller y EstimationDebouncer solo hablan con esta interfaz.
    Toda implementación traduce sus fallos a BackendError y subclases.
    """

    @abstractmethod
    async def get_task(self, task_id: str) -> Task:
        ...

    @abstractmethod
    async def process_task(self, task_id: str) -> Task:
        """Lanza (o relanza) el procesamiento. Devuelve la tarea actualizada."""
        ...

    @abstractmethod
    async def update_processing_text(
        self,
        task_id:         str,
        extracted_text:  Optional[str] = None,
        translated_text: Optional[str] = None,
    ) -> None:
        ...

    @abstractmethod
    async def get_conversations(self, task_id: str) -> list[Conversation]:
        ...

    @abstractmethod
    async def ask_question(
        self,
        task_id:  str,
        question: str,
        language: str = "fa",
        top_k:    int = 5,
    ) -> Conversation:
        ...

    @abstractmethod
    async def delete_conversation(self, task_id: str, conversation_id: str) -> None:
        ...

    @abstractmethod
    async def estimate_cost(self, config: EstimateConfig) -> CostEstimate:
        ...
