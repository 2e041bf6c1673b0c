from doctask.client.base import TaskBackend
from doctask.client.http_backend import HttpTaskBackend
from doctask.client.config_loader import load_config
from doctask.client.errors import (
    BackendError, BackendUnavailableError, InvalidPayloadError, TaskNotFoundError,
    describe_task_error,
)
from doctask.client.models import (
    AppConfig, Conversation, CostEstimate, EstimateConfig,
    Processing, Task, TaskStatus, TaskType,
)

__all__ = [
    "TaskBackend",
    "HttpTaskBackend",
    "load_config",
    "BackendError", "BackendUnavailableError", "InvalidPayloadError", "TaskNotFoundError",
    "describe_task_error",
    "AppConfig", "Conversation", "CostEstimate", "EstimateConfig",
    "Processing", "Task", "TaskStatus", "TaskType",
]
