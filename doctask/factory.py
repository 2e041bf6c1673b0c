# doctask/factory.py
from typing import Callable, Optional

from doctask.client.base import TaskBackend
from doctask.client.config_loader import load_config
from doctask.client.http_backend import HttpTaskBackend
from doctask.client.models import AppConfig, Task
from doctask.view import Notice, TaskView


def build_backend(config: AppConfig) -> HttpTaskBackend:
    return HttpTaskBackend(config.backend)


def build_task_view(
    task_id:     str,
    config:      Optional[AppConfig] = None,
    config_path: Optional[str] = None,
    backend:     Optional[TaskBackend] = None,
    on_notice:   Optional[Callable[[Notice], None]] = None,
    on_task:     Optional[Callable[[Task], None]] = None,
) -> TaskView:
    """
    Ensambla una TaskView con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.
    """
    config  = config or load_config(config_path)
    backend = backend or build_backend(config)

    return TaskView(
        backend         = backend,
        task_id         = task_id,
        poll_config     = config.polling,
        estimate_timing = config.estimate,
        on_notice       = on_notice,
        on_task         = on_task,
    )
