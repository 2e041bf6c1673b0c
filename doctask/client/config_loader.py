# client/config_loader.py
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from doctask.client.models import AppConfig, BackendConfig, EstimateTiming, PollConfig

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path.home() / ".doctask" / "config.yaml"


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Carga la configuración desde YAML.
    Resuelve variables de entorno (${VAR}) y aplica DOCTASK_API_URL /
    DOCTASK_API_TOKEN por encima del archivo.

    Si se pidió una ruta explícita y no existe → FileNotFoundError.
    Si falta el archivo por defecto se usan los valores por defecto.
    """
    explicit = config_path or os.environ.get("DOCTASK_CONFIG_PATH")
    path = Path(explicit) if explicit else _DEFAULT_CONFIG_PATH

    raw: dict = {}
    if path.exists():
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif explicit:
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.doctask/config.yaml"
        )
    else:
        logger.debug("Sin config en %s, usando valores por defecto", path)

    backend_raw  = raw.get("backend")  or {}
    polling_raw  = raw.get("polling")  or {}
    estimate_raw = raw.get("estimate") or {}

    backend = BackendConfig(
        base_url        = _resolve_env(backend_raw.get("base_url")) or BackendConfig.base_url,
        api_token       = _resolve_env(backend_raw.get("api_token")),
        timeout_seconds = float(backend_raw.get("timeout_seconds", BackendConfig.timeout_seconds)),
    )
    backend.base_url  = os.environ.get("DOCTASK_API_URL") or backend.base_url
    backend.api_token = os.environ.get("DOCTASK_API_TOKEN") or backend.api_token

    polling = PollConfig(
        interval_ms  = int(polling_raw.get("interval_ms", PollConfig.interval_ms)),
        max_attempts = int(polling_raw.get("max_attempts", PollConfig.max_attempts)),
    )
    if polling.interval_ms < 0 or polling.max_attempts < 1:
        raise ValueError(
            f"Config de polling inválida: interval_ms={polling.interval_ms}, "
            f"max_attempts={polling.max_attempts}"
        )

    estimate = EstimateTiming(
        quiet_ms     = int(estimate_raw.get("quiet_ms", EstimateTiming.quiet_ms)),
        highlight_ms = int(estimate_raw.get("highlight_ms", EstimateTiming.highlight_ms)),
    )

    return AppConfig(backend=backend, polling=polling, estimate=estimate)


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not isinstance(value, str) or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
