# client/errors.py
from typing import Optional


class BackendError(Exception):
    """Cualquier fallo al hablar con el backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message     = message
        self.status_code = status_code


class TaskNotFoundError(BackendError):
    """La tarea no existe (404)."""
    pass


class BackendUnavailableError(BackendError):
    """Red, timeout o 5xx: errores transitorios que admiten reintento."""
    pass


class InvalidPayloadError(BackendError):
    """El backend devolvió algo que no encaja en los modelos."""
    pass


# ------------------------------------------------------------------
# Mensajes legibles para tareas fallidas
# ------------------------------------------------------------------

GENERIC_FAILURE_MESSAGE = (
    "El procesamiento del documento falló. Inténtalo de nuevo o contacta con soporte."
)

# Códigos estables emitidos por el backend. Si llega un código conocido
# se usa solo el código, sin mirar el texto del error.
_CODE_MESSAGES: dict[str, str] = {
    "insufficient_balance":   "Saldo insuficiente para procesar el documento. Recarga tu billetera e inténtalo de nuevo.",
    "empty_document":         "No se encontró texto en el documento. Prueba con otra herramienta de extracción u OCR.",
    "queue_interrupted":      "El procesamiento se interrumpió en la cola. Vuelve a lanzar la tarea.",
    "timeout":                "El procesamiento superó el tiempo máximo. Prueba con un rango de páginas más pequeño.",
    "translation_unavailable": "El servicio de traducción no está disponible en este momento. Inténtalo más tarde.",
    "network_error":          "Error de red durante el procesamiento. Comprueba tu conexión y vuelve a intentarlo.",
    "file_missing":           "No se encontró el archivo original. Vuelve a subir el documento.",
    "unsupported_format":     "Formato de archivo no soportado.",
}

# Tabla de compatibilidad: subcadenas del mensaje crudo del backend.
# El orden importa: gana la primera coincidencia.
_SUBSTRING_PATTERNS: list[tuple[tuple[str, ...], str]] = [
    (("insufficient", "not enough credit", "balance"),           "insufficient_balance"),
    (("no text", "empty document", "empty file", "no content"),  "empty_document"),
    (("worker", "celery", "interrupted", "worker lost"),         "queue_interrupted"),
    (("timeout", "timed out", "time limit"),                     "timeout"),
    (("translation service", "translator", "translation api"),   "translation_unavailable"),
    (("network", "connection"),                                  "network_error"),
    (("file not found", "no such file", "missing file"),         "file_missing"),
    (("unsupported", "not supported", "invalid format"),         "unsupported_format"),
]


def classify_task_error(
    error_message: Optional[str],
    error_code:    Optional[str] = None,
) -> Optional[str]:
    """Devuelve el código estable del fallo, o None si no se reconoce."""
    if error_code and error_code in _CODE_MESSAGES:
        return error_code

    text = (error_message or "").lower()
    if not text:
        return None

    for needles, code in _SUBSTRING_PATTERNS:
        if any(n in text for n in needles):
            return code
    return None


def describe_task_error(
    error_message: Optional[str],
    error_code:    Optional[str] = None,
) -> str:
    """Mensaje legible para el usuario. Nunca lanza excepción."""
    code = classify_task_error(error_message, error_code)
    if code is None:
        return GENERIC_FAILURE_MESSAGE
    return _CODE_MESSAGES[code]
