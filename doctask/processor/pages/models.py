from dataclasses import dataclass
from enum import Enum


class SplitStrategy(Enum):
    """Qué nivel de la cascada produjo las páginas."""
    MARKER    = "marker"
    CANONICAL = "canonical"
    BLANK_RUN = "blank_run"
    EVEN      = "even"
    SINGLE    = "single"
    EMPTY     = "empty"


# Separador con el que se persisten las páginas en el backend
CANONICAL_SEPARATOR = "\n\n---PAGE---\n\n"


@dataclass
class PageConfig:
    """Patrones del segmentador. Centralizados y explícitos."""

    # Línea que solo contiene guiones, la palabra PAGE y un número opcional
    marker_pattern: str = r'^[ \t]*-{3,}[ \t]*PAGE[ \t]*(?:\d+)?[ \t]*-{3,}[ \t]*$'

    # Salto de página (form feed) o 4+ saltos de línea seguidos
    blank_run_pattern: str = r'\f|\n{4,}'

    # Párrafos para el reparto equitativo
    paragraph_pattern: str = r'\n{2,}'

    canonical_separator: str = CANONICAL_SEPARATOR

