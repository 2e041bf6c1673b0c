from dataclasses import dataclass
from enum import Enum


class BidiClass(Enum):
    """Clasificación direccional de una línea."""
    LTR   = "pure-ltr"
    RTL   = "pure-rtl"
    MIXED = "mixed"


@dataclass
class BidiUnit:
    """Una línea etiquetada con su dirección. Transitoria, no se persiste."""
    text:      str
    direction: BidiClass


@dataclass
class TextBlock:
    """Prosa: se muestra con marcas direccionales línea a línea."""
    text:      str
    formatted: str


@dataclass
class CodeBlock:
    """Fragmento legible por máquina (JSON, línea HTTP) en monoespaciado."""
    text:      str          # texto original recortado
    formatted: str          # pretty-print o el texto original si no parsea
    language:  str          # "json" | "http"
    complete:  bool = True  # False si el bloque nunca cerró sus llaves
