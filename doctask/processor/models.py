from dataclasses import dataclass


@dataclass
class Page:
    """Una página reconstruida a partir del texto plano de la tarea."""
    page_number: int   # 1-based, contiguo: siempre index + 1
    content: str
