# client/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class TaskStatus(Enum):
    PENDING     = "pending"
    QUEUED      = "queued"
    EXTRACTING  = "extracting"
    TRANSLATING = "translating"
    EMBEDDING   = "embedding"
    COMPLETED   = "completed"
    FAILED      = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def is_active(self) -> bool:
        """Estados en los que la vista debe seguir consultando al backend."""
        return not self.is_terminal

    def can_follow(self, previous: "TaskStatus") -> bool:
        """
        Solo se avanza hacia delante. Las etapas de trabajo
        (extracting/translating/embedding) pueden alternarse entre sí.
        Un estado terminal no se abandona sin acción del usuario.
        """
        if previous == self:
            return True
        if previous.is_terminal:
            return False
        return _STATUS_RANK[self] >= _STATUS_RANK[previous]


_STATUS_RANK = {
    TaskStatus.PENDING:     0,
    TaskStatus.QUEUED:      1,
    TaskStatus.EXTRACTING:  2,
    TaskStatus.TRANSLATING: 2,
    TaskStatus.EMBEDDING:   2,
    TaskStatus.COMPLETED:   3,
    TaskStatus.FAILED:      3,
}


class TaskType(Enum):
    TRANSLATE_ONLY = "translate_only"
    TRANSLATE_KB   = "translate_kb"
    KB_ONLY        = "kb_only"

    @property
    def has_knowledge_base(self) -> bool:
        return self != TaskType.TRANSLATE_ONLY

    @property
    def has_translation(self) -> bool:
        return self != TaskType.KB_ONLY


@dataclass
class Processing:
    extracted_text:  str
    extracted_pages: int = 1
    word_count:      int = 0
    translated_text: Optional[str] = None


@dataclass
class Task:
    """
    Instantánea de una tarea tal como la devuelve el backend.
    Se reemplaza completa en cada consulta, nunca se muta por partes.
    """
    id:               str
    status:           TaskStatus
    task_type:        TaskType
    processing:       Optional[Processing] = None
    error_message:    Optional[str] = None
    error_code:       Optional[str] = None
    extraction_tool:  Optional[str] = None
    source_language:  Optional[str] = None
    target_language:  Optional[str] = None
    dpi:              Optional[int] = None
    credit_cost:      Optional[float] = None
    page_start:       Optional[int] = None
    page_end:         Optional[int] = None

    @property
    def total_pages(self) -> int:
        if self.processing and self.processing.extracted_pages:
            return self.processing.extracted_pages
        return 1


@dataclass
class Conversation:
    id:       str
    question: str
    answer:   str


@dataclass
class CostEstimate:
    components:     dict[str, float]
    total:          float
    wallet_balance: float = 0.0

    @property
    def sufficient(self) -> bool:
        return self.wallet_balance >= self.total


@dataclass
class EstimateConfig:
    """Configuración editable de una tarea: lo que se cotiza."""
    document_id:     str
    task_type:       TaskType
    extraction_tool: str = "auto"
    source_language: str = "fa"
    target_language: Optional[str] = None
    ocr_language:    Optional[str] = None
    page_start:      Optional[int] = None
    page_end:        Optional[int] = None
    dpi:             Optional[int] = None

    def to_payload(self) -> dict:
        payload: dict = {
            "task_type":       self.task_type.value,
            "extraction_tool": self.extraction_tool,
            "source_language": self.source_language,
        }
        if self.ocr_language:
            payload["ocr_language"] = self.ocr_language
        if self.page_start and self.page_end:
            payload["page_start"] = int(self.page_start)
            payload["page_end"]   = int(self.page_end)
        if self.task_type.has_translation and self.target_language:
            payload["target_language"] = self.target_language
        if self.dpi:
            payload["dpi"] = int(self.dpi)
        return payload


# ------------------------------------------------------------------
# Configuración de la aplicación
# ------------------------------------------------------------------

@dataclass
class BackendConfig:
    base_url:        str = "http://localhost:8000/api"
    api_token:       Optional[str] = None
    timeout_seconds: float = 30.0


@dataclass
class PollConfig:
    interval_ms:  int = 3000
    max_attempts: int = 60


@dataclass
class EstimateTiming:
    quiet_ms:     int = 300
    highlight_ms: int = 600


@dataclass
class AppConfig:
    backend:  BackendConfig  = field(default_factory=BackendConfig)
    polling:  PollConfig     = field(default_factory=PollConfig)
    estimate: EstimateTiming = field(default_factory=EstimateTiming)
