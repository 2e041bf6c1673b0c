# processor/render/code_blocks.py
import json
import logging
import re

from .bidi import BidiTextFormatter
from .models import CodeBlock, TextBlock

logger = logging.getLogger(__name__)

_HTTP_VERBS = ("GET", "POST", "PUT", "DELETE", "PATCH")

# "POST https://api.example.com/v1/items {...}", cuerpo opcional
_HTTP_LINE_RE = re.compile(
    r"^(?P<verb>" + "|".join(_HTTP_VERBS) + r")\s+(?P<url>https?://\S+)(?P<body>.*)$",
    re.DOTALL,
)

_OPENERS = "{["
_CLOSERS = "}]"


class CodeBlockDetector:
    """
    Separa un texto en bloques de prosa y bloques de código, en orden.

    Un bloque de código empieza cuando la línea recortada abre con '{' o '['
    o es una línea 'VERBO https://...'. A partir de ahí se lleva el balance
    de llaves/corchetes y el bloque termina cuando vuelve a <= 0.
    Un bloque sin cerrar al final del texto se emite igual, nunca se descarta.
    """

    def __init__(self, formatter: BidiTextFormatter | None = None):
        self._formatter = formatter or BidiTextFormatter()

    def split_blocks(self, text: str) -> list[TextBlock | CodeBlock]:
        blocks: list[TextBlock | CodeBlock] = []
        text_lines: list[str] = []
        code_lines: list[str] = []
        language = ""
        balance = 0

        for line in text.split("\n"):
            if code_lines:
                code_lines.append(line)
                balance += _balance(line)
                if balance <= 0:
                    blocks.append(self._code_block(code_lines, language, complete=True))
                    code_lines = []
                continue

            opened = _block_language(line)
            if opened is None:
                text_lines.append(line)
                continue

            # Cerrar la prosa acumulada antes del código
            self._flush_text(text_lines, blocks)
            text_lines = []

            language = opened
            code_lines = [line]
            balance = _balance(line)
            if balance <= 0:
                blocks.append(self._code_block(code_lines, language, complete=True))
                code_lines = []

        if code_lines:
            logger.debug("Bloque de código sin cerrar (%d líneas), se emite igual", len(code_lines))
            blocks.append(self._code_block(code_lines, language, complete=False))

        self._flush_text(text_lines, blocks)
        return blocks

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _flush_text(self, lines: list[str], blocks: list) -> None:
        # Recortar líneas vacías de los extremos
        start, end = 0, len(lines)
        while start < end and not lines[start].strip():
            start += 1
        while end > start and not lines[end - 1].strip():
            end -= 1
        if start == end:
            return
        kept = lines[start:end]
        blocks.append(TextBlock(
            text      = "\n".join(kept),
            formatted = "\n".join(self._formatter.format_line(l) for l in kept),
        ))

    @staticmethod
    def _code_block(lines: list[str], language: str, complete: bool) -> CodeBlock:
        raw = "\n".join(lines).strip()
        return CodeBlock(
            text      = raw,
            formatted = pretty_print_code(raw),
            language  = language,
            complete  = complete,
        )


def pretty_print_code(raw: str) -> str:
    """
    Intenta parsear y re-indentar el bloque (JSON con 2 espacios).
    Para una línea HTTP el cuerpo se parsea aparte y se reensambla.
    Nunca lanza excepción: si no parsea devuelve el texto recortado.
    """
    text = raw.strip()

    match = _HTTP_LINE_RE.match(text)
    if match:
        head = f"{match.group('verb')} {match.group('url')}"
        body = match.group("body").strip()
        if not body:
            return head
        pretty_body = _try_pretty_json(body)
        if pretty_body is None:
            return text
        return f"{head}\n{pretty_body}"

    pretty = _try_pretty_json(text)
    return pretty if pretty is not None else text


def _try_pretty_json(text: str) -> str | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return json.dumps(data, indent=2, ensure_ascii=False)


def _block_language(line: str) -> str | None:
    stripped = line.strip()
    if not stripped:
        return None
    if stripped[0] in _OPENERS:
        return "json"
    if _HTTP_LINE_RE.match(stripped):
        return "http"
    return None


def _balance(line: str) -> int:
    return sum(line.count(c) for c in _OPENERS) - sum(line.count(c) for c in _CLOSERS)
