# processor/pages/segmenter.py
import logging
import math
import re

from ..models import Page
from .models import PageConfig, SplitStrategy

logger = logging.getLogger(__name__)


class PageSegmenter:
    """
    Responsabilidad única: convertir el texto plano que devuelve el backend
    (extracted_text / translated_text) en una lista ordenada de Pages,
    y volver a aplanarla antes de escribirla.

    Cascada, gana el primer nivel que acierte el número de páginas:
    1. Marcadores de página (---PAGE---)
    2. Form feed o 4+ saltos de línea
    3. Reparto equitativo por párrafos
    4. Una sola página
    """

    def __init__(self, config: PageConfig | None = None):
        self._config = config or PageConfig()
        self._marker_re    = re.compile(self._config.marker_pattern, re.IGNORECASE | re.MULTILINE)
        self._blank_run_re = re.compile(self._config.blank_run_pattern)
        self._paragraph_re = re.compile(self._config.paragraph_pattern)
        self.last_strategy: SplitStrategy | None = None

    def segment(self, text: str, total_pages: int) -> list[Page]:
        """
        Devuelve exactamente total_pages páginas cuando total_pages > 1.
        Texto vacío → lista vacía.
        """
        if not text:
            self.last_strategy = SplitStrategy.EMPTY
            return []

        total_pages = total_pages if total_pages and total_pages > 0 else 1

        # ── 1. Marcadores explícitos ──────────────────────────────────
        parts = [p for p in self._marker_re.split(text) if p.strip()]
        if len(parts) == total_pages:
            return self._to_pages(parts, SplitStrategy.MARKER)

        # Separador canónico exacto: conserva páginas vacías intermedias
        if self._config.canonical_separator in text:
            parts = text.split(self._config.canonical_separator)
            if len(parts) == total_pages:
                return self._to_pages(parts, SplitStrategy.CANONICAL)

        # ── 2. Form feed / bloques de líneas vacías ───────────────────
        parts = [p for p in self._blank_run_re.split(text) if p.strip()]
        if len(parts) == total_pages:
            return self._to_pages(parts, SplitStrategy.BLANK_RUN)

        # ── 3. Reparto equitativo ─────────────────────────────────────
        if total_pages > 1:
            logger.debug(
                "Sin fronteras de página recuperables, repartiendo %d caracteres en %d páginas",
                len(text), total_pages,
            )
            return self._distribute(text, total_pages)

        # ── 4. Página única ───────────────────────────────────────────
        # Se devuelve el texto entero, marcadores incluidos: nada se descarta
        self.last_strategy = SplitStrategy.SINGLE
        return [Page(page_number=1, content=text.strip())]

    def rejoin(self, pages: list[Page]) -> str:
        """Forma plana persistida: contenidos unidos con el marcador canónico."""
        return self._config.canonical_separator.join(p.content for p in pages)

    @staticmethod
    def renumber(pages: list[Page]) -> list[Page]:
        """Reasigna page_number = index + 1. Nunca muta las páginas recibidas."""
        return [Page(page_number=i + 1, content=p.content) for i, p in enumerate(pages)]

    # ------------------------------------------------------------------
    # Reparto equitativo
    # ------------------------------------------------------------------

    def _distribute(self, text: str, total_pages: int) -> list[Page]:
        chars_per_page = math.ceil(len(text) / total_pages)
        # Párrafos en blanco (p. ej. al inicio del texto) no cuentan como contenido
        paragraphs = [p for p in self._paragraph_re.split(text) if p.strip()]

        contents: list[str] = []
        current_parts: list[str] = []
        current_len = 0

        for para in paragraphs:
            would_overflow = current_len + len(para) > chars_per_page
            if would_overflow and current_parts and len(contents) < total_pages - 1:
                contents.append("\n\n".join(current_parts).strip())
                current_parts = [para]
                current_len = len(para)
            else:
                current_parts.append(para)
                current_len += len(para) + (2 if len(current_parts) > 1 else 0)

        remaining = "\n\n".join(current_parts).strip()
        if remaining:
            contents.append(remaining)

        # Rellenar con páginas vacías hasta cuadrar el total
        while len(contents) < total_pages:
            contents.append("")

        self.last_strategy = SplitStrategy.EVEN
        return [Page(page_number=i + 1, content=c) for i, c in enumerate(contents)]

    def _to_pages(self, parts: list[str], strategy: SplitStrategy) -> list[Page]:
        self.last_strategy = strategy
        return [Page(page_number=i + 1, content=p.strip()) for i, p in enumerate(parts)]
