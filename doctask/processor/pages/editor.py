# processor/pages/editor.py
from ..models import Page
from .segmenter import PageSegmenter


class LastPageError(ValueError):
    """No se puede borrar la única página que queda."""
    pass


class PageOutOfRangeError(ValueError):
    """El número de página no existe en el documento."""
    pass


class PageEditor:
    """
    Estado de navegación y edición de UNA lista de páginas
    (extraídas o traducidas). No sabe nada del backend: propone
    listas nuevas y el dueño de la vista decide si las confirma
    con commit() después de persistirlas.
    """

    def __init__(self, pages: list[Page] | None = None):
        self._pages: list[Page] = list(pages or [])
        self._current = 1
        self._edit_buffer: str | None = None

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    @property
    def pages(self) -> list[Page]:
        return list(self._pages)

    @property
    def total_pages(self) -> int:
        return len(self._pages)

    @property
    def current_page(self) -> int:
        return self._current

    @property
    def current(self) -> Page | None:
        if not self._pages:
            return None
        return self._pages[self._current - 1]

    @property
    def is_editing(self) -> bool:
        return self._edit_buffer is not None

    @property
    def edit_buffer(self) -> str | None:
        return self._edit_buffer

    # ------------------------------------------------------------------
    # Navegación
    # ------------------------------------------------------------------

    def go_to(self, page_number: int) -> int:
        """Navega a la página pedida, recortada a [1, total]."""
        upper = max(1, len(self._pages))
        self._current = max(1, min(upper, int(page_number)))
        return self._current

    def next_page(self) -> int:
        return self.go_to(self._current + 1)

    def previous_page(self) -> int:
        return self.go_to(self._current - 1)

    # ------------------------------------------------------------------
    # Edición
    # ------------------------------------------------------------------

    def start_edit(self) -> bool:
        page = self.current
        if page is None:
            return False
        self._edit_buffer = page.content
        return True

    def update_buffer(self, content: str) -> None:
        if self._edit_buffer is None:
            raise RuntimeError("No hay una edición en curso")
        self._edit_buffer = content

    def cancel_edit(self) -> None:
        self._edit_buffer = None

    def edited_pages(self) -> list[Page]:
        """Lista nueva con el buffer aplicado a la página actual."""
        if self._edit_buffer is None:
            raise RuntimeError("No hay una edición en curso")
        return self.with_content(self._current, self._edit_buffer)

    def with_content(self, page_number: int, content: str) -> list[Page]:
        self._assert_exists(page_number)
        return [
            Page(page_number=p.page_number, content=content if p.page_number == page_number else p.content)
            for p in self._pages
        ]

    def pages_without(self, page_number: int) -> list[Page]:
        """
        Lista nueva sin la página indicada y renumerada.
        El almacenamiento persistido no admite huecos.
        """
        self._assert_exists(page_number)
        if len(self._pages) <= 1:
            raise LastPageError("El documento debe conservar al menos una página")
        remaining = [p for p in self._pages if p.page_number != page_number]
        return PageSegmenter.renumber(remaining)

    def commit(self, pages: list[Page]) -> None:
        """Reemplaza las páginas completas y cierra la edición."""
        self._pages = PageSegmenter.renumber(pages)
        self._edit_buffer = None
        if self._current > len(self._pages):
            self._current = max(1, len(self._pages))

    def reset(self, pages: list[Page] | None = None) -> None:
        self._pages = list(pages or [])
        self._current = 1
        self._edit_buffer = None

    def _assert_exists(self, page_number: int) -> None:
        if not 1 <= page_number <= len(self._pages):
            raise PageOutOfRangeError(
                f"Página {page_number} fuera de rango (1-{len(self._pages)})"
            )
