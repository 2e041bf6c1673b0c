# processor/render/bidi.py
import re

from .models import BidiClass, BidiUnit

# Marcas de control Unicode
RLM = "\u200f"   # right-to-left mark
LRI = "\u2066"   # left-to-right isolate
PDI = "\u2069"   # pop directional isolate

# Hebreo, árabe/persa y sus formas de presentación
_RTL_CHARS = (
    "\u0590-\u05ff"
    "\u0600-\u06ff"
    "\u0750-\u077f"
    "\u08a0-\u08ff"
    "\ufb1d-\ufb4f"
    "\ufb50-\ufdff"
    "\ufe70-\ufefc"
)
_RTL_RE = re.compile(f"[{_RTL_CHARS}]")
_LTR_RE = re.compile(r"[A-Za-z]")

# Token LTR: letras seguidas de letras/dígitos/_ . / - :
_LTR_TOKEN_RE = re.compile(r"[A-Za-z][A-Za-z0-9_./:\-]*")

_MARKS_RE = re.compile(f"[{RLM}{LRI}{PDI}]")


class BidiTextFormatter:
    """
    Normaliza la dirección de cada línea de un texto mixto RTL/LTR.
    Cada línea es un párrafo bidi independiente: nunca se cruza un salto de línea.

    - Línea sin caracteres RTL → sin cambios.
    - Línea con caracteres RTL → prefijo RLM y cada token LTR aislado
      entre LRI ... PDI.
    Solo añade marcas: strip_marks(format_line(x)) == x.
    """

    def classify(self, line: str) -> BidiClass:
        has_rtl = bool(_RTL_RE.search(line))
        has_ltr = bool(_LTR_RE.search(line))
        if has_rtl and has_ltr:
            return BidiClass.MIXED
        if has_rtl:
            return BidiClass.RTL
        return BidiClass.LTR

    def format_line(self, line: str) -> str:
        if not line.strip():
            return line
        if self.classify(line) == BidiClass.LTR:
            return line
        return RLM + _LTR_TOKEN_RE.sub(lambda m: f"{LRI}{m.group(0)}{PDI}", line)

    def format_text(self, text: str) -> str:
        return "\n".join(self.format_line(line) for line in text.split("\n"))

    def units(self, text: str) -> list[BidiUnit]:
        return [BidiUnit(text=line, direction=self.classify(line)) for line in text.split("\n")]

    @staticmethod
    def strip_marks(text: str) -> str:
        return _MARKS_RE.sub("", text)
