import pytest

from doctask.processor.render.bidi import RLM
from doctask.processor.render.code_blocks import CodeBlockDetector, pretty_print_code
from doctask.processor.render.models import CodeBlock, TextBlock


@pytest.fixture
def detector():
    return CodeBlockDetector()


class TestSplitBlocks:

    def test_json_entre_prosa_da_tres_bloques(self, detector):
        blocks = detector.split_blocks('hello\n{"a":1}\nworld')

        assert [type(b) for b in blocks] == [TextBlock, CodeBlock, TextBlock]
        assert blocks[0].text == "hello"
        assert blocks[1].formatted == '{\n  "a": 1\n}'
        assert blocks[1].language == "json"
        assert blocks[2].text == "world"

    def test_bloque_multilinea_con_balance(self, detector):
        text = 'Antes\n{\n  "items": [\n    1, 2\n  ]\n}\nDespués'

        blocks = detector.split_blocks(text)

        assert len(blocks) == 3
        assert blocks[1].complete is True
        assert blocks[1].formatted == '{\n  "items": [\n    1,\n    2\n  ]\n}'

    def test_bloque_sin_cerrar_se_emite_igual(self, detector):
        blocks = detector.split_blocks('Texto\n{\n  "a": 1,')

        assert isinstance(blocks[-1], CodeBlock)
        assert blocks[-1].complete is False
        assert blocks[-1].formatted == '{\n  "a": 1,'

    def test_linea_http_con_cuerpo(self, detector):
        blocks = detector.split_blocks('POST https://api.example.com/items {"name": "x"}')

        assert len(blocks) == 1
        assert blocks[0].language == "http"
        assert blocks[0].formatted == 'POST https://api.example.com/items\n{\n  "name": "x"\n}'

    def test_prosa_rtl_se_formatea(self, detector):
        blocks = detector.split_blocks("سلام دنیا")

        assert blocks == [TextBlock(text="سلام دنیا", formatted=RLM + "سلام دنیا")]

    def test_recorta_lineas_vacias_de_los_extremos(self, detector):
        blocks = detector.split_blocks("\n\nHola\n\n")

        assert [b.text for b in blocks] == ["Hola"]

    def test_texto_vacio(self, detector):
        assert detector.split_blocks("") == []


class TestPrettyPrint:

    def test_json_invalido_devuelve_texto_recortado(self):
        assert pretty_print_code("  {no es json  ") == "{no es json"

    def test_conserva_caracteres_no_ascii(self):
        assert pretty_print_code('{"t":"سلام"}') == '{\n  "t": "سلام"\n}'

    def test_http_sin_cuerpo(self):
        assert pretty_print_code("GET https://example.com/x") == "GET https://example.com/x"

    def test_http_con_cuerpo_invalido(self):
        raw = "POST https://example.com/x {roto"

        assert pretty_print_code(raw) == raw
