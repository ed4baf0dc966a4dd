import unittest

from dto import ICMSDeclarado, Produto
from origem_utils import (
    ORIGEM_EXTERIOR,
    ORIGEM_NAO_SIGNATARIA_OUTROS,
    aplicar_origem,
    atualizar_situacao_tributaria,
    canonicalize_origem,
)


class CanonicalizeOrigemTests(unittest.TestCase):
    def test_codes_and_labels(self) -> None:
        self.assertEqual(canonicalize_origem("exterior"), ORIGEM_EXTERIOR)
        self.assertEqual(canonicalize_origem(" EXTERIOR "), ORIGEM_EXTERIOR)
        self.assertEqual(canonicalize_origem("Não Signatária (Outras)"), ORIGEM_NAO_SIGNATARIA_OUTROS)
        self.assertEqual(canonicalize_origem("signatária do prot. 46/2000"), "signataria")

    def test_empty_or_unknown(self) -> None:
        self.assertIsNone(canonicalize_origem(None))
        self.assertIsNone(canonicalize_origem(""))
        self.assertIsNone(canonicalize_origem("marte"))


class AplicarOrigemTests(unittest.TestCase):
    def _produtos(self):
        return [
            Produto(id=0, ncm="19021100", cest="1704800", icms=ICMSDeclarado(aliquota=12)),
            Produto(id=1, ncm="19021100", cest="1704800", icms=ICMSDeclarado(aliquota=12)),
            Produto(id=2, ncm="19021100", cest="1704800", icms=ICMSDeclarado(aliquota=7)),
            Produto(id=3, ncm="19021900", cest="1704800", icms=ICMSDeclarado(aliquota=12)),
        ]

    def test_propagates_to_matching_products(self) -> None:
        produtos = self._produtos()
        atualizados = aplicar_origem(produtos, 1, "exterior")
        self.assertEqual(atualizados, 2)
        self.assertEqual([p.origem for p in produtos], ["exterior", "exterior", None, None])

    def test_unknown_id(self) -> None:
        produtos = self._produtos()
        self.assertEqual(aplicar_origem(produtos, 99, "exterior"), 0)
        self.assertTrue(all(p.origem is None for p in produtos))

    def test_clear_origem(self) -> None:
        produtos = self._produtos()
        aplicar_origem(produtos, 0, "signataria")
        aplicar_origem(produtos, 0, "")
        self.assertIsNone(produtos[1].origem)

    def test_atualizar_situacao_tributaria(self) -> None:
        produtos = self._produtos()
        self.assertTrue(atualizar_situacao_tributaria(produtos, 2, "SIMPLES"))
        self.assertEqual(produtos[2].situacao_tributaria, "SIMPLES")
        self.assertFalse(atualizar_situacao_tributaria(produtos, 42, "SIMPLES"))


if __name__ == "__main__":
    unittest.main()
