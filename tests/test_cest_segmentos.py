import unittest

from cest_segmentos import SEGMENTO_PADRAO, atribuir_segmentos, segmento_por_cest
from dto import Produto
from ruleset_loader import DEFAULT_RULESET_ID, get_cest_segmentos


class CestSegmentosTests(unittest.TestCase):
    def test_short_or_empty_code_returns_fallback(self) -> None:
        for cest in ("", "1", None):
            self.assertEqual(segmento_por_cest(cest, DEFAULT_RULESET_ID), "Antecipação")

    def test_every_mapped_prefix_returns_exact_label(self) -> None:
        segmentos = get_cest_segmentos(DEFAULT_RULESET_ID)["segmentos"]
        for prefixo, label in segmentos.items():
            self.assertEqual(segmento_por_cest(prefixo + "00100", DEFAULT_RULESET_ID), label)

    def test_unmapped_prefixes_return_fallback(self) -> None:
        segmentos = get_cest_segmentos(DEFAULT_RULESET_ID)["segmentos"]
        for n in range(100):
            prefixo = f"{n:02d}"
            if prefixo in segmentos:
                continue
            self.assertEqual(segmento_por_cest(prefixo, DEFAULT_RULESET_ID), SEGMENTO_PADRAO)

    def test_two_character_code(self) -> None:
        self.assertEqual(segmento_por_cest("17", DEFAULT_RULESET_ID), "Produtos Alimentícios")
        self.assertEqual(segmento_por_cest("AB", DEFAULT_RULESET_ID), "Antecipação")

    def test_atribuir_segmentos(self) -> None:
        produtos = [Produto(ncm="19052010", cest="1705200"), Produto(ncm="22011000", cest="")]
        atribuir_segmentos(produtos, DEFAULT_RULESET_ID)
        self.assertEqual(produtos[0].segmento, "Produtos Alimentícios")
        self.assertEqual(produtos[1].segmento, "Antecipação")


if __name__ == "__main__":
    unittest.main()
