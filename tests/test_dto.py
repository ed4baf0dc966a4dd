import unittest

from dto import CalculoResultado, ICMSDeclarado, Produto, TotaisCalculo, produtos_from_dicts


class ProdutoTests(unittest.TestCase):
    def test_from_dict_keeps_codes_as_text(self) -> None:
        produto = Produto.from_dict(
            {
                "id": 3,
                "ncm": "01012100",
                "cest": "0100100",
                "cfop": "6102",
                "nome": " Bomba ",
                "valor_produto": "150.5",
                "ipi": None,
                "icms": {"cst": "00", "aliquota": 12, "valor": "18.06"},
            }
        )
        self.assertEqual(produto.id, 3)
        self.assertEqual(produto.ncm, "01012100")
        self.assertEqual(produto.cest, "0100100")
        self.assertEqual(produto.nome, "Bomba")
        self.assertEqual(produto.valor_produto, 150.5)
        self.assertEqual(produto.ipi, 0.0)
        self.assertEqual(produto.icms.aliquota, 12.0)
        self.assertEqual(produto.icms.valor, 18.06)
        self.assertEqual(produto.situacao_tributaria, "NORMAL")
        self.assertIsNone(produto.origem)
        self.assertFalse(produto.calculado)

    def test_from_dict_without_icms(self) -> None:
        produto = Produto.from_dict({"ncm": "22011000", "situacao_tributaria": ""})
        self.assertEqual(produto.icms, ICMSDeclarado())
        self.assertEqual(produto.situacao_tributaria, "")

    def test_valor_partida_can_be_negative(self) -> None:
        produto = Produto(ncm="22011000", valor_produto=10.0, ipi=1.0, frete=1.0, despesas=1.0, desconto=20.0)
        self.assertAlmostEqual(produto.valor_partida(), -7.0)

    def test_aplicar_e_limpar_resultado(self) -> None:
        produto = Produto(ncm="22011000")
        produto.aplicar_resultado(CalculoResultado(10.0, 2.0, 35.0, 20.5))
        self.assertTrue(produto.calculado)
        self.assertEqual(produto.mva_aplicada, 35.0)
        produto.limpar_resultado()
        self.assertFalse(produto.calculado)
        self.assertIsNone(produto.base_calculo_st)

    def test_produtos_from_dicts_assigns_index_ids(self) -> None:
        produtos = produtos_from_dicts([{"ncm": "1"}, {"ncm": "2", "id": 10}, {"ncm": "3"}])
        self.assertEqual([p.id for p in produtos], [0, 10, 2])


class TotaisCalculoTests(unittest.TestCase):
    def test_ordered_views(self) -> None:
        totais = TotaisCalculo(icms_st_por_mva={45.0: 1.0, 0.0: 2.0}, valor_por_cfop={"6102": 3.0, "5102": 4.0})
        self.assertEqual(totais.mva_ordenado(), [(0.0, 2.0), (45.0, 1.0)])
        self.assertEqual(totais.cfop_ordenado(), [("5102", 4.0), ("6102", 3.0)])
        self.assertEqual(totais.to_dict()["valor_por_cfop"], {"6102": 3.0, "5102": 4.0})


if __name__ == "__main__":
    unittest.main()
