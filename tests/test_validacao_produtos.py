import unittest

from dto import Produto
from ruleset_loader import DEFAULT_RULESET_ID
from validacao_produtos import OrigemNaoInformadaError, produtos_sem_origem, validar_origens


class ValidacaoProdutosTests(unittest.TestCase):
    def test_pending_products(self) -> None:
        produtos = [
            Produto(ncm="19021100", nome="Macarrao"),
            Produto(ncm="19052010", nome="Panettone", origem="exterior"),
            Produto(ncm="22011000", nome="Agua"),
            Produto(ncm="19053100", nome="Biscoito", origem="desconhecida"),
        ]
        pendentes = produtos_sem_origem(produtos, DEFAULT_RULESET_ID)
        self.assertEqual([p.nome for p in pendentes], ["Macarrao", "Biscoito"])

    def test_validar_origens_raises_for_first_pending(self) -> None:
        produtos = [
            Produto(ncm="22011000", nome="Agua"),
            Produto(ncm="19023000", nome="Massa instantanea"),
            Produto(ncm="19021100", nome="Macarrao"),
        ]
        with self.assertRaises(OrigemNaoInformadaError) as ctx:
            validar_origens(produtos, DEFAULT_RULESET_ID)

        self.assertEqual(ctx.exception.nome, "Massa instantanea")
        self.assertEqual(ctx.exception.ncm, "19023000")
        self.assertEqual(
            str(ctx.exception),
            'Por favor, selecione a origem da mercadoria para o produto "Massa instantanea" (NCM: 19023000).',
        )
        self.assertIsInstance(ctx.exception, ValueError)

    def test_validar_origens_passes(self) -> None:
        produtos = [
            Produto(ncm="22011000", nome="Agua"),
            Produto(ncm="19021100", nome="Macarrao", origem="Exterior"),
        ]
        validar_origens(produtos, DEFAULT_RULESET_ID)


if __name__ == "__main__":
    unittest.main()
