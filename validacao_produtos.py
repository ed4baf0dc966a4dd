from __future__ import annotations

from typing import Iterable, List, Optional

from dto import Produto
from mva_resolver import is_ncm_especial
from origem_utils import canonicalize_origem
from runtime_config import resolve_ruleset_id


class OrigemNaoInformadaError(ValueError):
    def __init__(self, produto: Produto) -> None:
        self.nome = produto.nome
        self.ncm = produto.ncm
        super().__init__(
            f'Por favor, selecione a origem da mercadoria para o produto "{produto.nome}" (NCM: {produto.ncm}).'
        )


def produtos_sem_origem(produtos: Iterable[Produto], ruleset_id: Optional[str] = None) -> List[Produto]:
    """Produtos com NCM de MVA por origem e origem nao informada."""
    ruleset = resolve_ruleset_id(ruleset_id)
    return [
        p for p in produtos
        if is_ncm_especial(p.ncm, ruleset) and canonicalize_origem(p.origem) is None
    ]


def validar_origens(produtos: Iterable[Produto], ruleset_id: Optional[str] = None) -> None:
    """
    Bloqueia o calculo do lote inteiro se algum produto exigir origem e nao a tiver.
    Levanta OrigemNaoInformadaError identificando o primeiro produto pendente.
    """
    pendentes = produtos_sem_origem(produtos, ruleset_id)
    if pendentes:
        raise OrigemNaoInformadaError(pendentes[0])
