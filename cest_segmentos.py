from __future__ import annotations

from typing import Iterable, Optional

from dto import Produto
from runtime_config import resolve_ruleset_id
from tabelas_mva import carregar_tabelas

SEGMENTO_PADRAO = "Antecipação"


def segmento_por_cest(cest: Optional[str], ruleset_id: Optional[str] = None) -> str:
    """Segmento de mercado pelo prefixo de 2 digitos do CEST; fallback 'Antecipação'."""
    tabelas = carregar_tabelas(resolve_ruleset_id(ruleset_id))
    padrao = tabelas.segmento_padrao or SEGMENTO_PADRAO
    if not cest or len(cest) < 2:
        return padrao
    return tabelas.segmentos_cest.get(cest[:2], padrao)


def atribuir_segmentos(produtos: Iterable[Produto], ruleset_id: Optional[str] = None) -> None:
    ruleset = resolve_ruleset_id(ruleset_id)
    for produto in produtos:
        produto.segmento = segmento_por_cest(produto.cest, ruleset)
