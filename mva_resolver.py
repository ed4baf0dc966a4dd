from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

from dto import Produto
from origem_utils import canonicalize_origem
from runtime_config import resolve_ruleset_id
from tabelas_mva import TabelasICMSST, carregar_tabelas

logger = logging.getLogger(__name__)

REGRA_AUTOPECAS = "autopecas"
REGRA_MATERIAIS_CONSTRUCAO = "materiais_construcao"
REGRA_ORIGEM = "origem"
REGRA_TABELA_NCM = "tabela_ncm"
REGRA_PADRAO = "padrao"

MVA_PADRAO = 0.0


def arredondar_aliquota(aliquota: float) -> int:
    """
    Arredonda a aliquota declarada para o inteiro mais proximo, meio para cima
    (11.5 -> 12, 6.5 -> 7). Valor nao finito cai na faixa 'demais' via 0.
    """
    try:
        valor = float(aliquota)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(valor):
        return 0
    return int(math.floor(valor + 0.5))


def is_ncm_especial(ncm: Optional[str], ruleset_id: Optional[str] = None) -> bool:
    """NCM de produto alimenticio cuja MVA depende da origem da mercadoria."""
    tabelas = carregar_tabelas(resolve_ruleset_id(ruleset_id))
    return bool(ncm) and ncm in tabelas.ncms_especiais


def _resolver(produto: Produto, tabelas: TabelasICMSST) -> Tuple[str, float]:
    ncm = produto.ncm or ""
    cest = produto.cest or ""
    faixa = arredondar_aliquota(produto.icms.aliquota)

    if tabelas.autopecas.aplica(ncm, cest):
        return REGRA_AUTOPECAS, tabelas.autopecas.faixas.por_aliquota(faixa)

    if tabelas.materiais_construcao.aplica(ncm, cest):
        return REGRA_MATERIAIS_CONSTRUCAO, tabelas.materiais_construcao.faixas.por_aliquota(faixa)

    origem = canonicalize_origem(produto.origem)
    if ncm in tabelas.ncms_especiais and origem is not None:
        return REGRA_ORIGEM, tabelas.mva_por_origem[origem]

    faixas_ncm = tabelas.mva_ncm.get(ncm)
    if faixas_ncm is not None:
        return REGRA_TABELA_NCM, faixas_ncm.por_aliquota(faixa)

    return REGRA_PADRAO, MVA_PADRAO


def identificar_regra_mva(produto: Produto, ruleset_id: Optional[str] = None) -> str:
    regra, _ = _resolver(produto, carregar_tabelas(resolve_ruleset_id(ruleset_id)))
    return regra


def resolver_mva(produto: Produto, ruleset_id: Optional[str] = None) -> float:
    """
    Determina a MVA (%) aplicavel ao produto. Primeira regra que casa vence:
    autopecas -> materiais de construcao -> NCM especial com origem -> tabela NCM -> 0.
    """
    regra, mva = _resolver(produto, carregar_tabelas(resolve_ruleset_id(ruleset_id)))
    if regra == REGRA_PADRAO:
        logger.warning("NCM %r sem MVA mapeada (produto %r); MVA 0 aplicada.", produto.ncm, produto.nome)
    else:
        logger.debug("MVA %.2f%% pela regra %s para NCM %r.", mva, regra, produto.ncm)
    return mva
