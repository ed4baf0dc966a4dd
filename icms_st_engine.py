from __future__ import annotations

import logging
from typing import List, Optional

from audit_metadata import build_audit_metadata
from cest_segmentos import atribuir_segmentos
from dto import ApuracaoOutput, CalculoResultado, Produto
from mva_resolver import resolver_mva
from runtime_config import resolve_ruleset_id
from tabelas_mva import TabelasICMSST, carregar_tabelas
from totais import agregar_totais
from validacao_produtos import OrigemNaoInformadaError, validar_origens

logger = logging.getLogger(__name__)


def aplica_excecao_panettone(produto: Produto, tabelas: TabelasICMSST) -> bool:
    return tabelas.excecao_panettone.aplica(produto.ncm, produto.cest, produto.icms.aliquota, produto.nome)


def calcular_icms_st(produto: Produto, ruleset_id: Optional[str] = None) -> CalculoResultado:
    """
    Calcula base e valor do ICMS-ST de um produto.

    - Panettone (NCM/CEST/aliquota 12/descricao): MVA 35% e aliquota interna 12%.
    - Demais: aliquota interna padrao (20,5%) e MVA resolvida por regra.
    - MVA 0 com situacao NORMAL: base por dentro, (partida - ICMS proprio) / 0,795.
    - Base e imposto nunca negativos.
    """
    ruleset = resolve_ruleset_id(ruleset_id)
    tabelas = carregar_tabelas(ruleset)

    if aplica_excecao_panettone(produto, tabelas):
        mva = tabelas.excecao_panettone.mva
        aliquota_interna = tabelas.excecao_panettone.aliquota_interna
    else:
        mva = resolver_mva(produto, ruleset)
        aliquota_interna = tabelas.aliquota_interna_padrao

    partida = produto.valor_partida()
    icms_proprio = produto.icms.valor
    situacao = str(produto.situacao_tributaria or "").upper()

    if mva == 0 and situacao == tabelas.situacao_tributaria_normal:
        base = (partida - icms_proprio) / tabelas.divisor_base_normal
    else:
        base = partida * (1 + mva / 100)

    valor = base * (aliquota_interna / 100) - icms_proprio

    return CalculoResultado(
        base_calculo_st=max(0.0, base),
        valor_icms_st=max(0.0, valor),
        mva_aplicada=mva,
        aliquota_interna=aliquota_interna,
    )


class IcmsStService:
    """
    Service Layer: orquestra segmento -> validacao -> calculo -> totais -> auditoria.
    Parser de NF-e e UI apenas entregam produtos e exibem o ApuracaoOutput.
    """

    def __init__(self, ruleset_id: Optional[str] = None) -> None:
        self.ruleset_id = resolve_ruleset_id(ruleset_id)

    def calcular(self, produtos: List[Produto]) -> List[CalculoResultado]:
        resultados: List[CalculoResultado] = []
        for produto in produtos:
            resultado = calcular_icms_st(produto, self.ruleset_id)
            produto.aplicar_resultado(resultado)
            resultados.append(resultado)
        return resultados

    def run(self, produtos: List[Produto]) -> ApuracaoOutput:
        atribuir_segmentos(produtos, self.ruleset_id)
        try:
            validar_origens(produtos, self.ruleset_id)
        except OrigemNaoInformadaError as exc:
            logger.warning("Calculo bloqueado: %s", exc)
            raise

        resultados = self.calcular(produtos)
        totais = agregar_totais(produtos)
        audit = build_audit_metadata(self.ruleset_id, produtos)

        logger.info(
            "Apuracao ICMS-ST (%s): %d produto(s), ICMS-ST total %.2f.",
            self.ruleset_id,
            totais.produtos_calculados,
            totais.total_icms_st,
        )
        return ApuracaoOutput(
            ruleset_id=self.ruleset_id,
            produtos=produtos,
            resultados=resultados,
            totais=totais,
            audit=audit,
        )
