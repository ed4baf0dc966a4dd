from __future__ import annotations

from typing import Dict, Iterable

from dto import Produto, TotaisCalculo

CASAS_CHAVE_MVA = 2


def chave_mva(mva: float) -> float:
    """Chave de agrupamento por MVA aplicada, arredondada a 2 casas."""
    return round(float(mva), CASAS_CHAVE_MVA)


def agregar_totais(produtos: Iterable[Produto]) -> TotaisCalculo:
    """
    Soma os produtos ja calculados e agrupa ICMS-ST por MVA aplicada e valor
    de produtos por CFOP. Sem produtos calculados, tudo zero e mapas vazios.
    """
    total_base_st = 0.0
    total_icms_st = 0.0
    total_produtos = 0.0
    total_ipi = 0.0
    total_frete = 0.0
    total_despesas = 0.0
    total_desconto = 0.0
    icms_st_por_mva: Dict[float, float] = {}
    valor_por_cfop: Dict[str, float] = {}
    calculados = 0

    for produto in produtos:
        if not produto.calculado:
            continue
        calculados += 1
        valor_st = produto.valor_icms_st or 0.0

        total_base_st += produto.base_calculo_st or 0.0
        total_icms_st += valor_st
        total_produtos += produto.valor_produto
        total_ipi += produto.ipi
        total_frete += produto.frete
        total_despesas += produto.despesas
        total_desconto += produto.desconto

        chave = chave_mva(produto.mva_aplicada or 0.0)
        icms_st_por_mva[chave] = icms_st_por_mva.get(chave, 0.0) + valor_st
        valor_por_cfop[produto.cfop] = valor_por_cfop.get(produto.cfop, 0.0) + produto.valor_produto

    return TotaisCalculo(
        total_base_st=total_base_st,
        total_icms_st=total_icms_st,
        total_produtos=total_produtos,
        total_ipi=total_ipi,
        total_frete=total_frete,
        total_despesas=total_despesas,
        total_desconto=total_desconto,
        icms_st_por_mva=icms_st_por_mva,
        valor_por_cfop=valor_por_cfop,
        produtos_calculados=calculados,
    )
