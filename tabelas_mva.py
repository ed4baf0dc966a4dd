from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Tuple

from ruleset_loader import (
    get_calculo_params,
    get_cest_segmentos,
    get_mva_ncm_table,
    get_mva_origem,
    get_mva_segmentos,
)

FAIXAS_MVA = ("mva4", "mva7", "mva12", "mva_original")
ORIGENS_MVA = ("signataria", "nao_signataria_sul_sudeste", "nao_signataria_outros", "exterior")


def _ruleset_error(ruleset_id: str, arquivo: str, chave: str, impacto: str, detalhe: str) -> ValueError:
    return ValueError(
        f"ruleset_id={ruleset_id} | arquivo={arquivo} | chave={chave} | "
        f"impacto={impacto} | detalhe={detalhe}"
    )


def _required_number(payload: Dict[str, Any], key: str, *, ruleset_id: str, arquivo: str, impacto: str) -> float:
    if key not in payload:
        raise _ruleset_error(ruleset_id, arquivo, key, impacto, "chave ausente")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _ruleset_error(ruleset_id, arquivo, key, impacto, "valor nao numerico")
    return float(value)


def _required_object(payload: Dict[str, Any], key: str, *, ruleset_id: str, arquivo: str, impacto: str) -> Dict[str, Any]:
    if key not in payload:
        raise _ruleset_error(ruleset_id, arquivo, key, impacto, "chave ausente")
    value = payload[key]
    if not isinstance(value, dict):
        raise _ruleset_error(ruleset_id, arquivo, key, impacto, "objeto invalido")
    return value


def _required_text(payload: Dict[str, Any], key: str, *, ruleset_id: str, arquivo: str, impacto: str) -> str:
    if key not in payload:
        raise _ruleset_error(ruleset_id, arquivo, key, impacto, "chave ausente")
    value = payload[key]
    if not isinstance(value, str):
        raise _ruleset_error(ruleset_id, arquivo, key, impacto, "texto invalido")
    return value


def _text_tuple(payload: Dict[str, Any], key: str, *, ruleset_id: str, arquivo: str, impacto: str) -> Tuple[str, ...]:
    value = payload.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise _ruleset_error(ruleset_id, arquivo, key, impacto, "lista de textos invalida")
    return tuple(value)


@dataclass(frozen=True)
class FaixasMVA:
    """MVA por faixa de aliquota interestadual declarada (4%, 7%, 12%, demais)."""

    mva4: float
    mva7: float
    mva12: float
    mva_original: float

    def por_aliquota(self, aliquota_arredondada: int) -> float:
        if aliquota_arredondada == 4:
            return self.mva4
        if aliquota_arredondada == 7:
            return self.mva7
        if aliquota_arredondada == 12:
            return self.mva12
        return self.mva_original


@dataclass(frozen=True)
class SegmentoMVA:
    cest_prefixos: Tuple[str, ...]
    ncm_prefixos: Tuple[str, ...]
    ncms: Tuple[str, ...]
    faixas: FaixasMVA

    def aplica(self, ncm: str, cest: str) -> bool:
        if cest and any(cest.startswith(prefixo) for prefixo in self.cest_prefixos):
            return True
        if ncm and any(ncm.startswith(prefixo) for prefixo in self.ncm_prefixos):
            return True
        return ncm in self.ncms


@dataclass(frozen=True)
class ExcecaoPanettone:
    ncm: str
    cest: str
    aliquota_icms: float
    termo_descricao: str
    mva: float
    aliquota_interna: float

    def aplica(self, ncm: str, cest: str, aliquota_icms: float, descricao: str) -> bool:
        return (
            ncm == self.ncm
            and cest == self.cest
            and aliquota_icms == self.aliquota_icms
            and self.termo_descricao in (descricao or "").lower()
        )


@dataclass(frozen=True)
class TabelasICMSST:
    ruleset_id: str
    mva_ncm: Mapping[str, FaixasMVA]
    autopecas: SegmentoMVA
    materiais_construcao: SegmentoMVA
    ncms_especiais: FrozenSet[str]
    mva_por_origem: Mapping[str, float]
    segmentos_cest: Mapping[str, str]
    segmento_padrao: str
    aliquota_interna_padrao: float
    divisor_base_normal: float
    situacao_tributaria_normal: str
    excecao_panettone: ExcecaoPanettone


def _faixas(payload: Dict[str, Any], *, ruleset_id: str, arquivo: str, chave: str, impacto: str) -> FaixasMVA:
    valores = []
    for faixa in FAIXAS_MVA:
        if faixa not in payload:
            raise _ruleset_error(ruleset_id, arquivo, f"{chave}.{faixa}", impacto, "chave ausente")
        value = payload[faixa]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _ruleset_error(ruleset_id, arquivo, f"{chave}.{faixa}", impacto, "valor nao numerico")
        valores.append(float(value))
    return FaixasMVA(*valores)


def _segmento(payload: Dict[str, Any], key: str, ruleset_id: str) -> SegmentoMVA:
    arquivo = "mva_segmentos.json"
    impacto = "Nao e possivel aplicar MVA por segmento"
    bloco = _required_object(payload, key, ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto)
    mva = _required_object(bloco, "mva", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto)
    return SegmentoMVA(
        cest_prefixos=_text_tuple(bloco, "cest_prefixos", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
        ncm_prefixos=_text_tuple(bloco, "ncm_prefixos", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
        ncms=_text_tuple(bloco, "ncms", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
        faixas=_faixas(mva, ruleset_id=ruleset_id, arquivo=arquivo, chave=f"{key}.mva", impacto=impacto),
    )


def _mva_ncm(payload: Dict[str, Any], ruleset_id: str) -> Mapping[str, FaixasMVA]:
    impacto = "Nao e possivel consultar MVA por NCM"
    tabela = _required_object(payload, "ncm", ruleset_id=ruleset_id, arquivo="mva_ncm.json", impacto=impacto)
    faixas: Dict[str, FaixasMVA] = {}
    for ncm, valores in tabela.items():
        if not isinstance(valores, dict):
            raise _ruleset_error(ruleset_id, "mva_ncm.json", f"ncm.{ncm}", impacto, "objeto invalido")
        faixas[ncm] = _faixas(valores, ruleset_id=ruleset_id, arquivo="mva_ncm.json", chave=f"ncm.{ncm}", impacto=impacto)
    return MappingProxyType(faixas)


def _mva_origem(payload: Dict[str, Any], ruleset_id: str) -> Tuple[FrozenSet[str], Mapping[str, float]]:
    arquivo = "mva_origem.json"
    impacto = "Nao e possivel aplicar MVA por origem"
    ncms = _text_tuple(payload, "ncms_especiais", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto)
    mapa = _required_object(payload, "mva_por_origem", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto)
    por_origem: Dict[str, float] = {}
    for origem in ORIGENS_MVA:
        por_origem[origem] = _required_number(
            mapa, origem, ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto
        )
    return frozenset(ncms), MappingProxyType(por_origem)


def _excecao_panettone(params: Dict[str, Any], ruleset_id: str) -> ExcecaoPanettone:
    arquivo = "calculo_params.json"
    impacto = "Nao e possivel aplicar regra especifica do panettone"
    bloco = _required_object(params, "excecao_panettone", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto)
    return ExcecaoPanettone(
        ncm=_required_text(bloco, "ncm", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
        cest=_required_text(bloco, "cest", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
        aliquota_icms=_required_number(bloco, "aliquota_icms", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
        termo_descricao=_required_text(
            bloco, "termo_descricao", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto
        ).lower(),
        mva=_required_number(bloco, "mva", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
        aliquota_interna=_required_number(bloco, "aliquota_interna", ruleset_id=ruleset_id, arquivo=arquivo, impacto=impacto),
    )


@lru_cache(maxsize=None)
def carregar_tabelas(ruleset_id: str) -> TabelasICMSST:
    """
    Carrega e congela as tabelas do ruleset uma unica vez por processo.
    Consultas por produto leem estruturas imutaveis, sem copia.
    """
    segmentos_payload = get_mva_segmentos(ruleset_id)
    ncms_especiais, mva_por_origem = _mva_origem(get_mva_origem(ruleset_id), ruleset_id)
    params = get_calculo_params(ruleset_id)
    cest_payload = get_cest_segmentos(ruleset_id)

    impacto_cest = "Nao e possivel classificar segmento por CEST"
    segmentos_cest = _required_object(
        cest_payload, "segmentos", ruleset_id=ruleset_id, arquivo="cest_segmentos.json", impacto=impacto_cest
    )
    impacto_params = "Nao e possivel calcular ICMS-ST"
    divisor = _required_number(
        params, "divisor_base_normal", ruleset_id=ruleset_id, arquivo="calculo_params.json", impacto=impacto_params
    )
    if divisor <= 0:
        raise _ruleset_error(ruleset_id, "calculo_params.json", "divisor_base_normal", impacto_params, "valor deve ser > 0")

    return TabelasICMSST(
        ruleset_id=ruleset_id,
        mva_ncm=_mva_ncm(get_mva_ncm_table(ruleset_id), ruleset_id),
        autopecas=_segmento(segmentos_payload, "autopecas", ruleset_id),
        materiais_construcao=_segmento(segmentos_payload, "materiais_construcao", ruleset_id),
        ncms_especiais=ncms_especiais,
        mva_por_origem=mva_por_origem,
        segmentos_cest=MappingProxyType({str(k): str(v) for k, v in segmentos_cest.items()}),
        segmento_padrao=_required_text(
            cest_payload, "segmento_padrao", ruleset_id=ruleset_id, arquivo="cest_segmentos.json", impacto=impacto_cest
        ),
        aliquota_interna_padrao=_required_number(
            params, "aliquota_interna_padrao", ruleset_id=ruleset_id, arquivo="calculo_params.json", impacto=impacto_params
        ),
        divisor_base_normal=divisor,
        situacao_tributaria_normal=_required_text(
            params, "situacao_tributaria_normal", ruleset_id=ruleset_id, arquivo="calculo_params.json", impacto=impacto_params
        ).upper(),
        excecao_panettone=_excecao_panettone(params, ruleset_id),
    )
