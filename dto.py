from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ICMSDeclarado:
    cst: str = ""
    base_calculo: float = 0.0
    aliquota: float = 0.0  # percentual (ex: 12 para 12%)
    valor: float = 0.0

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "ICMSDeclarado":
        data = payload if isinstance(payload, Mapping) else {}
        return cls(
            cst=_to_text(data.get("cst")),
            base_calculo=_to_float(data.get("base_calculo")),
            aliquota=_to_float(data.get("aliquota")),
            valor=_to_float(data.get("valor")),
        )


@dataclass(frozen=True)
class CalculoResultado:
    base_calculo_st: float
    valor_icms_st: float
    mva_aplicada: float
    aliquota_interna: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class Produto:
    """
    Item da NF-e. Mutado in-place pelo calculo (campos derivados) e por edicoes
    do usuario (situacao_tributaria/origem).
    """

    ncm: str
    cest: str = ""
    cfop: str = ""
    nome: str = ""
    codigo: str = ""
    id: int = 0
    quantidade: float = 0.0
    valor_unitario: float = 0.0
    valor_produto: float = 0.0
    ipi: float = 0.0
    frete: float = 0.0
    despesas: float = 0.0
    desconto: float = 0.0
    situacao_tributaria: str = "NORMAL"
    origem: Optional[str] = None  # signataria | nao_signataria_sul_sudeste | nao_signataria_outros | exterior
    icms: ICMSDeclarado = field(default_factory=ICMSDeclarado)
    segmento: str = ""

    mva_aplicada: Optional[float] = None
    aliquota_interna: Optional[float] = None
    base_calculo_st: Optional[float] = None
    valor_icms_st: Optional[float] = None

    @property
    def calculado(self) -> bool:
        return self.valor_icms_st is not None

    def valor_partida(self) -> float:
        return self.valor_produto + self.ipi + self.frete + self.despesas - self.desconto

    def aplicar_resultado(self, resultado: CalculoResultado) -> None:
        self.base_calculo_st = resultado.base_calculo_st
        self.valor_icms_st = resultado.valor_icms_st
        self.mva_aplicada = resultado.mva_aplicada
        self.aliquota_interna = resultado.aliquota_interna

    def limpar_resultado(self) -> None:
        self.base_calculo_st = None
        self.valor_icms_st = None
        self.mva_aplicada = None
        self.aliquota_interna = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Produto":
        """
        Monta produto a partir do payload do parser. NCM/CEST/CFOP ficam como texto:
        o prefixo importa para as regras de MVA.
        """
        origem_raw = _to_text(payload.get("origem"))
        situacao = payload.get("situacao_tributaria")
        return cls(
            id=int(_to_float(payload.get("id"), 0.0)),
            codigo=_to_text(payload.get("codigo")),
            nome=_to_text(payload.get("nome")),
            ncm=_to_text(payload.get("ncm")),
            cest=_to_text(payload.get("cest")),
            cfop=_to_text(payload.get("cfop")),
            quantidade=_to_float(payload.get("quantidade")),
            valor_unitario=_to_float(payload.get("valor_unitario")),
            valor_produto=_to_float(payload.get("valor_produto")),
            ipi=_to_float(payload.get("ipi")),
            frete=_to_float(payload.get("frete")),
            despesas=_to_float(payload.get("despesas")),
            desconto=_to_float(payload.get("desconto")),
            situacao_tributaria="NORMAL" if situacao is None else str(situacao),
            origem=origem_raw or None,
            icms=ICMSDeclarado.from_dict(payload.get("icms")),
            segmento=_to_text(payload.get("segmento")),
            mva_aplicada=_to_optional_float(payload.get("mva_aplicada")),
            aliquota_interna=_to_optional_float(payload.get("aliquota_interna")),
            base_calculo_st=_to_optional_float(payload.get("base_calculo_st")),
            valor_icms_st=_to_optional_float(payload.get("valor_icms_st")),
        )


@dataclass(frozen=True)
class TotaisCalculo:
    total_base_st: float = 0.0
    total_icms_st: float = 0.0
    total_produtos: float = 0.0
    total_ipi: float = 0.0
    total_frete: float = 0.0
    total_despesas: float = 0.0
    total_desconto: float = 0.0
    icms_st_por_mva: Dict[float, float] = field(default_factory=dict)
    valor_por_cfop: Dict[str, float] = field(default_factory=dict)
    produtos_calculados: int = 0

    def mva_ordenado(self) -> List[Tuple[float, float]]:
        return sorted(self.icms_st_por_mva.items(), key=lambda item: item[0])

    def cfop_ordenado(self) -> List[Tuple[str, float]]:
        return sorted(self.valor_por_cfop.items(), key=lambda item: item[0])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ApuracaoOutput:
    ruleset_id: str
    produtos: List[Produto]
    resultados: List[CalculoResultado]
    totais: TotaisCalculo
    audit: Dict[str, Any]

    def to_event(self) -> Dict[str, Any]:
        return asdict(self)


def produtos_from_dicts(payloads: List[Mapping[str, Any]]) -> List[Produto]:
    produtos: List[Produto] = []
    for idx, payload in enumerate(payloads):
        produto = Produto.from_dict(payload)
        if "id" not in payload:
            produto.id = idx
        produtos.append(produto)
    return produtos
