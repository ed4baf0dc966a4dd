from datetime import date, datetime
from typing import Any, Dict, Iterable, List

from dto import Produto
from mva_resolver import REGRA_ORIGEM, REGRA_PADRAO, identificar_regra_mva
from ruleset_loader import load_ruleset
from tabelas_mva import carregar_tabelas
from tools.ruleset_audit import get_integrity_summary

REGRA_EXCECAO_PANETTONE = "excecao_panettone"


def _load_ruleset_metadata_subset(ruleset_id: str) -> Dict[str, Any]:
    metadata = load_ruleset(ruleset_id)
    return {
        "ruleset_id": metadata.get("ruleset_id", ruleset_id),
        "vigencia_inicio": metadata.get("vigencia_inicio"),
        "vigencia_fim": metadata.get("vigencia_fim"),
        "descricao": metadata.get("descricao"),
    }


def _sources(ruleset_id: str) -> List[str]:
    metadata = load_ruleset(ruleset_id)
    fontes = metadata.get("fontes")
    if not isinstance(fontes, list):
        raise ValueError(f"ruleset '{ruleset_id}' invalido: fontes ausente em metadata.json.")
    sources = [f"Tabelas de MVA, segmentos e parametros carregados do ruleset: {ruleset_id}."]
    sources.extend(str(item) for item in fontes if str(item).strip())
    return sources


def _contar_regras(produtos: Iterable[Produto], ruleset_id: str) -> Dict[str, int]:
    tabelas = carregar_tabelas(ruleset_id)
    contagem: Dict[str, int] = {}
    for produto in produtos:
        if tabelas.excecao_panettone.aplica(produto.ncm, produto.cest, produto.icms.aliquota, produto.nome):
            regra = REGRA_EXCECAO_PANETTONE
        else:
            regra = identificar_regra_mva(produto, ruleset_id)
        contagem[regra] = contagem.get(regra, 0) + 1
    return contagem


def build_audit_metadata(ruleset_id: str, produtos: List[Produto]) -> Dict[str, Any]:
    """Monta metadados de auditoria para rastreabilidade da apuracao de ICMS-ST."""
    tabelas = carregar_tabelas(ruleset_id)

    assumptions: List[str] = [
        "Aliquota de ICMS declarada arredondada ao inteiro mais proximo (meio para cima) para escolher a faixa de MVA.",
        f"Aliquota interna padrao de {tabelas.aliquota_interna_padrao:.2f}%.",
        (
            f"MVA 0 com situacao {tabelas.situacao_tributaria_normal}: base por dentro "
            f"(valor de partida - ICMS proprio) / {tabelas.divisor_base_normal}."
        ),
        "Base de calculo e ICMS-ST negativos sao zerados.",
    ]
    limitations: List[str] = [
        "Nao le XML de NF-e; produtos chegam ja extraidos.",
        "NCM sem MVA mapeada recebe MVA 0 sem bloquear o calculo.",
        "Nao cobre regimes especiais alem da excecao do panettone.",
    ]
    alerts: List[str] = []

    regras = _contar_regras(produtos, ruleset_id)

    sem_mva = [p for p in produtos if identificar_regra_mva(p, ruleset_id) == REGRA_PADRAO]
    if sem_mva:
        ncms = ", ".join(dict.fromkeys(p.ncm or "<vazio>" for p in sem_mva))
        alerts.append(f"{len(sem_mva)} produto(s) sem MVA mapeada (MVA 0 aplicada). NCMs: {ncms}.")
    if regras.get(REGRA_ORIGEM):
        alerts.append(f"{regras[REGRA_ORIGEM]} produto(s) com MVA definida pela origem da mercadoria.")

    integrity = get_integrity_summary(ruleset_id)
    if integrity.get("status") != "PASS":
        alerts.append("Integridade do ruleset/baseline em FAIL. Verificar auditoria do ruleset.")

    # Mantem alertas unicos preservando ordem.
    alerts = list(dict.fromkeys(alerts))

    return {
        "ruleset_id": ruleset_id,
        "ruleset_metadata": _load_ruleset_metadata_subset(ruleset_id),
        "as_of_date": date.today().isoformat(),
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "calculo_tipo": "apuracao_icms_st",
        "sources": _sources(ruleset_id),
        "regras_aplicadas": regras,
        "integrity": integrity,
        "assumptions": assumptions,
        "limitations": limitations,
        "alerts": alerts,
    }
