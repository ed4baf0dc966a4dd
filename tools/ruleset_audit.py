from __future__ import annotations

import argparse
import hashlib
import json
import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Sequence

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from ruleset_loader import (
    DEFAULT_RULESET_ID,
    get_baseline_calculo_params,
    get_baseline_cest_segmentos,
    get_baseline_mva_ncm_table,
    get_baseline_mva_origem,
    get_baseline_mva_segmentos,
    get_calculo_params,
    get_cest_segmentos,
    get_mva_ncm_table,
    get_mva_origem,
    get_mva_segmentos,
    load_ruleset,
)
from runtime_config import configure_logging, resolve_ruleset_id
from tabelas_mva import FAIXAS_MVA, ORIGENS_MVA

logger = logging.getLogger(__name__)

NCM_PATTERN = re.compile(r"^\d{8}$")
CEST_PREFIXO_PATTERN = re.compile(r"^\d{2}$")
NCMS_ESPECIAIS_ESPERADOS = 8
SENTINELA_TOLERANCIA = 1e-9
CALCULO_CHAVES_OBRIGATORIAS = (
    "aliquota_interna_padrao",
    "divisor_base_normal",
    "situacao_tributaria_normal",
    "excecao_panettone",
)
PANETTONE_CHAVES_OBRIGATORIAS = (
    "ncm",
    "cest",
    "aliquota_icms",
    "termo_descricao",
    "mva",
    "aliquota_interna",
)

CHECKED_FILES = (
    "mva_ncm.json",
    "mva_segmentos.json",
    "mva_origem.json",
    "calculo_params.json",
    "cest_segmentos.json",
)


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: str  # PASS | FAIL
    expected: Any = None
    actual: Any = None
    details: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "expected": self.expected,
            "actual": self.actual,
            "details": self.details,
        }


def _pass(name: str, details: str = "", expected: Any = None, actual: Any = None) -> CheckResult:
    return CheckResult(name=name, status="PASS", details=details, expected=expected, actual=actual)


def _fail(name: str, details: str = "", expected: Any = None, actual: Any = None) -> CheckResult:
    return CheckResult(name=name, status="FAIL", details=details, expected=expected, actual=actual)


def _is_non_negative_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _hash_json_payload(payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _hash_composite(items: Dict[str, str]) -> str:
    canonical = json.dumps(items, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _diff_json(expected: Any, actual: Any, path: str = "$") -> List[Dict[str, Any]]:
    diffs: List[Dict[str, Any]] = []

    if type(expected) is not type(actual):
        diffs.append({"path": path, "expected": expected, "actual": actual, "details": "type mismatch"})
        return diffs

    if isinstance(expected, dict):
        expected_keys = set(expected.keys())
        actual_keys = set(actual.keys())

        for missing_key in sorted(expected_keys - actual_keys):
            diffs.append(
                {
                    "path": f"{path}.{missing_key}",
                    "expected": expected[missing_key],
                    "actual": "<missing>",
                    "details": "missing key in atual",
                }
            )
        for extra_key in sorted(actual_keys - expected_keys):
            diffs.append(
                {
                    "path": f"{path}.{extra_key}",
                    "expected": "<missing>",
                    "actual": actual[extra_key],
                    "details": "extra key em atual",
                }
            )

        for key in sorted(expected_keys & actual_keys):
            diffs.extend(_diff_json(expected[key], actual[key], f"{path}.{key}"))
        return diffs

    if isinstance(expected, list):
        if len(expected) != len(actual):
            diffs.append(
                {
                    "path": path,
                    "expected": f"len={len(expected)}",
                    "actual": f"len={len(actual)}",
                    "details": "list length mismatch",
                }
            )
            return diffs
        for idx, (exp_item, act_item) in enumerate(zip(expected, actual)):
            diffs.extend(_diff_json(exp_item, act_item, f"{path}[{idx}]"))
        return diffs

    if expected != actual:
        diffs.append({"path": path, "expected": expected, "actual": actual, "details": "value mismatch"})

    return diffs


def _sentinels(metadata: Dict[str, Any], key: str) -> Any:
    audit_cfg = metadata.get("audit_sentinels")
    if not isinstance(audit_cfg, dict):
        return None
    return audit_cfg.get(key)


def _validate_faixas(faixas: Any, label: str) -> List[CheckResult]:
    if not isinstance(faixas, dict):
        return [_fail(f"{label}: faixas de MVA", expected="objeto", actual=type(faixas).__name__)]
    invalidas = [faixa for faixa in FAIXAS_MVA if not _is_non_negative_number(faixas.get(faixa))]
    if invalidas:
        return [_fail(f"{label}: faixas de MVA", expected="mva4/mva7/mva12/mva_original >= 0", actual=invalidas)]
    return []


def validate_mva_ncm(payload: Dict[str, Any], sentinels: Sequence[Dict[str, Any]] | None = None) -> List[CheckResult]:
    checks: List[CheckResult] = []
    tabela = payload.get("ncm")
    if not isinstance(tabela, dict) or not tabela:
        return [_fail("MVA NCM: estrutura ncm", expected="objeto nao vazio", actual=type(tabela).__name__)]

    chaves_invalidas = sorted(k for k in tabela.keys() if not NCM_PATTERN.match(str(k)))
    if chaves_invalidas:
        checks.append(_fail("MVA NCM: chaves com 8 digitos", expected="NNNNNNNN", actual=chaves_invalidas[:10]))
    else:
        checks.append(_pass("MVA NCM: chaves com 8 digitos", details=f"{len(tabela)} NCMs"))

    falhas_faixas: List[CheckResult] = []
    for ncm, faixas in tabela.items():
        falhas_faixas.extend(_validate_faixas(faixas, f"MVA NCM {ncm}"))
    if falhas_faixas:
        checks.extend(falhas_faixas)
    else:
        checks.append(_pass("MVA NCM: faixas numericas nao negativas"))

    for sentinel in sentinels or []:
        ncm = str(sentinel.get("ncm", ""))
        name = f"Sentinela MVA NCM: {ncm}"
        atual = tabela.get(ncm)
        if not isinstance(atual, dict):
            checks.append(_fail(name, expected="NCM presente", actual="ausente"))
            continue
        divergentes = {}
        for faixa in FAIXAS_MVA:
            if faixa not in sentinel:
                continue
            esperado = sentinel[faixa]
            obtido = atual.get(faixa)
            if not isinstance(obtido, (int, float)) or abs(float(obtido) - float(esperado)) > SENTINELA_TOLERANCIA:
                divergentes[faixa] = {"esperado": esperado, "atual": obtido}
        if divergentes:
            checks.append(_fail(name, expected="valores da sentinela", actual=divergentes))
        else:
            checks.append(_pass(name))
    return checks


def validate_mva_segmentos(payload: Dict[str, Any]) -> List[CheckResult]:
    checks: List[CheckResult] = []
    for segmento in ("autopecas", "materiais_construcao"):
        bloco = payload.get(segmento)
        if not isinstance(bloco, dict):
            checks.append(_fail(f"Segmentos: secao '{segmento}'", expected="objeto presente", actual=type(bloco).__name__))
            continue
        checks.append(_pass(f"Segmentos: secao '{segmento}'"))

        prefixos = bloco.get("cest_prefixos")
        if isinstance(prefixos, list) and prefixos and all(isinstance(p, str) and CEST_PREFIXO_PATTERN.match(p) for p in prefixos):
            checks.append(_pass(f"Segmentos {segmento}: cest_prefixos validos"))
        else:
            checks.append(_fail(f"Segmentos {segmento}: cest_prefixos validos", expected="lista de prefixos NN", actual=prefixos))

        falhas = _validate_faixas(bloco.get("mva"), f"Segmentos {segmento}")
        checks.extend(falhas or [_pass(f"Segmentos {segmento}: faixas numericas nao negativas")])
    return checks


def validate_mva_origem(payload: Dict[str, Any], sentinel: Dict[str, Any] | None = None) -> List[CheckResult]:
    checks: List[CheckResult] = []
    ncms = payload.get("ncms_especiais")
    if (
        isinstance(ncms, list)
        and len(ncms) == NCMS_ESPECIAIS_ESPERADOS
        and len(set(ncms)) == len(ncms)
        and all(isinstance(n, str) and NCM_PATTERN.match(n) for n in ncms)
    ):
        checks.append(_pass("Origem: ncms_especiais com 8 NCMs distintos"))
    else:
        checks.append(
            _fail(
                "Origem: ncms_especiais com 8 NCMs distintos",
                expected=f"{NCMS_ESPECIAIS_ESPERADOS} NCMs de 8 digitos",
                actual=ncms,
            )
        )

    mapa = payload.get("mva_por_origem")
    if not isinstance(mapa, dict):
        checks.append(_fail("Origem: mva_por_origem", expected="objeto", actual=type(mapa).__name__))
        return checks

    for origem in ORIGENS_MVA:
        valor = mapa.get(origem)
        if _is_non_negative_number(valor):
            checks.append(_pass(f"Origem: MVA para '{origem}'"))
        else:
            checks.append(_fail(f"Origem: MVA para '{origem}'", expected="numero >= 0", actual=valor))

    if isinstance(sentinel, dict):
        for origem, esperado in sentinel.items():
            name = f"Sentinela Origem: {origem}"
            if mapa.get(origem) == esperado:
                checks.append(_pass(name))
            else:
                checks.append(_fail(name, expected=esperado, actual=mapa.get(origem)))
    return checks


def validate_required_keys(payload: Dict[str, Any], section_name: str, required_keys: Sequence[str]) -> List[CheckResult]:
    checks: List[CheckResult] = []
    for key in required_keys:
        if key in payload:
            checks.append(_pass(f"{section_name}: chave obrigatoria '{key}'"))
        else:
            checks.append(_fail(f"{section_name}: chave obrigatoria '{key}'", expected="presente", actual="ausente"))
    return checks


def validate_calculo_params(params: Dict[str, Any]) -> List[CheckResult]:
    checks = validate_required_keys(params, "Calculo", CALCULO_CHAVES_OBRIGATORIAS)

    aliquota = params.get("aliquota_interna_padrao")
    if _is_non_negative_number(aliquota) and float(aliquota) <= 100:
        checks.append(_pass("Calculo: faixa valida para 'aliquota_interna_padrao'"))
    else:
        checks.append(
            _fail("Calculo: faixa valida para 'aliquota_interna_padrao'", expected="percentual entre 0 e 100", actual=aliquota)
        )

    divisor = params.get("divisor_base_normal")
    if _is_non_negative_number(divisor) and 0 < float(divisor) <= 1:
        checks.append(_pass("Calculo: faixa valida para 'divisor_base_normal'"))
    else:
        checks.append(_fail("Calculo: faixa valida para 'divisor_base_normal'", expected="numero em (0, 1]", actual=divisor))

    excecao = params.get("excecao_panettone")
    if isinstance(excecao, dict):
        checks.extend(validate_required_keys(excecao, "Calculo panettone", PANETTONE_CHAVES_OBRIGATORIAS))
    return checks


def validate_cest_segmentos(payload: Dict[str, Any]) -> List[CheckResult]:
    checks: List[CheckResult] = []
    padrao = payload.get("segmento_padrao")
    if isinstance(padrao, str) and padrao.strip():
        checks.append(_pass("CEST: segmento_padrao definido"))
    else:
        checks.append(_fail("CEST: segmento_padrao definido", expected="texto nao vazio", actual=padrao))

    segmentos = payload.get("segmentos")
    if not isinstance(segmentos, dict) or not segmentos:
        checks.append(_fail("CEST: estrutura segmentos", expected="objeto nao vazio", actual=type(segmentos).__name__))
        return checks

    invalidos = sorted(k for k, v in segmentos.items() if not CEST_PREFIXO_PATTERN.match(str(k)) or not isinstance(v, str) or not v.strip())
    if invalidos:
        checks.append(_fail("CEST: prefixos NN com rotulo", expected="prefixo de 2 digitos -> texto", actual=invalidos))
    else:
        checks.append(_pass("CEST: prefixos NN com rotulo", details=f"{len(segmentos)} segmentos"))
    return checks


def audit_ruleset(ruleset_id: str = DEFAULT_RULESET_ID) -> Dict[str, Any]:
    """Executa auditoria estrutural e de integridade deterministicamente com baseline."""
    checks: List[CheckResult] = []
    warnings: List[str] = []
    metadata = load_ruleset(ruleset_id)

    ruleset_payloads = {
        "mva_ncm.json": get_mva_ncm_table(ruleset_id),
        "mva_segmentos.json": get_mva_segmentos(ruleset_id),
        "mva_origem.json": get_mva_origem(ruleset_id),
        "calculo_params.json": get_calculo_params(ruleset_id),
        "cest_segmentos.json": get_cest_segmentos(ruleset_id),
    }
    baseline_payloads = {
        "mva_ncm.json": get_baseline_mva_ncm_table(ruleset_id),
        "mva_segmentos.json": get_baseline_mva_segmentos(ruleset_id),
        "mva_origem.json": get_baseline_mva_origem(ruleset_id),
        "calculo_params.json": get_baseline_calculo_params(ruleset_id),
        "cest_segmentos.json": get_baseline_cest_segmentos(ruleset_id),
    }

    ncm_sentinels = _sentinels(metadata, "mva_ncm")
    checks.extend(
        validate_mva_ncm(
            ruleset_payloads["mva_ncm.json"],
            sentinels=[s for s in ncm_sentinels if isinstance(s, dict)] if isinstance(ncm_sentinels, list) else None,
        )
    )
    checks.extend(validate_mva_segmentos(ruleset_payloads["mva_segmentos.json"]))
    checks.extend(validate_mva_origem(ruleset_payloads["mva_origem.json"], sentinel=_sentinels(metadata, "mva_origem")))
    checks.extend(validate_calculo_params(ruleset_payloads["calculo_params.json"]))
    checks.extend(validate_cest_segmentos(ruleset_payloads["cest_segmentos.json"]))

    tabela_ncm = ruleset_payloads["mva_ncm.json"].get("ncm")
    ncms_especiais = ruleset_payloads["mva_origem.json"].get("ncms_especiais")
    if isinstance(tabela_ncm, dict) and isinstance(ncms_especiais, list):
        sem_tabela = [n for n in ncms_especiais if n not in tabela_ncm]
        if sem_tabela:
            warnings.append(
                "WARNING: NCMs especiais sem linha na tabela NCM (sem origem informada resultam em MVA 0): "
                + ", ".join(sem_tabela)
            )

    json_diffs: List[Dict[str, Any]] = []
    ruleset_file_hashes: Dict[str, str] = {}
    baseline_file_hashes: Dict[str, str] = {}

    for filename in CHECKED_FILES:
        ruleset_payload = ruleset_payloads[filename]
        baseline_payload = baseline_payloads[filename]
        ruleset_file_hashes[filename] = _hash_json_payload(ruleset_payload)
        baseline_file_hashes[filename] = _hash_json_payload(baseline_payload)

        diffs = _diff_json(baseline_payload, ruleset_payload, path=f"$.{filename}")
        if diffs:
            json_diffs.extend(diffs)
            checks.append(
                _fail(
                    f"Baseline parity: {filename}",
                    expected="igual ao baseline",
                    actual=f"{len(diffs)} divergencia(s)",
                )
            )
        else:
            checks.append(_pass(f"Baseline parity: {filename}"))

    ruleset_hash = _hash_composite(ruleset_file_hashes)
    baseline_hash = _hash_composite(baseline_file_hashes)

    all_pass = all(c.status == "PASS" for c in checks)
    fail_checks = [c.to_dict() for c in checks if c.status == "FAIL"]
    if not all_pass:
        logger.warning("Auditoria do ruleset %s com %d falha(s).", ruleset_id, len(fail_checks))

    return {
        "ruleset_id": ruleset_id,
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "metadata": {
            "ruleset_id": metadata.get("ruleset_id"),
            "vigencia_inicio": metadata.get("vigencia_inicio"),
            "vigencia_fim": metadata.get("vigencia_fim"),
            "descricao": metadata.get("descricao"),
        },
        "checked_files": list(CHECKED_FILES),
        "ruleset_file_hashes": ruleset_file_hashes,
        "baseline_file_hashes": baseline_file_hashes,
        "ruleset_hash_sha256": ruleset_hash,
        "baseline_hash_sha256": baseline_hash,
        "overall_status": "PASS" if all_pass else "FAIL",
        "checks": [c.to_dict() for c in checks],
        "differences": fail_checks,
        "json_differences": json_diffs,
        "warnings": warnings,
    }


def get_integrity_summary(ruleset_id: str = DEFAULT_RULESET_ID) -> Dict[str, Any]:
    """Resumo curto de integridade para anexar no audit metadata da apuracao."""
    result = audit_ruleset(ruleset_id)
    return {
        "status": result.get("overall_status"),
        "ruleset_hash": result.get("ruleset_hash_sha256"),
        "baseline_hash": result.get("baseline_hash_sha256"),
        "checked_files": result.get("checked_files", []),
        "difference_count": len(result.get("json_differences", [])),
        "warning_count": len(result.get("warnings", [])),
    }


def render_audit_report_text(result: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("=== RULESET AUDIT REPORT (ICMS-ST) ===")
    lines.append(f"Ruleset: {result.get('ruleset_id')}")
    lines.append(f"Timestamp: {result.get('timestamp')}")
    lines.append(f"Overall: {result.get('overall_status')}")
    lines.append(f"Ruleset hash (SHA-256): {result.get('ruleset_hash_sha256')}")
    lines.append(f"Baseline hash (SHA-256): {result.get('baseline_hash_sha256')}")
    lines.append("")

    meta = result.get("metadata", {})
    lines.append("Metadata:")
    lines.append(f"- ruleset_id: {meta.get('ruleset_id')}")
    lines.append(f"- vigencia_inicio: {meta.get('vigencia_inicio')}")
    lines.append(f"- vigencia_fim: {meta.get('vigencia_fim')}")
    lines.append(f"- descricao: {meta.get('descricao')}")
    lines.append("")

    lines.append("File hashes:")
    for filename in result.get("checked_files", []):
        ruleset_h = result.get("ruleset_file_hashes", {}).get(filename)
        baseline_h = result.get("baseline_file_hashes", {}).get(filename)
        lines.append(f"- {filename}")
        lines.append(f"  ruleset : {ruleset_h}")
        lines.append(f"  baseline: {baseline_h}")

    lines.append("")
    lines.append("Warnings:")
    warnings = result.get("warnings", [])
    if not warnings:
        lines.append("- none")
    else:
        for warning in warnings:
            lines.append(f"- {warning}")
    lines.append("")
    lines.append("Checks:")
    for check in result.get("checks", []):
        lines.append(f"[{check.get('status')}] {check.get('name')}")
        expected = check.get("expected")
        actual = check.get("actual")
        details = check.get("details")
        if expected is not None or actual is not None:
            lines.append(f"  expected={expected} | actual={actual}")
        if details:
            lines.append(f"  details={details}")

    lines.append("")
    lines.append("JSON diffs (baseline vs ruleset):")
    json_diffs = result.get("json_differences", [])
    if not json_diffs:
        lines.append("- none")
    else:
        for diff in json_diffs:
            lines.append(
                f"- path={diff.get('path')} | expected={diff.get('expected')} | actual={diff.get('actual')} | details={diff.get('details')}"
            )

    return "\n".join(lines)


def write_audit_report(result: Dict[str, Any], output_dir: str = "outputs") -> str:
    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    name = f"ruleset_audit_{result.get('ruleset_id', 'unknown')}_{timestamp}.txt"
    path = os.path.join(output_dir, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_audit_report_text(result))
    return path


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Audita integridade estrutural e paridade com baseline do ruleset de ICMS-ST.")
    parser.add_argument("--ruleset-id", default=None)
    parser.add_argument("--output-dir", default="outputs")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    ruleset_id = resolve_ruleset_id(args.ruleset_id)

    try:
        result = audit_ruleset(ruleset_id)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Falha ao auditar ruleset %s: %s", ruleset_id, exc)
        print(f"Erro ao auditar ruleset '{ruleset_id}': {exc}")
        return 2

    report_path = write_audit_report(result, output_dir=args.output_dir)
    print(f"Relatorio de auditoria gerado: {report_path}")
    print(f"Status geral: {result.get('overall_status')}")
    print(f"Ruleset hash: {result.get('ruleset_hash_sha256')}")
    print(f"Baseline hash: {result.get('baseline_hash_sha256')}")
    return 0 if result.get("overall_status") == "PASS" else 1


if __name__ == "__main__":
    raise SystemExit(main())
