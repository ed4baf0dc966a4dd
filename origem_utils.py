from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from dto import Produto

ORIGEM_SIGNATARIA = "signataria"
ORIGEM_NAO_SIGNATARIA_SUL_SUDESTE = "nao_signataria_sul_sudeste"
ORIGEM_NAO_SIGNATARIA_OUTROS = "nao_signataria_outros"
ORIGEM_EXTERIOR = "exterior"

ORIGENS = (
    ORIGEM_SIGNATARIA,
    ORIGEM_NAO_SIGNATARIA_SUL_SUDESTE,
    ORIGEM_NAO_SIGNATARIA_OUTROS,
    ORIGEM_EXTERIOR,
)

ORIGEM_LABELS: Dict[str, str] = {
    ORIGEM_SIGNATARIA: "Signatária do Prot. 46/2000",
    ORIGEM_NAO_SIGNATARIA_SUL_SUDESTE: "Não Signatária (Sul/Sudeste)",
    ORIGEM_NAO_SIGNATARIA_OUTROS: "Não Signatária (Outras)",
    ORIGEM_EXTERIOR: "Exterior",
}


def _normalize_text(value: Any) -> str:
    return str(value or "").strip()


def canonicalize_origem(value: Any) -> Optional[str]:
    """
    Canonicaliza origem da mercadoria para um dos quatro codigos internos.
    Aceita o codigo ou o rotulo exibido ao usuario; vazio/desconhecido -> None.
    """
    raw = _normalize_text(value)
    if not raw:
        return None
    raw_l = raw.lower()
    if raw_l in ORIGENS:
        return raw_l
    for codigo, label in ORIGEM_LABELS.items():
        if raw_l == label.lower():
            return codigo
    return None


def _buscar_produto(produtos: Iterable[Produto], produto_id: int) -> Optional[Produto]:
    for produto in produtos:
        if produto.id == produto_id:
            return produto
    return None


def aplicar_origem(produtos: Iterable[Produto], produto_id: int, origem: Any) -> int:
    """
    Define a origem de um produto e replica para todos os itens com mesmo NCM,
    CEST e aliquota de ICMS declarada. Retorna quantos produtos foram atualizados.
    """
    lista = list(produtos)
    alterado = _buscar_produto(lista, produto_id)
    if alterado is None:
        return 0

    nova_origem = canonicalize_origem(origem)
    ncm, cest, aliquota = alterado.ncm, alterado.cest, alterado.icms.aliquota

    atualizados = 0
    for produto in lista:
        if produto.ncm == ncm and produto.cest == cest and produto.icms.aliquota == aliquota:
            produto.origem = nova_origem
            atualizados += 1
    return atualizados


def atualizar_situacao_tributaria(produtos: Iterable[Produto], produto_id: int, valor: Any) -> bool:
    produto = _buscar_produto(produtos, produto_id)
    if produto is None:
        return False
    produto.situacao_tributaria = str(valor or "")
    return True
