from __future__ import annotations

import logging
import os
from typing import Optional

from ruleset_loader import DEFAULT_RULESET_ID

RULESET_ENV_VAR = "ICMSST_RULESET_ID"
LOG_LEVEL_ENV_VAR = "ICMSST_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_ruleset_id(explicit: Optional[str] = None) -> str:
    """
    Resolve o ruleset ativo: argumento explicito > variavel de ambiente > default.
    """
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()
    from_env = os.getenv(RULESET_ENV_VAR)
    if from_env is not None and from_env.strip():
        return from_env.strip()
    return DEFAULT_RULESET_ID


def resolve_log_level(value: Optional[str] = None) -> int:
    raw = value if value is not None else os.getenv(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL)
    level = logging.getLevelName(str(raw or "").strip().upper())
    if isinstance(level, int):
        return level
    return logging.getLevelName(DEFAULT_LOG_LEVEL)


def configure_logging(level: Optional[str] = None) -> None:
    """Configura logging raiz para pontos de entrada (CLI). Modulos de calculo nao chamam."""
    logging.basicConfig(level=resolve_log_level(level), format=_LOG_FORMAT)
