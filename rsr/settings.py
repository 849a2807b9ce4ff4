from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("RSR_DB_PATH", "rsr.db")
    poll_interval_s: int = _env_int("RSR_POLL_INTERVAL_S", 5)

    # resolv.conf handling
    # The file third parties read and may edit (usually a symlink to ours).
    resolv_conf_path: str = os.getenv("RSR_RESOLV_CONF", "/etc/resolv.conf")
    managed_resolv_conf_path: str = os.getenv("RSR_MANAGED_RESOLV_CONF", "/run/rsr/resolv.conf")
    read_resolv_conf: bool = _env_bool("RSR_READ_RESOLV_CONF", True)

    # Whitespace separated, e.g. "8.8.8.8 2001:4860:4860::8888"
    fallback_dns: str = os.getenv("RSR_FALLBACK_DNS", "")


settings = Settings()
