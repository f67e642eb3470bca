from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, Optional

DEFAULT_API_BASE = "http://127.0.0.1:6365/api/v1"
DEFAULT_TIMEOUT = 6.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_ORDER_DB = "/etc/tunnel-panel/order.db"
DEFAULT_LOG_LEVEL = "INFO"


def _first_env(names: Iterable[str]) -> Optional[str]:
    for name in names:
        raw = os.getenv(str(name))
        if raw is not None and str(raw).strip():
            return str(raw).strip()
    return None


def setting_str(key: str, default: str = "", env_names: Optional[Iterable[str]] = None) -> str:
    """Read a string setting from the environment.

    ``key`` is tried first as ``TUNNEL_PANEL_<KEY>``, then every alias in
    ``env_names`` in order.
    """
    names = [f"TUNNEL_PANEL_{str(key).strip().upper()}"]
    names.extend(list(env_names or []))
    raw = _first_env(names)
    return raw if raw is not None else default


def setting_int(key: str, default: int = 0, env_names: Optional[Iterable[str]] = None) -> int:
    raw = setting_str(key, "", env_names)
    if not raw:
        return int(default)
    try:
        return int(float(raw))
    except ValueError:
        return int(default)


def setting_float(key: str, default: float = 0.0, env_names: Optional[Iterable[str]] = None) -> float:
    raw = setting_str(key, "", env_names)
    if not raw:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        return float(default)


@dataclass
class Settings:
    api_base: str
    token: str
    timeout: float
    max_retries: int
    order_db: str
    log_level: str


def load_settings() -> Settings:
    timeout = setting_float("timeout", DEFAULT_TIMEOUT)
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT
    retries = setting_int("max_retries", DEFAULT_MAX_RETRIES)
    if retries < 1:
        retries = 1
    return Settings(
        api_base=setting_str("api_base", DEFAULT_API_BASE, env_names=["PANEL_API_BASE"]),
        token=setting_str("token", "", env_names=["PANEL_TOKEN"]),
        timeout=timeout,
        max_retries=retries,
        order_db=setting_str("order_db", DEFAULT_ORDER_DB),
        log_level=setting_str("log_level", DEFAULT_LOG_LEVEL).upper(),
    )
