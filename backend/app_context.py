"""Shared application context for reusable dependencies."""
from __future__ import annotations

from typing import Any, Callable, Optional

from backend.config import MarketplaceConfig, load_config

_get_conn: Optional[Callable[[], Any]] = None
_config: Optional[MarketplaceConfig] = None


def configure(
    *,
    config: MarketplaceConfig,
    get_conn: Callable[[], Any],
) -> None:
    """Register process-wide dependencies required by repositories and routers."""

    global _get_conn
    global _config

    _config = config
    _get_conn = get_conn


def _require(value: Optional[Any], name: str) -> Any:
    if value is None:
        raise RuntimeError(f"Application context has not been configured yet: {name}")
    return value


def get_conn() -> Any:
    conn_factory = _require(_get_conn, "get_conn")
    return conn_factory()


def get_config() -> MarketplaceConfig:
    global _config

    if _config is None:
        _config = load_config()
    return _config


def reset() -> None:
    """Forget registered dependencies. Used by tests."""

    global _get_conn
    global _config

    _get_conn = None
    _config = None
