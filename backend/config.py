"""Configuration helpers for the marketplace backend."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple


@dataclass(frozen=True)
class MarketplaceConfig:
    """Process-wide settings loaded once at start-up."""

    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_connect_timeout: int
    db_statement_timeout_ms: int
    jwt_secret_key: str
    jwt_algorithm: str
    jwt_exp_minutes: int
    download_ttl_days: int
    download_token_bytes: int
    default_payment_method: str
    payment_callback_secret: Optional[str]
    default_page_size: int
    max_page_size: int
    cors_allow_origins: Tuple[str, ...]

    def db_connect_kwargs(self) -> dict:
        """Keyword arguments accepted by :func:`psycopg2.connect`."""

        return dict(
            host=self.db_host,
            port=self.db_port,
            dbname=self.db_name,
            user=self.db_user,
            password=self.db_password,
            connect_timeout=self.db_connect_timeout,
            options=f"-c statement_timeout={self.db_statement_timeout_ms}",
        )


MIN_DOWNLOAD_TOKEN_BYTES = 32
# downloads.download_token is VARCHAR(128); tokens are hex, two characters per byte.
MAX_DOWNLOAD_TOKEN_BYTES = 64
# orders.payment_method is VARCHAR(32).
MAX_PAYMENT_METHOD_LENGTH = 32


def _to_int(value: Optional[str], *, default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _parse_connect_timeout(raw_value: Optional[str]) -> int:
    if raw_value is None or raw_value == "":
        return 5
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def _split_origins(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ("http://localhost:5173",)
    return tuple(origin.strip() for origin in value.split(",") if origin.strip())


def load_config(env: Optional[Mapping[str, str]] = None) -> MarketplaceConfig:
    """Load :class:`MarketplaceConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    token_bytes = _to_int(
        env_mapping.get("DOWNLOAD_TOKEN_BYTES"),
        default=MIN_DOWNLOAD_TOKEN_BYTES,
        name="DOWNLOAD_TOKEN_BYTES",
    )
    if not MIN_DOWNLOAD_TOKEN_BYTES <= token_bytes <= MAX_DOWNLOAD_TOKEN_BYTES:
        raise ValueError(
            f"DOWNLOAD_TOKEN_BYTES must be between {MIN_DOWNLOAD_TOKEN_BYTES} and {MAX_DOWNLOAD_TOKEN_BYTES}"
        )

    ttl_days = _to_int(env_mapping.get("DOWNLOAD_TTL_DAYS"), default=7, name="DOWNLOAD_TTL_DAYS")
    if ttl_days < 1:
        raise ValueError("DOWNLOAD_TTL_DAYS must be >= 1")

    max_page_size = max(1, _to_int(env_mapping.get("ORDERS_MAX_PAGE_SIZE"), default=100, name="ORDERS_MAX_PAGE_SIZE"))
    default_page_size = _to_int(
        env_mapping.get("ORDERS_DEFAULT_PAGE_SIZE"), default=20, name="ORDERS_DEFAULT_PAGE_SIZE"
    )
    default_page_size = min(max(1, default_page_size), max_page_size)

    payment_method = (env_mapping.get("DEFAULT_PAYMENT_METHOD") or "alipay").strip() or "alipay"
    if len(payment_method) > MAX_PAYMENT_METHOD_LENGTH:
        raise ValueError(f"DEFAULT_PAYMENT_METHOD must be at most {MAX_PAYMENT_METHOD_LENGTH} characters")

    callback_secret = (env_mapping.get("PAYMENT_CALLBACK_SECRET") or "").strip() or None

    return MarketplaceConfig(
        db_host=env_mapping.get("DB_HOST", "127.0.0.1"),
        db_port=_to_int(env_mapping.get("DB_PORT"), default=5432, name="DB_PORT"),
        db_name=env_mapping.get("DB_NAME", "marketplace_db"),
        db_user=env_mapping.get("DB_USER", "marketplace_user"),
        db_password=env_mapping.get("DB_PASSWORD", "marketplace_pass"),
        db_connect_timeout=_parse_connect_timeout(env_mapping.get("DB_CONNECT_TIMEOUT")),
        db_statement_timeout_ms=max(
            0,
            _to_int(env_mapping.get("DB_STATEMENT_TIMEOUT_MS"), default=5000, name="DB_STATEMENT_TIMEOUT_MS"),
        ),
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        jwt_algorithm=env_mapping.get("JWT_ALGORITHM", "HS256"),
        jwt_exp_minutes=_to_int(
            env_mapping.get("JWT_EXP_MINUTES"), default=60 * 24 * 7, name="JWT_EXP_MINUTES"
        ),
        download_ttl_days=ttl_days,
        download_token_bytes=token_bytes,
        default_payment_method=payment_method,
        payment_callback_secret=callback_secret,
        default_page_size=default_page_size,
        max_page_size=max_page_size,
        cors_allow_origins=_split_origins(env_mapping.get("CORS_ALLOW_ORIGINS")),
    )


__all__ = [
    "MAX_DOWNLOAD_TOKEN_BYTES",
    "MAX_PAYMENT_METHOD_LENGTH",
    "MIN_DOWNLOAD_TOKEN_BYTES",
    "MarketplaceConfig",
    "load_config",
]
