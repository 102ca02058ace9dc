"""Generation of unguessable download capability tokens."""
from __future__ import annotations

import secrets
from typing import Callable

from backend.config import MAX_DOWNLOAD_TOKEN_BYTES, MIN_DOWNLOAD_TOKEN_BYTES

TokenFactory = Callable[[], str]


def _check_size(num_bytes: int) -> None:
    if not MIN_DOWNLOAD_TOKEN_BYTES <= num_bytes <= MAX_DOWNLOAD_TOKEN_BYTES:
        raise ValueError(
            f"num_bytes must be between {MIN_DOWNLOAD_TOKEN_BYTES} and {MAX_DOWNLOAD_TOKEN_BYTES}"
        )


def generate_download_token(num_bytes: int = MIN_DOWNLOAD_TOKEN_BYTES) -> str:
    """Return a hex token of ``2 * num_bytes`` characters from the OS CSPRNG."""

    _check_size(num_bytes)
    return secrets.token_hex(num_bytes)


def token_factory(num_bytes: int = MIN_DOWNLOAD_TOKEN_BYTES) -> TokenFactory:
    _check_size(num_bytes)
    return lambda: generate_download_token(num_bytes)


__all__ = ["TokenFactory", "generate_download_token", "token_factory"]
