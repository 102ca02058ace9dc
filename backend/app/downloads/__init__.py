"""Download grants: issuance after payment and token redemption."""

from .memory import InMemoryDownloadRepository
from .models import DownloadAccess, DownloadGrant, Redemption
from .repository import PostgresDownloadRepository
from .service import DEFAULT_DOWNLOAD_TTL, DownloadGate, DownloadRepository, EntitlementIssuer
from .tokens import generate_download_token, token_factory

__all__ = [
    "DEFAULT_DOWNLOAD_TTL",
    "DownloadAccess",
    "DownloadGate",
    "DownloadGrant",
    "DownloadRepository",
    "EntitlementIssuer",
    "InMemoryDownloadRepository",
    "PostgresDownloadRepository",
    "Redemption",
    "generate_download_token",
    "token_factory",
]
