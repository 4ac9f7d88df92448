"""
Application settings.

Typed, validated settings for one export run. Values come from keyword
overrides (CLI) first, then environment variables, then defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from solana_th_exporter.config.env import get_solana_rpc_url, load_exporter_env

DEFAULT_OUTPUT_FILE = "transactions.csv"
DEFAULT_SIGNATURES_PAGE_SIZE = 1000
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_DELAY_SEC = 1.0
DEFAULT_MAX_RETRY_DELAY_SEC = 30.0
DEFAULT_COMMITMENT = "confirmed"


@dataclass(frozen=True)
class Settings:
    """Settings for the fetcher, metadata resolver and sink."""

    rpc_url: str
    output_path: Path = Path(DEFAULT_OUTPUT_FILE)
    signatures_page_size: int = DEFAULT_SIGNATURES_PAGE_SIZE
    """getSignaturesForAddress limit per request (1-1000)."""
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_sec: float = DEFAULT_RETRY_DELAY_SEC
    max_retry_delay_sec: float = DEFAULT_MAX_RETRY_DELAY_SEC
    commitment: str = DEFAULT_COMMITMENT
    resolve_token_metadata: bool = True
    """When False, token currencies are labelled with their mint address."""

    def __post_init__(self) -> None:
        if not self.rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if not (1 <= self.signatures_page_size <= 1000):
            raise ValueError("signatures_page_size must be between 1 and 1000")
        if self.request_timeout_sec <= 0:
            raise ValueError("request_timeout_sec must be positive")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_delay_sec < 0 or self.max_retry_delay_sec < self.retry_delay_sec:
            raise ValueError("retry delays must satisfy 0 <= retry_delay_sec <= max_retry_delay_sec")
        if self.commitment not in ("processed", "confirmed", "finalized"):
            raise ValueError(f"unsupported commitment: {self.commitment}")


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def get_settings(
    *,
    rpc_url: str | None = None,
    output_path: str | Path | None = None,
) -> Settings:
    """
    Return settings for the current run.

    Env: SOLANA_RPC_URL / HELIUS_API_KEY / SOLANA_NETWORK (RPC endpoint),
    EXPORTER_PAGE_SIZE, EXPORTER_REQUEST_TIMEOUT_SEC, EXPORTER_MAX_RETRIES,
    EXPORTER_RESOLVE_METADATA. Raises ValueError on invalid values.
    """
    load_exporter_env()
    return Settings(
        rpc_url=(rpc_url or "").strip() or get_solana_rpc_url(),
        output_path=Path(output_path) if output_path else Path(DEFAULT_OUTPUT_FILE),
        signatures_page_size=int(os.getenv("EXPORTER_PAGE_SIZE", str(DEFAULT_SIGNATURES_PAGE_SIZE))),
        request_timeout_sec=float(os.getenv("EXPORTER_REQUEST_TIMEOUT_SEC", str(DEFAULT_REQUEST_TIMEOUT_SEC))),
        max_retries=int(os.getenv("EXPORTER_MAX_RETRIES", str(DEFAULT_MAX_RETRIES))),
        resolve_token_metadata=_env_bool("EXPORTER_RESOLVE_METADATA", True),
    )
