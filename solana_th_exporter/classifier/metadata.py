"""
Token symbol resolution for SPL mints.

Resolvers are plain callables `mint -> symbol` injected into the
classifier. Failures raise MetadataResolutionFailure; the classifier then
labels the currency with the mint address. No persistent cache: every call
resolves again.

Default chain: well-known mints table, then the Metaplex Token Metadata
account (PDA ["metadata", program_id, mint]) fetched via getAccountInfo.
"""

from __future__ import annotations

import base64
import struct
from typing import Callable, Mapping, Sequence

from solders.pubkey import Pubkey

from solana_th_exporter.core.exceptions import MetadataResolutionFailure, TransientFetchError
from solana_th_exporter.exporter_logging import get_logger
from solana_th_exporter.history.fetcher import RpcClient

logger = get_logger(__name__)

SymbolResolver = Callable[[str], str]

METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
METADATA_SEED = b"metadata"

WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
KNOWN_MINT_SYMBOLS: dict[str, str] = {
    WSOL_MINT: "WSOL",
    USDC_MINT: "USDC",
    USDT_MINT: "USDT",
}

# Metadata account layout: key (u8), update_authority (32), mint (32), then borsh strings
_STRINGS_OFFSET = 1 + 32 + 32


class KnownMintResolver:
    """Static mint -> symbol table."""

    def __init__(self, symbols: Mapping[str, str] | None = None) -> None:
        self._symbols = dict(KNOWN_MINT_SYMBOLS if symbols is None else symbols)

    def __call__(self, mint: str) -> str:
        symbol = self._symbols.get(mint)
        if not symbol:
            raise MetadataResolutionFailure(mint, "not a well-known mint")
        return symbol


def metadata_pda(mint: str, program_id: str = METADATA_PROGRAM_ID) -> Pubkey:
    """Derive the Metaplex metadata account address for a mint."""
    program = Pubkey.from_string(program_id)
    mint_key = Pubkey.from_string(mint)
    pda, _bump = Pubkey.find_program_address(
        [METADATA_SEED, bytes(program), bytes(mint_key)], program
    )
    return pda


def _read_borsh_string(data: bytes, offset: int) -> tuple[str, int]:
    if offset + 4 > len(data):
        raise ValueError("truncated string length")
    (length,) = struct.unpack_from("<I", data, offset)
    start = offset + 4
    end = start + length
    if end > len(data):
        raise ValueError("truncated string body")
    text = data[start:end].decode("utf-8", errors="replace")
    return text.rstrip("\x00").strip(), end


def decode_metadata_symbol(data: bytes) -> str:
    """Extract the symbol from raw Metaplex metadata account data."""
    _name, offset = _read_borsh_string(data, _STRINGS_OFFSET)
    symbol, _ = _read_borsh_string(data, offset)
    return symbol


class MetaplexResolver:
    """Resolve a mint's symbol from its on-chain Metaplex metadata account."""

    def __init__(self, client: RpcClient, program_id: str = METADATA_PROGRAM_ID) -> None:
        self._client = client
        self._program_id = program_id

    def __call__(self, mint: str) -> str:
        try:
            pda = metadata_pda(mint, self._program_id)
        except Exception as e:
            raise MetadataResolutionFailure(mint, f"invalid mint: {e}") from e
        try:
            result = self._client.call(
                "getAccountInfo", [str(pda), {"encoding": "base64"}]
            )
        except TransientFetchError as e:
            raise MetadataResolutionFailure(mint, str(e)) from e

        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise MetadataResolutionFailure(mint, "no metadata account")
        data_field = value.get("data")
        if not isinstance(data_field, list) or not data_field:
            raise MetadataResolutionFailure(mint, "unexpected account data encoding")
        try:
            symbol = decode_metadata_symbol(base64.b64decode(data_field[0]))
        except (TypeError, ValueError) as e:
            raise MetadataResolutionFailure(mint, f"undecodable metadata: {e}") from e
        if not symbol:
            raise MetadataResolutionFailure(mint, "empty symbol")
        return symbol


class ChainedResolver:
    """Try resolvers in order; first symbol wins."""

    def __init__(self, resolvers: Sequence[SymbolResolver]) -> None:
        if not resolvers:
            raise ValueError("resolvers must be non-empty")
        self._resolvers = list(resolvers)

    def __call__(self, mint: str) -> str:
        reasons: list[str] = []
        for resolver in self._resolvers:
            try:
                return resolver(mint)
            except MetadataResolutionFailure as e:
                reasons.append(e.reason)
        raise MetadataResolutionFailure(mint, "; ".join(reasons))


def build_default_resolver(client: RpcClient | None) -> SymbolResolver:
    """Known mints first, then Metaplex metadata when an RPC client is given."""
    if client is None:
        return KnownMintResolver()
    return ChainedResolver([KnownMintResolver(), MetaplexResolver(client)])
