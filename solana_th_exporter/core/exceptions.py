"""
Application-level exceptions.

Only TransientFetchError (after retries) and OutputWriteError end a run.
MalformedTransaction and MetadataResolutionFailure are per-transaction and
handled where they occur.
"""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for exporter errors."""


class InvalidAddressError(ExporterError, ValueError):
    """Wallet address is not a valid base58 Solana public key."""

    def __init__(self, address: str) -> None:
        super().__init__(f"Invalid Solana address: {address}")
        self.address = address


class TransientFetchError(ExporterError):
    """RPC or network failure while fetching history; retries exhausted."""

    def __init__(self, method: str, message: str, attempts: int = 0) -> None:
        super().__init__(f"{method} failed after {attempts} attempt(s): {message}")
        self.method = method
        self.attempts = attempts


class MalformedTransaction(ExporterError):
    """A raw transaction lacks data the classifier needs; the transaction is skipped."""

    def __init__(self, signature: str | None, reason: str) -> None:
        super().__init__(f"Malformed transaction {signature or '<unknown>'}: {reason}")
        self.signature = signature
        self.reason = reason


class MetadataResolutionFailure(ExporterError):
    """Token metadata could not be resolved; callers fall back to the mint address."""

    def __init__(self, mint: str, reason: str) -> None:
        super().__init__(f"Metadata unavailable for mint {mint}: {reason}")
        self.mint = mint
        self.reason = reason


class OutputWriteError(ExporterError):
    """The CSV destination cannot be written."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = path
        self.reason = reason
