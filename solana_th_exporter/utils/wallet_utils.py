"""Wallet address validation utilities."""

from solders.pubkey import Pubkey

from solana_th_exporter.core.exceptions import InvalidAddressError


def is_valid_wallet(w: str) -> bool:
    """Return True if w is a valid Solana wallet (Pubkey) address."""
    try:
        Pubkey.from_string(w.strip())
        return True
    except Exception:
        return False


def validate_address(address: str) -> str:
    """Return the normalized base58 address; raise InvalidAddressError otherwise."""
    try:
        return str(Pubkey.from_string(address.strip()))
    except Exception as e:
        raise InvalidAddressError(address) from e
