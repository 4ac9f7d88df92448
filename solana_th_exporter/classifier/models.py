"""
Data models for transaction classification.

RawTransaction is a typed view over a getTransaction result (JSON encoding).
BalanceDelta is derived per (account, currency) pair. TransferRecord is the
one-row-per-transaction output written to CSV.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from solana_th_exporter.core.exceptions import MalformedTransaction

NATIVE_CURRENCY = "SOL"
NATIVE_DECIMALS = 9
LAMPORTS_PER_SOL = 1_000_000_000
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TransactionVariant(str, Enum):
    NATIVE_TRANSFER = "native_transfer"
    TOKEN_TRANSFER = "token_transfer"
    MULTI_PARTY = "multi_party"
    FEE_ONLY = "fee_only"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class CompiledInstruction:
    """Top-level or inner instruction: program index and account indexes into account_keys."""

    program_id_index: int | None
    accounts: tuple[int, ...]


@dataclass(frozen=True)
class TokenBalance:
    """One entry of meta.preTokenBalances / meta.postTokenBalances."""

    account_index: int
    mint: str
    owner: str | None
    amount: int
    """Raw integer amount (uiTokenAmount.amount)."""
    decimals: int


@dataclass(frozen=True)
class RawTransaction:
    """
    Typed snapshot of one fetched transaction.

    Balances are absolute pre/post snapshots; deltas are computed by the
    classifier, never stored here.
    """

    signature: str | None
    block_time: int | None
    slot: int | None
    fee: int
    """Fee in lamports, read from meta.fee."""
    account_keys: tuple[str, ...]
    pre_balances: tuple[int, ...]
    post_balances: tuple[int, ...]
    pre_token_balances: tuple[TokenBalance, ...] = ()
    post_token_balances: tuple[TokenBalance, ...] = ()
    instructions: tuple[CompiledInstruction, ...] = ()
    """Top-level instructions followed by all inner instructions."""
    err: Any = None

    @property
    def fee_payer(self) -> str | None:
        return self.account_keys[0] if self.account_keys else None

    @classmethod
    def from_rpc(cls, payload: dict[str, Any]) -> "RawTransaction":
        """
        Build from a getTransaction result. Raises MalformedTransaction when
        the transaction, message, meta, fee or balance arrays are missing.
        """
        if not isinstance(payload, dict):
            raise MalformedTransaction(None, "payload is not an object")
        signature = _signature_of(payload)
        tx_obj = payload.get("transaction")
        if not isinstance(tx_obj, dict):
            raise MalformedTransaction(signature, "missing or unsupported transaction encoding")
        message = tx_obj.get("message")
        if not isinstance(message, dict):
            raise MalformedTransaction(signature, "missing transaction message")
        meta = payload.get("meta")
        if not isinstance(meta, dict):
            raise MalformedTransaction(signature, "missing transaction metadata")

        account_keys = _get_account_keys(message, meta)
        if not account_keys:
            raise MalformedTransaction(signature, "no account keys")

        fee = meta.get("fee")
        pre = meta.get("preBalances")
        post = meta.get("postBalances")
        if fee is None:
            raise MalformedTransaction(signature, "missing fee")
        if not isinstance(pre, list) or not isinstance(post, list):
            raise MalformedTransaction(signature, "missing native balance snapshots")

        try:
            instructions = [
                _parse_instruction(ix) for ix in message.get("instructions") or []
            ]
            for inner_block in meta.get("innerInstructions") or []:
                instructions.extend(
                    _parse_instruction(ix) for ix in inner_block.get("instructions") or []
                )
            pre_tokens = tuple(_parse_token_balance(b) for b in meta.get("preTokenBalances") or [])
            post_tokens = tuple(_parse_token_balance(b) for b in meta.get("postTokenBalances") or [])
            pre_balances = tuple(int(b) for b in pre)
            post_balances = tuple(int(b) for b in post)
            fee_lamports = int(fee)
            slot = payload.get("slot")
            slot = int(slot) if slot is not None else None
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedTransaction(signature, f"unparseable field: {e}") from e

        block_time = payload.get("blockTime")
        if block_time is not None:
            try:
                block_time = int(block_time)
            except (TypeError, ValueError):
                block_time = None

        return cls(
            signature=signature,
            block_time=block_time,
            slot=slot,
            fee=fee_lamports,
            account_keys=tuple(account_keys),
            pre_balances=pre_balances,
            post_balances=post_balances,
            pre_token_balances=pre_tokens,
            post_token_balances=post_tokens,
            instructions=tuple(instructions),
            err=meta.get("err"),
        )


@dataclass(frozen=True)
class BalanceDelta:
    """Signed post - pre movement for one (account, currency) pair, in currency units."""

    account: str
    currency: str
    """NATIVE_CURRENCY or a token mint address."""
    amount: Decimal

    @property
    def is_native(self) -> bool:
        return self.currency == NATIVE_CURRENCY


@dataclass(frozen=True)
class TransferRecord:
    """
    Normalized transfer: one per exported transaction.

    Amounts are non-negative magnitudes; the role (sent/received) carries
    the sign. fee_currency is always the native currency.
    """

    timestamp: datetime
    tx_hash: str
    source: str
    destination: str
    sent_amount: Decimal
    sent_currency: str
    received_amount: Decimal
    received_currency: str
    fee_amount: Decimal
    fee_currency: str = NATIVE_CURRENCY
    variant: TransactionVariant | None = field(default=None, compare=False)
    """Classification shape; informational only, not exported."""

    @property
    def date(self) -> str:
        return format_date(self.timestamp)


def format_date(ts: datetime) -> str:
    """Render a UTC timestamp as YYYY-MM-DD HH:MM:SS."""
    return ts.astimezone(timezone.utc).strftime(DATE_FORMAT)


def parse_date(value: str) -> datetime:
    return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)


def timestamp_from_block_time(block_time: int | None) -> datetime:
    """Unix seconds to aware UTC datetime; missing or out-of-range values map to the epoch."""
    if block_time is None:
        return EPOCH
    try:
        return datetime.fromtimestamp(block_time, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EPOCH


def format_amount(amount: Decimal) -> str:
    """Plain decimal string: no exponent, no thousands separators, trailing zeros stripped."""
    if amount == 0:
        return "0"
    return format(amount.normalize(), "f")


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports).scaleb(-NATIVE_DECIMALS)


def _signature_of(payload: dict[str, Any]) -> str | None:
    sig = payload.get("signature")
    if isinstance(sig, str) and sig:
        return sig
    tx_obj = payload.get("transaction")
    sigs = tx_obj.get("signatures") if isinstance(tx_obj, dict) else None
    if isinstance(sigs, list) and sigs and isinstance(sigs[0], str):
        return sigs[0]
    return None


def _get_account_keys(
    message: dict[str, Any],
    meta: dict[str, Any] | None = None,
) -> list[str]:
    """
    Resolve accountKeys to a list of base58 strings (handles json vs jsonParsed).
    For versioned transactions, appends meta.loadedAddresses (writable + readonly).
    """
    keys = message.get("accountKeys")
    if not keys:
        return []
    if isinstance(keys[0], str):
        out = list(keys)
    else:
        out = [k.get("pubkey", "") for k in keys if isinstance(k, dict)]
    loaded = (meta or {}).get("loadedAddresses") or {}
    for role in ("writable", "readonly"):
        for addr in loaded.get(role) or []:
            out.append(addr if isinstance(addr, str) else getattr(addr, "pubkey", ""))
    return out


def _parse_instruction(ix: dict[str, Any]) -> CompiledInstruction:
    program_idx = ix.get("programIdIndex")
    return CompiledInstruction(
        program_id_index=int(program_idx) if program_idx is not None else None,
        accounts=tuple(int(a) for a in ix.get("accounts") or [] if isinstance(a, int)),
    )


def _parse_token_balance(entry: dict[str, Any]) -> TokenBalance:
    ui = entry["uiTokenAmount"]
    owner = entry.get("owner")
    return TokenBalance(
        account_index=int(entry["accountIndex"]),
        mint=str(entry["mint"]),
        owner=owner if isinstance(owner, str) and owner else None,
        amount=int(ui["amount"]),
        decimals=int(ui["decimals"]),
    )
