"""
Transaction classifier: raw transaction to one normalized TransferRecord.

Steps: balance deltas from pre/post snapshots (fee added back on the fee
payer), variant selection, source = most negative delta, destination = most
positive delta, currency labels via the injected symbol resolver, fee read
from meta.fee. Multi-party transactions are reported globally, not filtered
to the queried wallet. No state is kept between calls.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from solana_th_exporter.classifier.deltas import compute_balance_deltas
from solana_th_exporter.classifier.metadata import SymbolResolver
from solana_th_exporter.classifier.models import (
    NATIVE_CURRENCY,
    BalanceDelta,
    RawTransaction,
    TransactionVariant,
    TransferRecord,
    format_amount,
    lamports_to_sol,
    timestamp_from_block_time,
)
from solana_th_exporter.core.exceptions import MetadataResolutionFailure
from solana_th_exporter.exporter_logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal(0)

DIRECTION_TOKEN_SWAP = "Token Swap"
DIRECTION_TOKEN_PURCHASE = "Token Purchase"
DIRECTION_SOL_DEPOSIT = "SOL Deposit"
DIRECTION_SOL_WITHDRAWAL = "SOL Withdrawal"
DIRECTION_TOKEN_DEPOSIT = "Token Deposit"
DIRECTION_TOKEN_WITHDRAWAL = "Token Withdrawal"
DIRECTION_UNKNOWN = "Unknown"


def determine_variant(deltas: Iterable[BalanceDelta]) -> TransactionVariant:
    """
    Closed mapping from the delta set to a variant.

    No deltas -> FEE_ONLY; one currency over at most two accounts -> NATIVE_TRANSFER
    or TOKEN_TRANSFER; everything else -> MULTI_PARTY. MALFORMED is never
    returned here: structural failures raise before deltas exist.
    """
    deltas = list(deltas)
    if not deltas:
        return TransactionVariant.FEE_ONLY
    currencies = {d.currency for d in deltas}
    accounts = {d.account for d in deltas}
    if len(currencies) == 1 and len(accounts) <= 2:
        if NATIVE_CURRENCY in currencies:
            return TransactionVariant.NATIVE_TRANSFER
        return TransactionVariant.TOKEN_TRANSFER
    return TransactionVariant.MULTI_PARTY


def select_dominant(deltas: Iterable[BalanceDelta], subject_address: str) -> BalanceDelta | None:
    """
    Largest-magnitude delta. Ties: subject_address first, then smaller
    account, then smaller currency identifier.
    """
    candidates = list(deltas)
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda d: (-abs(d.amount), d.account != subject_address, d.account, d.currency),
    )


def resolve_currency(currency: str, resolve_symbol: SymbolResolver | None) -> str:
    """Native tag as-is; token mints via resolver, falling back to the mint address."""
    if currency == NATIVE_CURRENCY or resolve_symbol is None:
        return currency
    try:
        symbol = resolve_symbol(currency)
    except MetadataResolutionFailure as e:
        logger.debug("metadata_fallback_to_mint", mint=currency, reason=e.reason)
        return currency
    except Exception as e:
        # Any resolver error falls back to the mint
        logger.warning("metadata_fallback_to_mint", mint=currency, reason=repr(e))
        return currency
    return symbol.strip() if isinstance(symbol, str) and symbol.strip() else currency


def describe_direction(deltas: Iterable[BalanceDelta], subject_address: str) -> str:
    """Human label for the subject's movement (SOL vs token); used in logs."""
    sol = ZERO
    token = ZERO
    for d in deltas:
        if d.account != subject_address:
            continue
        if d.is_native:
            sol += d.amount
        else:
            token += d.amount
    if sol > 0 and token < 0:
        return DIRECTION_TOKEN_SWAP
    if sol < 0 and token > 0:
        return DIRECTION_TOKEN_PURCHASE
    if token == 0 and sol > 0:
        return DIRECTION_SOL_DEPOSIT
    if token == 0 and sol < 0:
        return DIRECTION_SOL_WITHDRAWAL
    if sol == 0 and token > 0:
        return DIRECTION_TOKEN_DEPOSIT
    if sol == 0 and token < 0:
        return DIRECTION_TOKEN_WITHDRAWAL
    return DIRECTION_UNKNOWN


def classify(
    raw: RawTransaction,
    subject_address: str,
    resolve_symbol: SymbolResolver | None = None,
) -> TransferRecord | None:
    """
    Classify one transaction into a TransferRecord.

    Returns None only when there is nothing to report (no balance movement
    and no fee). Raises MalformedTransaction when snapshots are incomplete.
    """
    deltas = compute_balance_deltas(raw)
    variant = determine_variant(deltas)
    if variant is TransactionVariant.FEE_ONLY and raw.fee == 0:
        return None

    outflow = select_dominant((d for d in deltas if d.amount < 0), subject_address)
    inflow = select_dominant((d for d in deltas if d.amount > 0), subject_address)

    record = TransferRecord(
        timestamp=timestamp_from_block_time(raw.block_time),
        tx_hash=raw.signature or "",
        source=outflow.account if outflow else "",
        destination=inflow.account if inflow else "",
        sent_amount=abs(outflow.amount) if outflow else ZERO,
        sent_currency=resolve_currency(outflow.currency, resolve_symbol) if outflow else "",
        received_amount=inflow.amount if inflow else ZERO,
        received_currency=resolve_currency(inflow.currency, resolve_symbol) if inflow else "",
        fee_amount=lamports_to_sol(raw.fee),
        fee_currency=NATIVE_CURRENCY,
        variant=variant,
    )
    logger.info(
        "tx_classified",
        signature=record.tx_hash,
        variant=variant.value,
        direction=describe_direction(deltas, subject_address),
        delta_count=len(deltas),
        sent=f"{format_amount(record.sent_amount)} {record.sent_currency}".strip(),
        received=f"{format_amount(record.received_amount)} {record.received_currency}".strip(),
        failed=raw.err is not None,
    )
    return record


def classify_payload(
    payload: dict[str, Any],
    subject_address: str,
    resolve_symbol: SymbolResolver | None = None,
) -> TransferRecord | None:
    """Parse a getTransaction result and classify it. Raises MalformedTransaction."""
    raw = RawTransaction.from_rpc(payload)
    return classify(raw, subject_address, resolve_symbol)

