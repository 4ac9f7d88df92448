"""
Transaction classification package.

Turns raw getTransaction payloads into normalized TransferRecords:
balance deltas, currency resolution, source/destination selection, fee.
"""

from solana_th_exporter.classifier.classifier import (
    classify,
    classify_payload,
    describe_direction,
    determine_variant,
    select_dominant,
)
from solana_th_exporter.classifier.deltas import compute_balance_deltas
from solana_th_exporter.classifier.metadata import (
    ChainedResolver,
    KnownMintResolver,
    MetaplexResolver,
    build_default_resolver,
)
from solana_th_exporter.classifier.models import (
    NATIVE_CURRENCY,
    BalanceDelta,
    RawTransaction,
    TransactionVariant,
    TransferRecord,
)

__all__ = [
    "NATIVE_CURRENCY",
    "BalanceDelta",
    "ChainedResolver",
    "KnownMintResolver",
    "MetaplexResolver",
    "RawTransaction",
    "TransactionVariant",
    "TransferRecord",
    "build_default_resolver",
    "classify",
    "classify_payload",
    "compute_balance_deltas",
    "describe_direction",
    "determine_variant",
    "select_dominant",
]
