"""
Export driver: fetcher → classifier → CSV sink.

Runs sequentially, one transaction at a time. Malformed transactions are
logged, counted and skipped; TransientFetchError and OutputWriteError
propagate and end the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from solana_th_exporter.classifier.classifier import classify_payload
from solana_th_exporter.classifier.metadata import SymbolResolver, build_default_resolver
from solana_th_exporter.config.env import mask_rpc_url
from solana_th_exporter.config.settings import Settings
from solana_th_exporter.core.exceptions import MalformedTransaction
from solana_th_exporter.export.csv_sink import CsvRecordSink, record_to_row
from solana_th_exporter.exporter_logging import bind_wallet
from solana_th_exporter.history.fetcher import HistoryFetcher, RpcClient


@dataclass
class ExportSummary:
    """Counts for one run."""

    fetched: int = 0
    """Raw transactions received from the fetcher."""
    exported: int = 0
    """Rows written to CSV."""
    skipped: int = 0
    """Malformed transactions skipped."""
    empty: int = 0
    """Transactions with nothing to report (no movement, no fee)."""
    skipped_signatures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fetched": self.fetched,
            "exported": self.exported,
            "skipped": self.skipped,
            "empty": self.empty,
            "skipped_signatures": list(self.skipped_signatures),
        }


def run_export(
    transactions: Iterable[dict[str, Any]],
    subject_address: str,
    sink: CsvRecordSink,
    resolve_symbol: SymbolResolver | None = None,
) -> ExportSummary:
    """Classify each raw transaction and write it to an open sink, preserving order."""
    logger = bind_wallet(subject_address)
    summary = ExportSummary()
    for payload in transactions:
        summary.fetched += 1
        try:
            record = classify_payload(payload, subject_address, resolve_symbol)
        except MalformedTransaction as e:
            summary.skipped += 1
            summary.skipped_signatures.append(e.signature or "")
            logger.warning("tx_skipped_malformed", signature=e.signature, reason=e.reason)
            continue
        if record is None:
            summary.empty += 1
            logger.debug("tx_skipped_empty", signature=payload.get("signature"))
            continue
        sink.write(record)
        summary.exported += 1
        logger.debug("tx_record", row=record_to_row(record))
    logger.info("export_summary", **summary.to_dict())
    return summary


def export_history(
    settings: Settings,
    address: str,
    operation_limit: int | None = None,
    *,
    client: RpcClient | None = None,
    resolve_symbol: SymbolResolver | None = None,
    output_path: str | Path | None = None,
) -> ExportSummary:
    """
    Fetch the address's history, classify it and write settings.output_path.

    Builds the RPC client and default symbol resolver from settings unless
    given. Raises TransientFetchError / OutputWriteError on fatal failures.
    """
    logger = bind_wallet(address)
    owns_client = client is None
    client = client or RpcClient.from_settings(settings)
    if resolve_symbol is None:
        resolve_symbol = build_default_resolver(client if settings.resolve_token_metadata else None)
    fetcher = HistoryFetcher.from_settings(settings, address, operation_limit, client=client)
    path = Path(output_path) if output_path else settings.output_path

    logger.info(
        "export_started",
        rpc_url=mask_rpc_url(settings.rpc_url),
        operation_limit=operation_limit,
        output=str(path),
    )
    try:
        with CsvRecordSink(path) as sink:
            summary = run_export(fetcher.iter_transactions(), address, sink, resolve_symbol)
    finally:
        if owns_client:
            client.close()
    logger.info("transactions_saved", path=str(path), rows=summary.exported, unavailable=fetcher.unavailable)
    return summary
