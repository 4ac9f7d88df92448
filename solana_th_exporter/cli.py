"""
Command-line entry point.

Usage:
    solana-th-exporter -a <Solana Wallet Address> [-o <operation limit>] [--output transactions.csv]

Env: SOLANA_RPC_URL or HELIUS_API_KEY (+ SOLANA_NETWORK), LOG_LEVEL, LOG_FORMAT.
Exit codes: 0 success, 1 fetch or write failure, 2 invalid arguments.
"""

from __future__ import annotations

import argparse
import sys

from solana_th_exporter.config.settings import DEFAULT_OUTPUT_FILE, get_settings
from solana_th_exporter.core.exceptions import (
    InvalidAddressError,
    OutputWriteError,
    TransientFetchError,
)
from solana_th_exporter.exporter_logging import get_logger
from solana_th_exporter.pipeline import export_history
from solana_th_exporter.utils.wallet_utils import validate_address

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an integer: {value}") from e
    if n < 0:
        raise argparse.ArgumentTypeError("operation limit must be >= 0")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="solana-th-exporter",
        description="Export Solana wallet transaction history to CSV",
    )
    ap.add_argument("-a", "--address", required=True, help="Solana wallet address")
    ap.add_argument(
        "-o",
        "--operation-limit",
        type=_non_negative_int,
        default=None,
        help="Max number of transactions to fetch (default: unlimited)",
    )
    ap.add_argument("--output", default=DEFAULT_OUTPUT_FILE, help="Output CSV file")
    ap.add_argument("--rpc-url", default=None, help="Solana RPC endpoint (overrides SOLANA_RPC_URL)")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        address = validate_address(args.address)
    except InvalidAddressError as e:
        logger.error("cli_invalid_address", address=args.address)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        settings = get_settings(rpc_url=args.rpc_url, output_path=args.output)
    except ValueError as e:
        logger.error("cli_config_error", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    logger.info("cli_fetching_history", wallet_id=address, operation_limit=args.operation_limit)
    try:
        summary = export_history(settings, address, args.operation_limit)
    except TransientFetchError as e:
        logger.error("cli_fetch_failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except OutputWriteError as e:
        logger.error("cli_write_failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return EXIT_FAILURE

    print(
        f"Exported {summary.exported} transaction(s) to {settings.output_path} "
        f"(fetched {summary.fetched}, skipped {summary.skipped} malformed, {summary.empty} empty)"
    )
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
