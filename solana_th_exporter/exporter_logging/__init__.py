"""
Structured logging for Solana TH Exporter.

Use get_logger() in every module for consistent, aggregation-friendly output.
"""

from solana_th_exporter.exporter_logging.logger import bind_wallet, get_logger

__all__ = ["bind_wallet", "get_logger"]
