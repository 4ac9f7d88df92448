"""
Configuration management for the exporter.

Loads and validates settings from environment variables, .env and CLI
overrides. Exposes a single source of truth for run configuration.
"""

from solana_th_exporter.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
