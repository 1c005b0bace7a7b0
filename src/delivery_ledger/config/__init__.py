"""Configuration module for the delivery ledger core."""

from delivery_ledger.config.logging import bind_run_context, configure_logging
from delivery_ledger.config.settings import LedgerSettings, get_settings

__all__ = ["LedgerSettings", "get_settings", "configure_logging", "bind_run_context"]
