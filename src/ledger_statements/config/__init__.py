"""Configuration module for the statement engine."""

from ledger_statements.config.logging import configure_logging
from ledger_statements.config.policy_loader import load_statement_policy
from ledger_statements.config.settings import FlatSettings, get_settings

__all__ = [
    "FlatSettings",
    "get_settings",
    "configure_logging",
    "load_statement_policy",
]
