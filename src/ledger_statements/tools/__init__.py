"""Backend access for the statement engine."""

from ledger_statements.tools.ledger_api import (
    AuthenticationError,
    LedgerAPIClient,
    LedgerAPIError,
    RateLimitError,
)

__all__ = [
    "LedgerAPIClient",
    "LedgerAPIError",
    "AuthenticationError",
    "RateLimitError",
]
