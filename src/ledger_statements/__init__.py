"""Ledger Statements - trial balance and financial statement engine."""

__version__ = "0.1.0"

from ledger_statements.aggregator import LedgerAggregator, LedgerSnapshot, TrialBalance
from ledger_statements.classifier import AccountClassifier
from ledger_statements.config import configure_logging, get_settings, load_statement_policy
from ledger_statements.engine import FinancialStatements, StatementEngine
from ledger_statements.errors import (
    DataQualityReport,
    DataUnavailable,
    SourceUnavailable,
)
from ledger_statements.fallback import CostOfSalesEstimator
from ledger_statements.linkage import KeyedAssetLinkage, NameAssetLinkage
from ledger_statements.statements import (
    BalanceSheetBuilder,
    CashFlowBuilder,
    IncomeStatementBuilder,
)
from ledger_statements.tools import LedgerAPIClient
from ledger_statements.validator import BalanceValidator

__all__ = [
    # Version
    "__version__",
    # Engine
    "StatementEngine",
    "FinancialStatements",
    # Aggregation
    "AccountClassifier",
    "LedgerAggregator",
    "LedgerSnapshot",
    "TrialBalance",
    "CostOfSalesEstimator",
    "NameAssetLinkage",
    "KeyedAssetLinkage",
    # Statements
    "IncomeStatementBuilder",
    "BalanceSheetBuilder",
    "CashFlowBuilder",
    "BalanceValidator",
    # Errors
    "DataUnavailable",
    "SourceUnavailable",
    "DataQualityReport",
    # Tools
    "LedgerAPIClient",
    # Config
    "get_settings",
    "configure_logging",
    "load_statement_policy",
]
