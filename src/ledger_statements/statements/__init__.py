"""Financial statement builders."""

from ledger_statements.statements.balance_sheet import BalanceSheet, BalanceSheetBuilder
from ledger_statements.statements.cash_flow import (
    CashFlowBuilder,
    CashFlowStatement,
    CashFlowStrategy,
)
from ledger_statements.statements.income_statement import (
    IncomeStatement,
    IncomeStatementBuilder,
)

__all__ = [
    "BalanceSheet",
    "BalanceSheetBuilder",
    "CashFlowBuilder",
    "CashFlowStatement",
    "CashFlowStrategy",
    "IncomeStatement",
    "IncomeStatementBuilder",
]
