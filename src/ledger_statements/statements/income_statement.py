"""Income statement (profit and loss) builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from ledger_statements.aggregator import TrialBalance
from ledger_statements.classifier import AccountClassifier
from ledger_statements.models import (
    ZERO,
    AccountType,
    LineKind,
    Period,
    StatementLine,
    TrialBalanceRow,
)
from ledger_statements.ordering import StatementPolicy
from ledger_statements.statements.base import StatementWriter

logger = structlog.get_logger(__name__)

FALLBACK_COST_OF_SALES_LABEL = "Cost of Sales"


@dataclass(frozen=True)
class IncomeStatement:
    company_id: str
    period: Period
    lines: tuple[StatementLine, ...]
    total_revenue: Decimal
    total_cost_of_sales: Decimal
    gross_profit: Decimal
    total_operating_expenses: Decimal
    net_profit: Decimal
    used_fallback: bool


@dataclass(frozen=True)
class IncomePartition:
    """Mutually exclusive row sets of the income statement sections.

    ``disposals`` holds rows that are cost of sales only through the
    disposal allow-list; they join cost of sales only alongside real
    trading costs.
    """

    revenue: list[TrialBalanceRow]
    cost_of_sales: list[TrialBalanceRow]
    operating_expenses: list[TrialBalanceRow]
    disposals: list[TrialBalanceRow] = field(default_factory=list)

    def without_cost_of_sales(self) -> IncomePartition:
        """Partition used with the fallback estimate: disposals return to their type."""
        revenue = self.revenue + [r for r in self.disposals if r.type == AccountType.REVENUE]
        operating = self.operating_expenses + [
            r for r in self.disposals if r.type != AccountType.REVENUE
        ]
        return IncomePartition(revenue, [], operating)


class IncomeStatementBuilder:
    """Builds revenue, cost of sales and operating expense sections."""

    def __init__(self, policy: StatementPolicy, classifier: AccountClassifier | None = None):
        self._policy = policy
        self._classifier = classifier or AccountClassifier(policy)
        self._logger = logger.bind(component="income_statement")

    def partition(self, trial_balance: TrialBalance) -> IncomePartition:
        revenue, cost_of_sales, operating, disposals = [], [], [], []
        for row in trial_balance.visible_of_type(AccountType.REVENUE, AccountType.EXPENSE):
            if self._classifier.is_direct_cost(row):
                cost_of_sales.append(row)
            elif self._classifier.is_cost_of_sales(row):
                disposals.append(row)
            elif row.type == AccountType.REVENUE:
                revenue.append(row)
            else:
                operating.append(row)
        return IncomePartition(revenue, cost_of_sales, operating, disposals)

    def needs_fallback(self, trial_balance: TrialBalance) -> bool:
        """True when the trial balance has no real cost-of-sales rows.

        Disposal gains and losses do not count as real cost of sales.
        """
        return not self.partition(trial_balance).cost_of_sales

    @staticmethod
    def _cost_amount(row: TrialBalanceRow) -> Decimal:
        # Income-type rows inside cost of sales reduce it
        return -row.balance if row.type == AccountType.REVENUE else row.balance

    def build(
        self,
        trial_balance: TrialBalance,
        fallback_cost_of_sales: Decimal | None = None,
    ) -> IncomeStatement:
        """Build the statement.

        Args:
            trial_balance: Period trial balance.
            fallback_cost_of_sales: Estimate used only when no cost-of-sales
                rows exist; ignored otherwise.
        """
        parts = self.partition(trial_balance)
        used_fallback = not parts.cost_of_sales
        if used_fallback:
            parts = parts.without_cost_of_sales()
        writer = StatementWriter()

        writer.header("REVENUE")
        pinned, rest = self._policy.revenue.split(parts.revenue)
        total_revenue = sum((writer.row(row, kind=LineKind.INCOME) for _, row in pinned), ZERO)
        total_revenue += writer.rows(rest, kind=LineKind.INCOME)
        writer.subtotal("Total Revenue", total_revenue)
        writer.spacer()

        writer.header("COST OF SALES")
        if used_fallback:
            estimate = fallback_cost_of_sales if fallback_cost_of_sales is not None else ZERO
            total_cost = writer.item(
                LineKind.EXPENSE,
                FALLBACK_COST_OF_SALES_LABEL,
                estimate,
                account_code=self._policy.fallback_cost_of_sales_code,
                force=True,
            )
            self._logger.info(
                "cost_of_sales_fallback_used",
                company_id=trial_balance.company_id,
                estimate=str(estimate),
            )
        else:
            total_cost = self._write_cost_of_sales(
                writer, trial_balance, parts.cost_of_sales + parts.disposals
            )
        writer.subtotal("Total Cost of Sales", total_cost)
        gross_profit = total_revenue - total_cost
        writer.subtotal("Gross Profit", gross_profit)
        writer.spacer()

        writer.header("OPERATING EXPENSES")
        total_operating = writer.rows(
            self._policy.operating_expenses.order(parts.operating_expenses),
            kind=LineKind.EXPENSE,
        )
        writer.subtotal("Total Operating Expenses", total_operating)
        writer.spacer()

        net_profit = total_revenue - total_cost - total_operating
        writer.final("Net Profit / (Loss)", net_profit)

        return IncomeStatement(
            company_id=trial_balance.company_id,
            period=trial_balance.period,
            lines=tuple(writer.lines),
            total_revenue=total_revenue,
            total_cost_of_sales=total_cost,
            gross_profit=gross_profit,
            total_operating_expenses=total_operating,
            net_profit=net_profit,
            used_fallback=used_fallback,
        )

    def _write_cost_of_sales(
        self,
        writer: StatementWriter,
        trial_balance: TrialBalance,
        rows: list[TrialBalanceRow],
    ) -> Decimal:
        total = ZERO
        pinned_codes = set(self._policy.cost_of_sales.codes)

        for pin in self._policy.cost_of_sales.pins:
            row = trial_balance.row_for_code(pin.code)
            if row is not None and not self._classifier.is_cost_of_sales(row):
                row = None
            balance = row.balance if row is not None else ZERO
            total += writer.item(
                LineKind.EXPENSE,
                pin.label or (row.name if row is not None else pin.code),
                -balance if pin.negate else balance,
                account_id=row.account_id if row is not None else None,
                account_code=pin.code,
                force=pin.always,
            )

        for row in rows:
            if row.code in pinned_codes:
                continue
            total += writer.row(row, amount=self._cost_amount(row), kind=LineKind.EXPENSE)
        return total
