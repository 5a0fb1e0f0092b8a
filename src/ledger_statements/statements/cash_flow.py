"""Cash flow statement builder.

Prefers a pre-computed aggregate from the backend. When none is available
(or the backend returns an all-zero result) the statement is derived from
ledger movements with the indirect method, classifying accounts by name.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from enum import Enum

import structlog

from ledger_statements.aggregator import LedgerAggregator, LedgerSnapshot
from ledger_statements.classifier import AccountClassifier
from ledger_statements.errors import DataQualityKind, DataQualityReport
from ledger_statements.models import (
    ZERO,
    Account,
    AccountType,
    CashFlowAggregate,
    LedgerLine,
    LineKind,
    Period,
    StatementLine,
)
from ledger_statements.ordering import StatementPolicy
from ledger_statements.statements.base import ITEM_THRESHOLD, StatementWriter

logger = structlog.get_logger(__name__)

PPE_KEYWORDS = ("property", "plant", "equipment", "machinery", "vehicle")
INTANGIBLE_KEYWORDS = ("intangible", "software", "patent", "goodwill")
INVESTING_KEYWORDS = (
    PPE_KEYWORDS
    + INTANGIBLE_KEYWORDS
    + ("fixed asset", "furniture", "building", "land", "investment")
)
FINANCING_KEYWORDS = ("loan", "borrow", "debenture", "capital")
LOAN_KEYWORDS = ("loan", "borrow", "debenture", "note payable")

LOAN_FINANCED_LABEL = "Loan-financed asset acquisitions"


class CashFlowStrategy(str, Enum):
    AGGREGATE = "aggregate"
    LEDGER = "ledger"


@dataclass(frozen=True)
class CashFlowStatement:
    company_id: str
    period: Period
    lines: tuple[StatementLine, ...]
    strategy: CashFlowStrategy
    operating: Decimal
    investing: Decimal
    financing: Decimal
    net_change: Decimal
    opening_cash: Decimal
    closing_cash: Decimal
    loan_financed_acquisitions: Decimal = ZERO


@dataclass(frozen=True)
class LedgerCashFlows:
    """Indirect-method components derived from ledger movements."""

    net_profit: Decimal
    depreciation: Decimal
    receivables_change: Decimal
    payables_change: Decimal
    investing_movement: Decimal
    financing: Decimal
    opening_cash: Decimal

    @property
    def operating(self) -> Decimal:
        return (
            self.net_profit
            + self.depreciation
            - self.receivables_change
            + self.payables_change
        )

    @property
    def investing(self) -> Decimal:
        # A debit movement on an investment account is a purchase, i.e. cash out
        return -self.investing_movement


def _has_keyword(name: str, keywords: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in keywords)


def _flow_kind(amount: Decimal) -> LineKind:
    return LineKind.INCOME if amount >= 0 else LineKind.EXPENSE


class CashFlowBuilder:
    """Builds the cash flow statement from an aggregate or from ledger lines."""

    def __init__(
        self,
        policy: StatementPolicy,
        classifier: AccountClassifier | None = None,
        reclassify_loan_financed: bool = False,
    ):
        self._policy = policy
        self._classifier = classifier or AccountClassifier(policy)
        self._reclassify_loan_financed = reclassify_loan_financed
        self._logger = logger.bind(component="cash_flow")

    # === Account heuristics ===

    def _is_investment(self, account: Account) -> bool:
        if account.type != AccountType.ASSET or self._classifier.is_accumulated(account):
            return False
        return self._classifier.is_fixed_asset(account) or _has_keyword(
            account.name, INVESTING_KEYWORDS
        )

    def _is_financing(self, account: Account) -> bool:
        return account.type in (AccountType.LIABILITY, AccountType.EQUITY) and _has_keyword(
            account.name, FINANCING_KEYWORDS
        )

    def _is_cash(self, account: Account) -> bool:
        return account.type == AccountType.ASSET and self._classifier.is_bank_or_cash(account)

    # === Ledger strategy ===

    def ledger_flows(
        self,
        accounts: Sequence[Account],
        period_lines: Iterable[LedgerLine],
        prior_lines: Iterable[LedgerLine] = (),
    ) -> LedgerCashFlows:
        """Compute indirect-method components from in-period and prior lines."""
        by_id = {account.id: account for account in accounts}
        income = expense = depreciation = ZERO
        receivables = payables = investing = financing = ZERO

        for line in period_lines:
            account = by_id.get(line.account_id)
            if account is None:
                continue
            name = account.name.lower()
            if account.type == AccountType.REVENUE:
                income += line.credit - line.debit
            elif account.type == AccountType.EXPENSE:
                expense += line.net_debit
                if "depreciation" in name:
                    depreciation += line.net_debit
            if account.type == AccountType.ASSET and "receivable" in name:
                receivables += line.net_debit
            if account.type == AccountType.LIABILITY and "payable" in name:
                payables += line.credit - line.debit
            if self._is_investment(account):
                investing += line.net_debit
            if self._is_financing(account):
                financing += line.credit - line.debit

        opening_cash = ZERO
        for line in prior_lines:
            account = by_id.get(line.account_id)
            if account is not None and self._is_cash(account):
                opening_cash += line.net_debit

        return LedgerCashFlows(
            net_profit=income - expense,
            depreciation=depreciation,
            receivables_change=receivables,
            payables_change=payables,
            investing_movement=investing,
            financing=financing,
            opening_cash=opening_cash,
        )

    def loan_financed_acquisitions(
        self, accounts: Sequence[Account], period_lines: Iterable[LedgerLine]
    ) -> Decimal:
        """Asset purchases funded directly by a loan within one transaction.

        A transaction qualifies when it credits a loan-like liability and
        debits a fixed or intangible asset; the amount counted is the
        smaller of the two sides.
        """
        by_id = {account.id: account for account in accounts}
        grouped: dict[str, list[LedgerLine]] = defaultdict(list)
        for line in period_lines:
            if line.transaction_id:
                grouped[line.transaction_id].append(line)

        total = ZERO
        for lines in grouped.values():
            loan_credit = asset_debit = ZERO
            for line in lines:
                account = by_id.get(line.account_id)
                if account is None:
                    continue
                if account.type == AccountType.LIABILITY and _has_keyword(
                    account.name, LOAN_KEYWORDS
                ):
                    loan_credit += line.credit
                elif self._is_investment(account) and (
                    self._classifier.is_fixed_asset(account)
                    or _has_keyword(account.name, PPE_KEYWORDS + INTANGIBLE_KEYWORDS)
                ):
                    asset_debit += line.debit
            if loan_credit > 0 and asset_debit > 0:
                total += min(loan_credit, asset_debit)
        return total

    # === Assembly ===

    def build(
        self,
        company_id: str,
        period: Period,
        accounts: Sequence[Account],
        period_lines: Sequence[LedgerLine],
        prior_lines: Sequence[LedgerLine] = (),
        aggregate: CashFlowAggregate | None = None,
        report: DataQualityReport | None = None,
    ) -> CashFlowStatement:
        reclassified = ZERO
        if self._reclassify_loan_financed:
            reclassified = self.loan_financed_acquisitions(accounts, period_lines)

        if aggregate is not None and not aggregate.is_empty:
            return self._from_aggregate(company_id, period, aggregate, reclassified, report)

        if aggregate is not None:
            self._logger.info("cash_flow_aggregate_empty", company_id=company_id)
        flows = self.ledger_flows(accounts, period_lines, prior_lines)
        return self._from_ledger(company_id, period, flows, reclassified)

    def build_from_snapshot(
        self,
        snapshot: LedgerSnapshot,
        aggregator: LedgerAggregator,
        aggregate: CashFlowAggregate | None = None,
        report: DataQualityReport | None = None,
    ) -> CashFlowStatement:
        period = snapshot.period
        period_lines = aggregator.included_lines(snapshot, period)
        prior_lines: list[LedgerLine] = []
        if period.start is not None:
            prior = Period.cumulative(period.start - timedelta(days=1))
            prior_lines = aggregator.included_lines(snapshot, prior)
        return self.build(
            snapshot.company_id,
            period,
            snapshot.accounts,
            period_lines,
            prior_lines,
            aggregate=aggregate,
            report=report,
        )

    def _from_aggregate(
        self,
        company_id: str,
        period: Period,
        aggregate: CashFlowAggregate,
        reclassified: Decimal,
        report: DataQualityReport | None,
    ) -> CashFlowStatement:
        operating = aggregate.operating - reclassified
        financing = aggregate.financing + reclassified
        net_change = operating + aggregate.investing + financing
        closing = aggregate.opening_cash + net_change

        if abs(closing - aggregate.closing_cash) > ITEM_THRESHOLD and report is not None:
            report.record(
                DataQualityKind.CASH_FLOW_MISMATCH,
                "supplied closing cash disagrees with opening plus net flows",
                supplied=str(aggregate.closing_cash),
                computed=str(closing),
            )

        writer = StatementWriter()
        writer.header("Operating Activities")
        self._write_flow(writer, "Cash generated from operations", aggregate.operating)
        self._write_reclass(writer, -reclassified)
        writer.subtotal("Net Cash from Operations", operating)
        writer.spacer()
        writer.header("Investing Activities")
        self._write_flow(writer, "Investing cash flows", aggregate.investing)
        writer.subtotal("Net Cash from Investing", aggregate.investing)
        writer.spacer()
        writer.header("Financing Activities")
        self._write_flow(writer, "Financing cash flows", aggregate.financing)
        self._write_reclass(writer, reclassified)
        writer.subtotal("Net Cash from Financing", financing)
        self._write_closing(writer, net_change, aggregate.opening_cash, closing)

        self._logger.info(
            "cash_flow_built",
            company_id=company_id,
            strategy=CashFlowStrategy.AGGREGATE.value,
            net_change=str(net_change),
        )
        return CashFlowStatement(
            company_id=company_id,
            period=period,
            lines=tuple(writer.lines),
            strategy=CashFlowStrategy.AGGREGATE,
            operating=operating,
            investing=aggregate.investing,
            financing=financing,
            net_change=net_change,
            opening_cash=aggregate.opening_cash,
            closing_cash=closing,
            loan_financed_acquisitions=reclassified,
        )

    def _from_ledger(
        self,
        company_id: str,
        period: Period,
        flows: LedgerCashFlows,
        reclassified: Decimal,
    ) -> CashFlowStatement:
        operating = flows.operating - reclassified
        financing = flows.financing + reclassified
        net_change = operating + flows.investing + financing
        closing = flows.opening_cash + net_change

        writer = StatementWriter()
        writer.header("Operating Activities")
        self._write_flow(writer, "Net Profit / (Loss)", flows.net_profit)
        writer.item(LineKind.INCOME, "Depreciation", flows.depreciation)
        writer.item(
            _flow_kind(-flows.receivables_change),
            "(Increase)/Decrease in Receivables",
            -flows.receivables_change,
        )
        writer.item(
            _flow_kind(flows.payables_change),
            "Increase/(Decrease) in Payables",
            flows.payables_change,
        )
        self._write_reclass(writer, -reclassified)
        writer.subtotal("Net Cash from Operations", operating)
        writer.spacer()
        writer.header("Investing Activities")
        writer.item(
            _flow_kind(flows.investing),
            "Purchase of Fixed Assets and Investments (net)",
            flows.investing,
        )
        writer.subtotal("Net Cash from Investing", flows.investing)
        writer.spacer()
        writer.header("Financing Activities")
        writer.item(_flow_kind(flows.financing), "Loans and Capital (net)", flows.financing)
        self._write_reclass(writer, reclassified)
        writer.subtotal("Net Cash from Financing", financing)
        self._write_closing(writer, net_change, flows.opening_cash, closing)

        self._logger.info(
            "cash_flow_built",
            company_id=company_id,
            strategy=CashFlowStrategy.LEDGER.value,
            net_change=str(net_change),
        )
        return CashFlowStatement(
            company_id=company_id,
            period=period,
            lines=tuple(writer.lines),
            strategy=CashFlowStrategy.LEDGER,
            operating=operating,
            investing=flows.investing,
            financing=financing,
            net_change=net_change,
            opening_cash=flows.opening_cash,
            closing_cash=closing,
            loan_financed_acquisitions=reclassified,
        )

    @staticmethod
    def _write_flow(writer: StatementWriter, label: str, amount: Decimal) -> None:
        writer.item(_flow_kind(amount), label, amount, force=True)

    @staticmethod
    def _write_reclass(writer: StatementWriter, amount: Decimal) -> None:
        writer.item(_flow_kind(amount), LOAN_FINANCED_LABEL, amount)

    @staticmethod
    def _write_closing(
        writer: StatementWriter, net_change: Decimal, opening: Decimal, closing: Decimal
    ) -> None:
        writer.spacer()
        writer.total("NET CHANGE IN CASH", net_change)
        writer.item(LineKind.ASSET, "Opening Cash Balance", opening, force=True)
        writer.final("Closing Cash Balance", closing)
