"""Statement engine: fetch one ledger snapshot, then build every statement from it.

Usage:
    python -m ledger_statements.engine --company=<id> --start=2024-01-01 --end=2024-12-31
    python -m ledger_statements.engine --company=<id> --end=2024-12-31 --statement=balance --json
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Protocol, TypeVar

import structlog

from ledger_statements.aggregator import (
    DEFAULT_STATUSES,
    LedgerAggregator,
    LedgerSnapshot,
    TrialBalance,
)
from ledger_statements.classifier import AccountClassifier
from ledger_statements.config import get_settings, load_statement_policy
from ledger_statements.errors import (
    DataQualityKind,
    DataQualityReport,
    SourceUnavailable,
)
from ledger_statements.fallback import CostOfSalesEstimator
from ledger_statements.linkage import LinkageFactory, NameAssetLinkage
from ledger_statements.models import (
    ZERO,
    Account,
    CashFlowAggregate,
    CatalogItem,
    Invoice,
    LedgerLine,
    LedgerValidationResult,
    LineKind,
    LineOrigin,
    LineStatus,
    OpeningAsset,
    Period,
    StatementLine,
)
from ledger_statements.ordering import StatementPolicy
from ledger_statements.statements import (
    BalanceSheet,
    BalanceSheetBuilder,
    CashFlowBuilder,
    CashFlowStatement,
    IncomeStatement,
    IncomeStatementBuilder,
)
from ledger_statements.tools.ledger_api import LedgerAPIError
from ledger_statements.validator import BalanceValidator

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Failures that make a collaborator's data unusable
FETCH_ERRORS = (LedgerAPIError, KeyError, ValueError)


class LedgerSource(Protocol):
    """Read-only backend queries the engine depends on."""

    async def list_accounts(self, company_id: str) -> list[dict[str, Any]]: ...

    async def list_ledger_entries(
        self, company_id: str, end: date, start: date | None = None
    ) -> list[dict[str, Any]]: ...

    async def list_transaction_entries(
        self, company_id: str, end: date, start: date | None = None
    ) -> list[dict[str, Any]]: ...

    async def get_cash_flow_aggregate(
        self, company_id: str, period_start: date, period_end: date
    ) -> dict[str, Any]: ...

    async def list_fixed_assets(self, company_id: str) -> list[dict[str, Any]]: ...

    async def list_catalog_items(self, company_id: str) -> list[dict[str, Any]]: ...

    async def list_invoices(
        self, company_id: str, end: date, start: date | None = None
    ) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class OptionalInputs:
    """Collaborators whose absence degrades a feature instead of failing."""

    cash_flow: CashFlowAggregate | None = None
    opening_assets: tuple[OpeningAsset, ...] = ()
    catalog: tuple[CatalogItem, ...] = ()
    invoices: tuple[Invoice, ...] = ()

    @property
    def opening_nbv(self) -> Decimal:
        return sum(
            (asset.net_book_value for asset in self.opening_assets if asset.is_opening), ZERO
        )


@dataclass(frozen=True)
class FinancialStatements:
    """Every statement for one company and period, built from one snapshot."""

    company_id: str
    period: Period
    trial_balance: TrialBalance
    cumulative_trial_balance: TrialBalance
    income_statement: IncomeStatement
    balance_sheet: BalanceSheet
    cash_flow: CashFlowStatement
    ledger_check: LedgerValidationResult
    data_quality: DataQualityReport
    comparative: FinancialStatements | None = None

    @property
    def plug_masks_imbalance(self) -> bool:
        """True when the sheet reads balanced only because of the equity plug."""
        return self.balance_sheet.balance_check.is_balanced and not self.ledger_check.is_balanced

    def statement_lines(self) -> dict[str, tuple[StatementLine, ...]]:
        return {
            "income_statement": self.income_statement.lines,
            "balance_sheet": self.balance_sheet.lines,
            "cash_flow": self.cash_flow.lines,
        }

    def to_dict(self) -> dict[str, Any]:
        check = self.balance_sheet.balance_check
        return {
            "company_id": self.company_id,
            "period": {
                "start": self.period.start.isoformat() if self.period.start else None,
                "end": self.period.end.isoformat(),
            },
            "statements": {
                name: [line.to_dict() for line in lines]
                for name, lines in self.statement_lines().items()
            },
            "balance_check": {
                "is_balanced": check.is_balanced,
                "difference": str(check.difference),
                "equity_plug": str(self.balance_sheet.equity_plug),
            },
            "ledger_check": {
                "is_balanced": self.ledger_check.is_balanced,
                "difference": str(self.ledger_check.difference),
            },
            "plug_masks_imbalance": self.plug_masks_imbalance,
            "cash_flow_strategy": self.cash_flow.strategy.value,
            "data_quality": self.data_quality.summary(),
            "comparative": self.comparative.to_dict() if self.comparative else None,
        }


def _parse_all(
    records: Iterable[dict[str, Any]], parse: Callable[[dict[str, Any]], T]
) -> list[T]:
    return [parse(record) for record in records]


class StatementEngine:
    """Builds the three financial statements and the ledger check."""

    def __init__(
        self,
        source: LedgerSource,
        policy: StatementPolicy | None = None,
        reclassify_loan_financed: bool | None = None,
        value_inventory_from_catalog: bool | None = None,
        statuses: Iterable[LineStatus] = DEFAULT_STATUSES,
        linkage_factory: LinkageFactory = NameAssetLinkage,
    ):
        settings = get_settings()
        self._source = source
        self._policy = policy or load_statement_policy(settings.statement_policy_path)
        if reclassify_loan_financed is None:
            reclassify_loan_financed = settings.reclassify_loan_financed
        if value_inventory_from_catalog is None:
            value_inventory_from_catalog = settings.value_inventory_from_catalog
        self._value_inventory = value_inventory_from_catalog

        classifier = AccountClassifier(self._policy)
        self.aggregator = LedgerAggregator(self._policy, classifier, statuses=statuses)
        self.estimator = CostOfSalesEstimator()
        self.income_builder = IncomeStatementBuilder(self._policy, classifier)
        self.balance_builder = BalanceSheetBuilder(
            self._policy, classifier, linkage_factory=linkage_factory
        )
        self.cash_flow_builder = CashFlowBuilder(
            self._policy, classifier, reclassify_loan_financed=reclassify_loan_financed
        )
        self.validator = BalanceValidator(self._policy.ledger_tolerance)
        self._logger = logger.bind(component="statement_engine")

    # === Fetching ===

    async def _required(
        self, name: str, fetch: Awaitable[list[dict[str, Any]]]
    ) -> list[dict[str, Any]]:
        try:
            return await fetch
        except LedgerAPIError as exc:
            self._logger.error("required_source_failed", source=name, error=str(exc))
            raise SourceUnavailable(name, f"{name} unavailable: {exc}") from exc

    async def fetch_snapshot(
        self,
        company_id: str,
        period: Period,
        report: DataQualityReport | None = None,
    ) -> LedgerSnapshot:
        """Read accounts and both line sources once, up to the period end."""
        raw_accounts, raw_ledger, raw_transactions = await asyncio.gather(
            self._required("accounts", self._source.list_accounts(company_id)),
            self._required(
                "ledger_entries", self._source.list_ledger_entries(company_id, end=period.end)
            ),
            self._required(
                "transaction_entries",
                self._source.list_transaction_entries(company_id, end=period.end),
            ),
        )

        try:
            accounts = _parse_all(raw_accounts, Account.from_record)
            ledger_lines = [LedgerLine.from_record(r, LineOrigin.LEDGER) for r in raw_ledger]
            transaction_lines = [
                LedgerLine.from_record(r, LineOrigin.TRANSACTION) for r in raw_transactions
            ]
        except (KeyError, ValueError) as exc:
            self._logger.error(
                "required_source_malformed", company_id=company_id, error=str(exc)
            )
            raise SourceUnavailable("ledger", f"malformed ledger data: {exc}") from exc

        return self.aggregator.snapshot(
            company_id, period, accounts, ledger_lines, transaction_lines, report=report
        )

    async def _optional(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        default: T,
        report: DataQualityReport,
    ) -> T:
        try:
            return await fetch()
        except FETCH_ERRORS as exc:
            report.record(
                DataQualityKind.OPTIONAL_SOURCE_FAILED,
                f"{name} unavailable; continuing without it",
                source=name,
                error=str(exc),
            )
            return default

    async def fetch_optional(
        self, company_id: str, period: Period, report: DataQualityReport
    ) -> OptionalInputs:
        """Read optional collaborators concurrently; failures fall back to empty."""

        async def cash_flow() -> CashFlowAggregate | None:
            if period.start is None:
                return None
            record = await self._source.get_cash_flow_aggregate(
                company_id, period.start, period.end
            )
            return CashFlowAggregate.from_record(record) if record else None

        async def opening_assets() -> tuple[OpeningAsset, ...]:
            records = await self._source.list_fixed_assets(company_id)
            return tuple(_parse_all(records, OpeningAsset.from_record))

        async def catalog() -> tuple[CatalogItem, ...]:
            records = await self._source.list_catalog_items(company_id)
            return tuple(_parse_all(records, CatalogItem.from_record))

        async def invoices() -> tuple[Invoice, ...]:
            records = await self._source.list_invoices(company_id, end=period.end)
            return tuple(_parse_all(records, Invoice.from_record))

        aggregate, assets, items, sales = await asyncio.gather(
            self._optional("cash_flow_aggregate", cash_flow, None, report),
            self._optional("fixed_assets", opening_assets, (), report),
            self._optional("catalog_items", catalog, (), report),
            self._optional("invoices", invoices, (), report),
        )
        return OptionalInputs(
            cash_flow=aggregate, opening_assets=assets, catalog=items, invoices=sales
        )

    # === Building ===

    def build_from_inputs(
        self,
        snapshot: LedgerSnapshot,
        inputs: OptionalInputs,
        report: DataQualityReport,
        value_inventory: bool | None = None,
    ) -> FinancialStatements:
        """Build every statement from one snapshot; no I/O."""
        period = snapshot.period
        trial_balance = self.aggregator.trial_balance(snapshot)
        if value_inventory is None:
            value_inventory = self._value_inventory

        inventory_value = None
        if value_inventory and inputs.catalog:
            inventory_value = self.estimator.inventory_value(inputs.catalog)
        cumulative = self.aggregator.trial_balance(
            snapshot, period.as_cumulative(), inventory_value=inventory_value
        )

        fallback = None
        if self.income_builder.needs_fallback(trial_balance):
            fallback = self.estimator.estimate(inputs.invoices, inputs.catalog, period, report)

        statements = FinancialStatements(
            company_id=snapshot.company_id,
            period=period,
            trial_balance=trial_balance,
            cumulative_trial_balance=cumulative,
            income_statement=self.income_builder.build(trial_balance, fallback),
            balance_sheet=self.balance_builder.build(cumulative, inputs.opening_nbv, report),
            cash_flow=self.cash_flow_builder.build_from_snapshot(
                snapshot, self.aggregator, inputs.cash_flow, report
            ),
            ledger_check=self.validator.validate(
                snapshot, self.aggregator, period.as_cumulative()
            ),
            data_quality=report,
        )

        if statements.plug_masks_imbalance:
            self._logger.warning(
                "equity_plug_masks_ledger_imbalance",
                company_id=snapshot.company_id,
                equity_plug=str(statements.balance_sheet.equity_plug),
                ledger_difference=str(statements.ledger_check.difference),
            )
        return statements

    def build_prior(
        self, snapshot: LedgerSnapshot, inputs: OptionalInputs
    ) -> FinancialStatements:
        """Build the same statements for the year before the snapshot's period.

        Lines are re-read from the snapshot, which already holds everything up
        to the current period end. The prior year always uses the ledger cash
        flow and the ledger inventory balance.
        """
        prior = replace(snapshot, period=snapshot.period.prior_year())
        report = DataQualityReport(snapshot.company_id)
        statements = self.build_from_inputs(
            prior, replace(inputs, cash_flow=None), report, value_inventory=False
        )
        self._logger.info(
            "comparative_built",
            company_id=snapshot.company_id,
            period=prior.period.label(),
            net_profit=str(statements.income_statement.net_profit),
        )
        return statements

    async def build_statements(
        self,
        company_id: str,
        period_start: date | None,
        period_end: date,
        compare_prior: bool = False,
    ) -> FinancialStatements:
        """Fetch once and build the income statement, balance sheet and cash flow.

        With ``compare_prior`` the prior year's statements are built from the
        same snapshot and attached as ``comparative``.

        Raises:
            SourceUnavailable: accounts or ledger lines could not be read.
        """
        period = Period(end=period_end, start=period_start)
        report = DataQualityReport(company_id)
        self._logger.info("building_statements", company_id=company_id, period=period.label())

        snapshot = await self.fetch_snapshot(company_id, period, report)
        inputs = await self.fetch_optional(company_id, period, report)
        statements = self.build_from_inputs(snapshot, inputs, report)
        if compare_prior:
            statements = replace(statements, comparative=self.build_prior(snapshot, inputs))

        self._logger.info(
            "statements_built",
            company_id=company_id,
            net_profit=str(statements.income_statement.net_profit),
            total_assets=str(statements.balance_sheet.total_assets),
            data_quality_issues=len(report),
        )
        return statements

    async def validate(
        self, company_id: str, period_start: date | None, period_end: date
    ) -> LedgerValidationResult:
        """Check raw debits against raw credits for the window."""
        period = Period(end=period_end, start=period_start)
        snapshot = await self.fetch_snapshot(company_id, period)
        return self.validator.validate(snapshot, self.aggregator, period)


def _format_lines(title: str, lines: Iterable[StatementLine]) -> str:
    output = [title, "=" * 64]
    for line in lines:
        if line.kind == LineKind.SPACER:
            output.append("")
        elif line.kind in (LineKind.HEADER, LineKind.SUBHEADER):
            output.append(line.label)
        else:
            output.append(f"  {line.label:<46}{line.rounded_amount:>16,}")
    return "\n".join(output)


async def main() -> None:
    """Main entry point for printing statements from the command line."""
    import argparse
    import json
    import sys

    from ledger_statements.config import configure_logging
    from ledger_statements.tools import LedgerAPIClient

    configure_logging()

    parser = argparse.ArgumentParser(description="Build financial statements from the ledger")
    parser.add_argument("--company", required=True, help="Company id")
    parser.add_argument("--start", type=date.fromisoformat, default=None, help="Period start")
    parser.add_argument(
        "--end", type=date.fromisoformat, default=date.today(), help="Period end (default: today)"
    )
    parser.add_argument(
        "--statement",
        choices=["all", "income", "balance", "cash-flow"],
        default="all",
        help="Statement to print (default: all)",
    )
    parser.add_argument(
        "--compare", action="store_true", help="Also build the prior year for comparison"
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    args = parser.parse_args()

    try:
        async with LedgerAPIClient() as client:
            engine = StatementEngine(client)
            statements = await engine.build_statements(
                args.company, args.start, args.end, compare_prior=args.compare
            )
    except SourceUnavailable as e:
        logger.error("statements_unavailable", source=e.source, error=str(e))
        sys.exit(2)
    except Exception as e:
        logger.exception("statement_engine_error", error=str(e))
        sys.exit(1)

    if args.json:
        print(json.dumps(statements.to_dict(), indent=2))
        return

    titles = {
        "income": ("Income Statement", "income_statement"),
        "balance": ("Balance Sheet", "balance_sheet"),
        "cash-flow": ("Cash Flow Statement", "cash_flow"),
    }
    selected = list(titles.values()) if args.statement == "all" else [titles[args.statement]]
    for bundle in (statements, statements.comparative):
        if bundle is None:
            continue
        lines_by_name = bundle.statement_lines()
        for title, name in selected:
            print(_format_lines(f"{title} ({bundle.period.label()})", lines_by_name[name]))
            print()

    if statements.plug_masks_imbalance:
        print(
            "Warning: balance sheet balances only via the equity plug; "
            f"ledger is off by {statements.ledger_check.difference}"
        )


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
