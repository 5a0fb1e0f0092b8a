"""Balance sheet builder.

Assets are split into non-current (shown at net book value) and current;
liabilities into non-current and current. Equity closes with a synthetic
"Retained Earnings (adjusted)" line so that the sheet balances by
construction. Whether the underlying ledger balances is reported
separately by ``BalanceValidator``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog

from ledger_statements.aggregator import TrialBalance
from ledger_statements.classifier import AccountClassifier
from ledger_statements.errors import DataQualityKind, DataQualityReport
from ledger_statements.linkage import LinkageFactory, NameAssetLinkage
from ledger_statements.models import (
    ZERO,
    AccountType,
    BalanceCheckResult,
    LineKind,
    Period,
    StatementLine,
    TrialBalanceRow,
)
from ledger_statements.ordering import StatementPolicy
from ledger_statements.statements.base import ITEM_THRESHOLD, StatementWriter

logger = structlog.get_logger(__name__)

EQUITY_PLUG_LABEL = "Retained Earnings (adjusted)"


@dataclass(frozen=True)
class BalanceSheet:
    company_id: str
    period: Period
    lines: tuple[StatementLine, ...]
    total_non_current_assets: Decimal
    total_current_assets: Decimal
    total_assets: Decimal
    total_non_current_liabilities: Decimal
    total_current_liabilities: Decimal
    total_liabilities: Decimal
    raw_equity: Decimal
    equity_plug: Decimal
    total_equity: Decimal
    bank_overdraft: Decimal
    vat_receivable: Decimal
    vat_payable: Decimal
    balance_check: BalanceCheckResult


@dataclass
class _AssetGroups:
    non_current: list[TrialBalanceRow]
    contras: list[TrialBalanceRow]
    current: list[TrialBalanceRow]
    vat_receivable: Decimal = ZERO
    bank_overdraft: Decimal = ZERO


@dataclass
class _LiabilityGroups:
    non_current: list[TrialBalanceRow]
    current: list[TrialBalanceRow]
    vat_payable: Decimal = ZERO


class BalanceSheetBuilder:
    """Builds the balance sheet from a cumulative trial balance."""

    def __init__(
        self,
        policy: StatementPolicy,
        classifier: AccountClassifier | None = None,
        linkage_factory: LinkageFactory = NameAssetLinkage,
    ):
        self._policy = policy
        self._classifier = classifier or AccountClassifier(policy)
        self._linkage_factory = linkage_factory
        self._logger = logger.bind(component="balance_sheet")

    def _group_assets(self, trial_balance: TrialBalance) -> _AssetGroups:
        groups = _AssetGroups(non_current=[], contras=[], current=[])
        for row in trial_balance.visible_of_type(AccountType.ASSET):
            if self._classifier.is_fixed_asset(row):
                if self._classifier.is_accumulated(row):
                    groups.contras.append(row)
                else:
                    groups.non_current.append(row)
            elif self._classifier.is_vat(row):
                groups.vat_receivable += row.balance
            elif row.code in self._policy.excluded_current_asset_codes:
                self._logger.debug("current_asset_excluded", code=row.code)
            elif self._classifier.is_bank_or_cash(row) and row.balance < 0:
                groups.bank_overdraft += -row.balance
            else:
                groups.current.append(row)
        return groups

    def _group_liabilities(self, trial_balance: TrialBalance) -> _LiabilityGroups:
        groups = _LiabilityGroups(non_current=[], current=[])
        for row in trial_balance.visible_of_type(AccountType.LIABILITY):
            if self._classifier.is_vat(row):
                groups.vat_payable += row.balance
            elif row.code in self._policy.excluded_liability_codes:
                self._logger.debug("liability_excluded", code=row.code)
            elif self._classifier.is_non_current_liability(row):
                groups.non_current.append(row)
            else:
                groups.current.append(row)
        return groups

    def net_book_values(
        self,
        assets: list[TrialBalanceRow],
        contras: list[TrialBalanceRow],
        report: DataQualityReport | None = None,
    ) -> list[tuple[TrialBalanceRow, Decimal]]:
        """Net each asset against its linked contras, floored at zero.

        Contra balances are subtracted by magnitude, so a contra stored
        either as a negative asset balance or as a positive one offsets the
        asset the same way.
        """
        linkage = self._linkage_factory(assets, contras)
        values = []
        for asset in assets:
            linked = linkage.contras_for(asset)
            nbv = asset.balance - sum((abs(c.balance) for c in linked), ZERO)
            if nbv < 0:
                if report is not None:
                    report.record(
                        DataQualityKind.NBV_FLOORED,
                        "accumulated depreciation exceeds asset cost; NBV floored at zero",
                        account_id=asset.account_id,
                        code=asset.code,
                        computed=str(nbv),
                    )
                nbv = ZERO
            values.append((asset, nbv))

        if report is not None:
            for contra in linkage.unmatched():
                report.record(
                    DataQualityKind.UNMATCHED_CONTRA,
                    "accumulated depreciation account matches no fixed asset",
                    account_id=contra.account_id,
                    code=contra.code,
                    name=contra.name,
                )
        return values

    def build(
        self,
        trial_balance: TrialBalance,
        opening_nbv: Decimal = ZERO,
        report: DataQualityReport | None = None,
    ) -> BalanceSheet:
        """Build the sheet.

        Args:
            trial_balance: Cumulative trial balance to the report date.
            opening_nbv: NBV of pre-period assets tagged "[opening]".
            report: Collector for data-quality warnings.
        """
        assets = self._group_assets(trial_balance)
        liabilities = self._group_liabilities(trial_balance)
        writer = StatementWriter()

        writer.header("ASSETS")
        writer.subheader("Non-current Assets")
        total_non_current = ZERO
        for row, nbv in self.net_book_values(assets.non_current, assets.contras, report):
            total_non_current += writer.row(row, amount=nbv, kind=LineKind.ASSET)
        total_non_current += writer.item(
            LineKind.ASSET, "Opening Fixed Assets (NBV)", opening_nbv
        )
        writer.subtotal("Total Non-current Assets", total_non_current)

        writer.subheader("Current Assets")
        total_current = writer.rows(
            self._policy.current_assets.order(assets.current), kind=LineKind.ASSET
        )
        if assets.vat_receivable >= 0:
            total_current += writer.item(
                LineKind.ASSET,
                "VAT Receivable",
                assets.vat_receivable,
                account_code=self._policy.vat_receivable_code,
                force=True,
            )
        writer.subtotal("Total Current Assets", total_current)
        total_assets = total_non_current + total_current
        writer.total("TOTAL ASSETS", total_assets)
        writer.spacer()

        writer.header("LIABILITIES")
        writer.subheader("Non-current Liabilities")
        total_non_current_liab = writer.rows(liabilities.non_current, kind=LineKind.LIABILITY)
        writer.subtotal("Total Non-current Liabilities", total_non_current_liab)

        writer.subheader("Current Liabilities")
        total_current_liab = writer.rows(liabilities.current, kind=LineKind.LIABILITY)
        total_current_liab += writer.item(
            LineKind.LIABILITY,
            "VAT Payable",
            liabilities.vat_payable,
            account_code=self._policy.vat_payable_code,
            force=True,
        )
        total_current_liab += writer.item(
            LineKind.LIABILITY, "Bank Overdraft", assets.bank_overdraft
        )
        writer.subtotal("Total Current Liabilities", total_current_liab)
        total_liabilities = total_non_current_liab + total_current_liab
        writer.total("TOTAL LIABILITIES", total_liabilities)
        writer.spacer()

        writer.header("EQUITY")
        raw_equity = writer.rows(
            trial_balance.visible_of_type(AccountType.EQUITY), kind=LineKind.EQUITY
        )
        plug = total_assets - (total_liabilities + raw_equity)
        if abs(plug) > ITEM_THRESHOLD:
            writer.item(LineKind.EQUITY, EQUITY_PLUG_LABEL, plug, force=True)
            self._logger.info(
                "equity_plug_applied",
                company_id=trial_balance.company_id,
                plug=str(plug),
            )
        else:
            plug = ZERO
        total_equity = raw_equity + plug
        writer.subtotal("Total Equity", total_equity)

        liab_plus_equity = total_liabilities + total_equity
        writer.final("TOTAL LIABILITIES & EQUITY", liab_plus_equity)

        check = BalanceCheckResult.compute(
            total_assets, liab_plus_equity, tolerance=self._policy.balance_tolerance
        )
        writer.balance_check("Balance check", check.difference)
        if not check.is_balanced:
            self._logger.error(
                "balance_sheet_out_of_balance",
                company_id=trial_balance.company_id,
                difference=str(check.difference),
            )

        return BalanceSheet(
            company_id=trial_balance.company_id,
            period=trial_balance.period,
            lines=tuple(writer.lines),
            total_non_current_assets=total_non_current,
            total_current_assets=total_current,
            total_assets=total_assets,
            total_non_current_liabilities=total_non_current_liab,
            total_current_liabilities=total_current_liab,
            total_liabilities=total_liabilities,
            raw_equity=raw_equity,
            equity_plug=plug,
            total_equity=total_equity,
            bank_overdraft=assets.bank_overdraft,
            vat_receivable=assets.vat_receivable,
            vat_payable=liabilities.vat_payable,
            balance_check=check,
        )
