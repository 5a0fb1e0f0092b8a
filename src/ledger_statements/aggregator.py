"""Ledger aggregation into trial balances.

Lines arrive from two physical sources that can describe the same
postings: direct ledger entries and entries derived from transactions.
The aggregator merges them (direct entries win), filters by status and
date, and sums each account into a signed balance on its natural side.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

import structlog

from ledger_statements.classifier import AccountClassifier
from ledger_statements.errors import DataQualityKind, DataQualityReport
from ledger_statements.models import (
    ZERO,
    Account,
    AccountType,
    LedgerLine,
    LineOrigin,
    LineStatus,
    NormalSide,
    Period,
    TrialBalanceRow,
)
from ledger_statements.ordering import StatementPolicy

logger = structlog.get_logger(__name__)

CARRY_FORWARD_MARKER = "opening balance (carry forward)"

DEFAULT_STATUSES = frozenset({LineStatus.POSTED})


@dataclass(frozen=True)
class LedgerSnapshot:
    """Accounts and deduplicated lines for one company, read at one moment."""

    company_id: str
    period: Period
    accounts: tuple[Account, ...]
    lines: tuple[LedgerLine, ...]


@dataclass(frozen=True)
class TrialBalance:
    """Per-account balances for a period or cumulative to its end.

    ``rows`` holds every account, including zero balances, so pinned
    statement lines can always be resolved. ``visible`` is the suppressed
    list that generic statement sections iterate over.
    """

    company_id: str
    period: Period
    rows: tuple[TrialBalanceRow, ...]
    visible: tuple[TrialBalanceRow, ...]
    line_count: int

    def row_for_code(self, code: str) -> TrialBalanceRow | None:
        for row in self.rows:
            if row.code == code:
                return row
        return None

    def balance_for_code(self, code: str) -> Decimal:
        row = self.row_for_code(code)
        return row.balance if row is not None else ZERO

    def visible_of_type(self, *types: AccountType) -> list[TrialBalanceRow]:
        return [row for row in self.visible if row.type in types]

    @property
    def total_debits(self) -> Decimal:
        return sum((row.total_debits for row in self.rows), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((row.total_credits for row in self.rows), ZERO)


class LedgerAggregator:
    """Builds trial balances from raw ledger lines."""

    def __init__(
        self,
        policy: StatementPolicy,
        classifier: AccountClassifier | None = None,
        statuses: Iterable[LineStatus] = DEFAULT_STATUSES,
    ):
        self._policy = policy
        self._classifier = classifier or AccountClassifier(policy)
        self._statuses = frozenset(statuses)
        self._logger = logger.bind(component="ledger_aggregator")

    @property
    def statuses(self) -> frozenset[LineStatus]:
        return self._statuses

    @staticmethod
    def deduplicate(
        ledger_lines: Iterable[LedgerLine], transaction_lines: Iterable[LedgerLine]
    ) -> list[LedgerLine]:
        """Merge both sources, dropping transaction-derived duplicates.

        Any transaction id present in the direct ledger source suppresses
        every transaction-derived line carrying that id.
        """
        direct = list(ledger_lines)
        seen = {line.transaction_id for line in direct if line.transaction_id}
        derived = [
            line
            for line in transaction_lines
            if not (line.transaction_id and line.transaction_id in seen)
        ]
        return direct + derived

    def snapshot(
        self,
        company_id: str,
        period: Period,
        accounts: Sequence[Account],
        ledger_lines: Iterable[LedgerLine],
        transaction_lines: Iterable[LedgerLine],
        report: DataQualityReport | None = None,
    ) -> LedgerSnapshot:
        """Freeze one read of the ledger, recording data-quality issues once."""
        lines = self.deduplicate(ledger_lines, transaction_lines)
        snapshot = LedgerSnapshot(
            company_id=company_id,
            period=period,
            accounts=tuple(sorted(accounts, key=lambda a: (a.code, a.name))),
            lines=tuple(lines),
        )

        if report is not None:
            null_dated = sum(1 for line in lines if line.date is None)
            if null_dated:
                report.record(
                    DataQualityKind.NULL_DATE,
                    "ledger lines without a date were excluded",
                    count=null_dated,
                )
            known = {account.id for account in snapshot.accounts}
            unknown = sorted({line.account_id for line in lines if line.account_id not in known})
            if unknown:
                report.record(
                    DataQualityKind.UNKNOWN_ACCOUNT,
                    "ledger lines reference accounts missing from the chart",
                    account_ids=unknown,
                )

        self._logger.debug(
            "ledger_snapshot_taken",
            company_id=company_id,
            accounts=len(snapshot.accounts),
            lines=len(snapshot.lines),
        )
        return snapshot

    def included_lines(self, snapshot: LedgerSnapshot, period: Period) -> list[LedgerLine]:
        """Lines that count towards ``period``: allowed status, dated, in window."""
        included = []
        for line in snapshot.lines:
            if line.status not in self._statuses or line.date is None:
                continue
            if not period.contains(line.date):
                continue
            if (
                period.is_cumulative
                and line.origin == LineOrigin.LEDGER
                and CARRY_FORWARD_MARKER in line.description.lower()
            ):
                continue
            included.append(line)
        return included

    def trial_balance(
        self,
        snapshot: LedgerSnapshot,
        period: Period | None = None,
        inventory_value: Decimal | None = None,
    ) -> TrialBalance:
        """Aggregate the snapshot for ``period`` (defaults to the snapshot's)."""
        period = period or snapshot.period
        lines = self.included_lines(snapshot, period)

        debits: dict[str, Decimal] = {}
        credits: dict[str, Decimal] = {}
        for line in lines:
            debits[line.account_id] = debits.get(line.account_id, ZERO) + line.debit
            credits[line.account_id] = credits.get(line.account_id, ZERO) + line.credit

        rows = []
        for account in snapshot.accounts:
            total_debits = debits.get(account.id, ZERO)
            total_credits = credits.get(account.id, ZERO)
            _, side = self._classifier.classify(account)
            if side == NormalSide.DEBIT:
                balance = total_debits - total_credits
            else:
                balance = total_credits - total_debits
            rows.append(
                TrialBalanceRow(
                    account_id=account.id,
                    code=account.code,
                    name=account.name,
                    type=account.type,
                    balance=balance,
                    total_debits=total_debits,
                    total_credits=total_credits,
                )
            )

        if inventory_value is not None:
            rows = self._apply_inventory_value(rows, inventory_value)

        return TrialBalance(
            company_id=snapshot.company_id,
            period=period,
            rows=tuple(rows),
            visible=tuple(row for row in rows if self._is_visible(row)),
            line_count=len(lines),
        )

    def aggregate(
        self,
        company_id: str,
        period: Period,
        accounts: Sequence[Account],
        ledger_lines: Iterable[LedgerLine],
        transaction_lines: Iterable[LedgerLine],
        report: DataQualityReport | None = None,
    ) -> TrialBalance:
        snapshot = self.snapshot(
            company_id, period, accounts, ledger_lines, transaction_lines, report=report
        )
        return self.trial_balance(snapshot)

    def _is_visible(self, row: TrialBalanceRow) -> bool:
        if abs(row.balance) < self._policy.suppression_threshold:
            return False
        if self._classifier.is_inventory(row) and row.code != self._policy.primary_inventory_code:
            return False
        return True

    def _apply_inventory_value(
        self, rows: list[TrialBalanceRow], inventory_value: Decimal
    ) -> list[TrialBalanceRow]:
        code = self._policy.primary_inventory_code
        updated = []
        for row in rows:
            if row.code == code:
                self._logger.info(
                    "inventory_value_applied",
                    code=code,
                    ledger_balance=str(row.balance),
                    valuation=str(inventory_value),
                )
                row = replace(row, balance=inventory_value)
            updated.append(row)
        return updated
