"""Shared line-emission helpers for the statement builders."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from ledger_statements.models import (
    ZERO,
    AccountType,
    LineKind,
    StatementLine,
    TrialBalanceRow,
)

ITEM_THRESHOLD = Decimal("0.01")

ITEM_KIND_BY_TYPE = {
    AccountType.ASSET: LineKind.ASSET,
    AccountType.LIABILITY: LineKind.LIABILITY,
    AccountType.EQUITY: LineKind.EQUITY,
    AccountType.REVENUE: LineKind.INCOME,
    AccountType.EXPENSE: LineKind.EXPENSE,
}


def item_kind(account_type: AccountType) -> LineKind:
    return ITEM_KIND_BY_TYPE.get(account_type, LineKind.EXPENSE)


class StatementWriter:
    """Accumulates statement lines in order."""

    def __init__(self, threshold: Decimal = ITEM_THRESHOLD):
        self._threshold = threshold
        self.lines: list[StatementLine] = []

    def header(self, label: str) -> None:
        self.lines.append(StatementLine(LineKind.HEADER, label))

    def subheader(self, label: str) -> None:
        self.lines.append(StatementLine(LineKind.SUBHEADER, label))

    def spacer(self) -> None:
        self.lines.append(StatementLine(LineKind.SPACER, ""))

    def item(
        self,
        kind: LineKind,
        label: str,
        amount: Decimal,
        account_id: str | None = None,
        account_code: str | None = None,
        force: bool = False,
    ) -> Decimal:
        """Emit an item if it clears the amount filter; return what was added."""
        if not force and abs(amount) <= self._threshold:
            return ZERO
        self.lines.append(StatementLine(kind, label, amount, account_id, account_code))
        return amount

    def row(
        self,
        row: TrialBalanceRow,
        amount: Decimal | None = None,
        kind: LineKind | None = None,
        label: str | None = None,
        force: bool = False,
    ) -> Decimal:
        return self.item(
            kind or item_kind(row.type),
            label or row.name,
            row.balance if amount is None else amount,
            account_id=row.account_id,
            account_code=row.code,
            force=force,
        )

    def rows(self, rows: Iterable[TrialBalanceRow], kind: LineKind | None = None) -> Decimal:
        return sum((self.row(row, kind=kind) for row in rows), ZERO)

    def subtotal(self, label: str, amount: Decimal) -> None:
        self.lines.append(StatementLine(LineKind.SUBTOTAL, label, amount))

    def total(self, label: str, amount: Decimal) -> None:
        self.lines.append(StatementLine(LineKind.TOTAL, label, amount))

    def final(self, label: str, amount: Decimal) -> None:
        self.lines.append(StatementLine(LineKind.FINAL, label, amount))

    def balance_check(self, label: str, difference: Decimal) -> None:
        self.lines.append(StatementLine(LineKind.BALANCE_CHECK, label, difference))
