"""Value objects shared by the aggregator, the statement builders and the engine.

Raw backend records are parsed into these frozen dataclasses at the
ingestion boundary, so nothing past this module sees free-form strings or
floats. Money is always ``Decimal`` and is rounded only in
``StatementLine.to_dict``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a raw numeric field to Decimal, treating blanks as zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (TypeError, ValueError, InvalidOperation) as exc:
        raise ValueError(f"invalid amount: {value!r}") from exc


def to_date(value: Any) -> date | None:
    """Parse an ISO date or timestamp; unparseable values become None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _year_earlier(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # 29 February
        return day.replace(year=day.year - 1, day=28)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class NormalSide(str, Enum):
    """Side on which an account naturally accumulates value."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountType(str, Enum):
    """Closed set of account types."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: Any) -> AccountType:
        """Case-insensitive match of a raw type string; unknown maps to OTHER."""
        if isinstance(raw, AccountType):
            return raw
        key = str(raw or "").strip().lower()
        if key == "income":
            return cls.REVENUE
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER

    @property
    def natural_side(self) -> NormalSide:
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalSide.DEBIT
        return NormalSide.CREDIT


class LineStatus(str, Enum):
    POSTED = "posted"
    APPROVED = "approved"
    PENDING = "pending"

    @classmethod
    def parse(cls, raw: Any) -> LineStatus | None:
        """Missing status means posted; unrecognised statuses map to None."""
        if raw is None or raw == "":
            return cls.POSTED
        if isinstance(raw, LineStatus):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None


class LineOrigin(str, Enum):
    """Which physical source a ledger line was read from."""

    LEDGER = "ledger_entries"
    TRANSACTION = "transaction_entries"


class LineKind(str, Enum):
    """Kinds of statement line handed to presentation."""

    HEADER = "header"
    SUBHEADER = "subheader"
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"
    SUBTOTAL = "subtotal"
    TOTAL = "total"
    FINAL = "final"
    SPACER = "spacer"
    BALANCE_CHECK = "balance_check"


@dataclass(frozen=True)
class Account:
    """A chart-of-accounts entry."""

    id: str
    code: str
    name: str
    type: AccountType
    active: bool = True

    @property
    def natural_side(self) -> NormalSide:
        return self.type.natural_side

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Account:
        return cls(
            id=str(record["id"]),
            code=str(record.get("code") or "").strip(),
            name=str(record.get("name") or "").strip(),
            type=AccountType.parse(record.get("account_type", record.get("type"))),
            active=bool(record.get("is_active", record.get("active", True))),
        )


@dataclass(frozen=True)
class LedgerLine:
    """One debit/credit posting against an account."""

    account_id: str
    debit: Decimal
    credit: Decimal
    date: date | None
    status: LineStatus | None
    transaction_id: str | None
    description: str
    origin: LineOrigin

    def __post_init__(self) -> None:
        if self.debit < 0 or self.credit < 0:
            raise ValueError(
                f"ledger line amounts must be non-negative: "
                f"debit={self.debit} credit={self.credit}"
            )

    @property
    def net_debit(self) -> Decimal:
        return self.debit - self.credit

    @classmethod
    def from_record(cls, record: Mapping[str, Any], origin: LineOrigin) -> LedgerLine:
        transaction_id = record.get("transaction_id")
        return cls(
            account_id=str(record["account_id"]),
            debit=to_decimal(record.get("debit")),
            credit=to_decimal(record.get("credit")),
            date=to_date(record.get("entry_date", record.get("date"))),
            status=LineStatus.parse(record.get("status")),
            transaction_id=str(transaction_id) if transaction_id else None,
            description=str(record.get("description") or ""),
            origin=origin,
        )


@dataclass(frozen=True)
class TrialBalanceRow:
    """Signed balance of one account; positive means natural side."""

    account_id: str
    code: str
    name: str
    type: AccountType
    balance: Decimal
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO

    @property
    def natural_side(self) -> NormalSide:
        return self.type.natural_side


@dataclass(frozen=True)
class StatementLine:
    """One rendered line of a financial statement."""

    kind: LineKind
    label: str
    amount: Decimal = ZERO
    account_id: str | None = None
    account_code: str | None = None

    @property
    def rounded_amount(self) -> Decimal:
        return round_money(self.amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "label": self.label,
            "amount": str(self.rounded_amount),
            "account_id": self.account_id,
            "account_code": self.account_code,
        }


@dataclass(frozen=True)
class BalanceCheckResult:
    """Outcome of re-checking Assets = Liabilities + Equity."""

    total_assets: Decimal
    total_liab_plus_equity: Decimal
    difference: Decimal
    is_balanced: bool

    @classmethod
    def compute(
        cls,
        total_assets: Decimal,
        total_liab_plus_equity: Decimal,
        tolerance: Decimal = Decimal("0.1"),
    ) -> BalanceCheckResult:
        difference = total_assets - total_liab_plus_equity
        return cls(
            total_assets=total_assets,
            total_liab_plus_equity=total_liab_plus_equity,
            difference=difference,
            is_balanced=abs(difference) < tolerance,
        )


@dataclass(frozen=True)
class LedgerValidationResult:
    """Outcome of checking that raw debits equal raw credits."""

    is_balanced: bool
    difference: Decimal
    total_debits: Decimal
    total_credits: Decimal
    line_count: int


@dataclass(frozen=True)
class CashFlowAggregate:
    """Pre-computed cash flow figures supplied by the backend."""

    operating: Decimal
    investing: Decimal
    financing: Decimal
    opening_cash: Decimal
    closing_cash: Decimal

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.operating, self.investing, self.financing, self.opening_cash, self.closing_cash)
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CashFlowAggregate:
        return cls(
            operating=to_decimal(record.get("operating")),
            investing=to_decimal(record.get("investing")),
            financing=to_decimal(record.get("financing")),
            opening_cash=to_decimal(record.get("opening_cash")),
            closing_cash=to_decimal(record.get("closing_cash")),
        )


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    item_type: str = "product"

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> InvoiceLine:
        return cls(
            description=str(record.get("description") or ""),
            quantity=to_decimal(record.get("quantity")),
            unit_price=to_decimal(record.get("unit_price")),
            item_type=str(record.get("item_type") or "").strip().lower(),
        )


@dataclass(frozen=True)
class Invoice:
    id: str
    status: str
    invoice_date: date | None
    sent_at: date | None = None
    lines: tuple[InvoiceLine, ...] = ()

    @property
    def effective_date(self) -> date | None:
        """Date used for period membership: sent date first, else invoice date."""
        return self.sent_at or self.invoice_date

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Invoice:
        raw_lines = record.get("lines") or record.get("items") or []
        return cls(
            id=str(record.get("id", "")),
            status=str(record.get("status") or "").strip().lower(),
            invoice_date=to_date(record.get("invoice_date")),
            sent_at=to_date(record.get("sent_at")),
            lines=tuple(InvoiceLine.from_record(line) for line in raw_lines),
        )


@dataclass(frozen=True)
class CatalogItem:
    """A product in the item cost catalog."""

    name: str
    cost_price: Decimal
    quantity_on_hand: Decimal = ZERO

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CatalogItem:
        return cls(
            name=str(record.get("name") or ""),
            cost_price=to_decimal(record.get("cost_price")),
            quantity_on_hand=to_decimal(record.get("quantity_on_hand")),
        )


@dataclass(frozen=True)
class OpeningAsset:
    """A fixed-asset register record; "[opening]" ones carry pre-period NBV."""

    description: str
    cost: Decimal
    accumulated_depreciation: Decimal
    status: str = "active"

    @property
    def is_opening(self) -> bool:
        return "[opening]" in self.description.lower() and self.status != "disposed"

    @property
    def net_book_value(self) -> Decimal:
        return max(ZERO, self.cost - self.accumulated_depreciation)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> OpeningAsset:
        return cls(
            description=str(record.get("description") or ""),
            cost=to_decimal(record.get("cost")),
            accumulated_depreciation=to_decimal(record.get("accumulated_depreciation")),
            status=str(record.get("status") or "active").strip().lower(),
        )


@dataclass(frozen=True)
class Period:
    """Reporting window; ``start`` of None means cumulative to ``end``."""

    end: date
    start: date | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.start > self.end:
            raise ValueError(f"period start {self.start} is after end {self.end}")

    @classmethod
    def cumulative(cls, end: date) -> Period:
        return cls(end=end)

    @property
    def is_cumulative(self) -> bool:
        return self.start is None

    def contains(self, day: date) -> bool:
        if day > self.end:
            return False
        return self.start is None or day >= self.start

    def as_cumulative(self) -> Period:
        return Period(end=self.end)

    def prior_year(self) -> Period:
        """The same window one year earlier, used for comparative figures."""
        start = _year_earlier(self.start) if self.start is not None else None
        return Period(end=_year_earlier(self.end), start=start)

    def label(self) -> str:
        if self.start is None:
            return f"to {self.end.isoformat()}"
        return f"{self.start.isoformat()} to {self.end.isoformat()}"

