"""Declarative account ordering and the statement layout policy.

Each statement section consults an ``OrderingPolicy``: an ordered list of
pinned account codes that are emitted ahead of the section's remaining
rows. The full ``StatementPolicy`` (pins, designated codes, thresholds) is
loaded from YAML by ``ledger_statements.config.policy_loader``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, TypeVar


class HasCode(Protocol):
    @property
    def code(self) -> str: ...


RowT = TypeVar("RowT", bound=HasCode)


@dataclass(frozen=True)
class PinnedCode:
    """An account code pinned to a fixed position within a section."""

    code: str
    priority: int
    label: str | None = None
    negate: bool = False
    always: bool = False


@dataclass(frozen=True)
class OrderingPolicy:
    """Ordered pins for one statement section."""

    pins: tuple[PinnedCode, ...] = ()

    def __post_init__(self) -> None:
        codes = [pin.code for pin in self.pins]
        if len(codes) != len(set(codes)):
            raise ValueError(f"duplicate pinned codes: {codes}")
        # Stable sort so equal priorities keep their declared order
        object.__setattr__(
            self, "pins", tuple(sorted(self.pins, key=lambda pin: pin.priority))
        )

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(pin.code for pin in self.pins)

    def pin_for(self, code: str) -> PinnedCode | None:
        for pin in self.pins:
            if pin.code == code:
                return pin
        return None

    def split(self, rows: Iterable[RowT]) -> tuple[list[tuple[PinnedCode, RowT]], list[RowT]]:
        """Separate pinned rows (in priority order) from the rest (input order)."""
        by_code: dict[str, RowT] = {}
        rest: list[RowT] = []
        pinned_codes = set(self.codes)
        for row in rows:
            if row.code in pinned_codes and row.code not in by_code:
                by_code[row.code] = row
            else:
                rest.append(row)
        pinned = [(pin, by_code[pin.code]) for pin in self.pins if pin.code in by_code]
        return pinned, rest

    def order(self, rows: Iterable[RowT]) -> list[RowT]:
        pinned, rest = self.split(rows)
        return [row for _, row in pinned] + rest


@dataclass(frozen=True)
class StatementPolicy:
    """Designated codes, pins and thresholds used by the statement builders."""

    revenue: OrderingPolicy
    cost_of_sales: OrderingPolicy
    operating_expenses: OrderingPolicy
    current_assets: OrderingPolicy
    primary_inventory_code: str
    fallback_cost_of_sales_code: str
    cost_of_sales_codes: frozenset[str]
    excluded_current_asset_codes: frozenset[str]
    excluded_liability_codes: frozenset[str]
    vat_receivable_code: str
    vat_payable_code: str
    fixed_asset_code: int
    non_current_liability_code: int
    suppression_threshold: Decimal
    balance_tolerance: Decimal
    ledger_tolerance: Decimal
