"""Cost-of-sales estimate from invoiced product lines.

Used only when the trial balance carries no cost-of-sales postings at all.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

import structlog

from ledger_statements.errors import DataQualityKind, DataQualityReport
from ledger_statements.models import ZERO, CatalogItem, Invoice, InvoiceLine, Period

logger = structlog.get_logger(__name__)

ESTIMATE_STATUSES = frozenset({"sent", "paid", "approved", "posted"})
PRODUCT_ITEM_TYPE = "product"


class CostOfSalesEstimator:
    """Estimates cost of sales as catalog cost × quantity over sold products."""

    def __init__(self, statuses: Iterable[str] = ESTIMATE_STATUSES):
        self._statuses = frozenset(status.lower() for status in statuses)
        self._logger = logger.bind(component="cost_of_sales_estimator")

    def in_period(self, invoices: Iterable[Invoice], period: Period) -> list[Invoice]:
        selected = []
        for invoice in invoices:
            if invoice.status not in self._statuses:
                continue
            effective = invoice.effective_date
            if effective is None or not period.contains(effective):
                continue
            selected.append(invoice)
        return selected

    @staticmethod
    def _key(name: str) -> str:
        return name.strip().lower()

    def match_catalog(
        self, description: str, catalog: Sequence[CatalogItem]
    ) -> CatalogItem | None:
        """Exact case-insensitive name first, then substring either way."""
        key = self._key(description)
        if not key:
            return None
        for item in catalog:
            if self._key(item.name) == key:
                return item
        for item in catalog:
            name = self._key(item.name)
            if name and (name in key or key in name):
                return item
        return None

    def unit_cost(
        self,
        line: InvoiceLine,
        catalog: Sequence[CatalogItem],
        report: DataQualityReport | None = None,
    ) -> Decimal:
        item = self.match_catalog(line.description, catalog)
        if item is not None and item.cost_price > 0:
            return item.cost_price
        if report is not None:
            report.record(
                DataQualityKind.MISSING_COST_PRICE,
                "no catalog cost for invoiced product; using unit price",
                description=line.description,
                unit_price=str(line.unit_price),
            )
        return line.unit_price

    def estimate(
        self,
        invoices: Iterable[Invoice],
        catalog: Sequence[CatalogItem],
        period: Period,
        report: DataQualityReport | None = None,
    ) -> Decimal:
        total = ZERO
        line_count = 0
        selected = self.in_period(invoices, period)
        for invoice in selected:
            for line in invoice.lines:
                if line.item_type != PRODUCT_ITEM_TYPE:
                    continue
                total += self.unit_cost(line, catalog, report) * line.quantity
                line_count += 1

        self._logger.info(
            "cost_of_sales_estimated",
            invoices=len(selected),
            product_lines=line_count,
            estimate=str(total),
        )
        return total

    @staticmethod
    def inventory_value(catalog: Iterable[CatalogItem]) -> Decimal:
        """Value of stock on hand at catalog cost."""
        return sum(
            (
                item.cost_price * item.quantity_on_hand
                for item in catalog
                if item.quantity_on_hand > 0
            ),
            ZERO,
        )
