"""Independent debit/credit check over raw ledger lines."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

import structlog

from ledger_statements.aggregator import LedgerAggregator, LedgerSnapshot
from ledger_statements.models import ZERO, LedgerLine, LedgerValidationResult, Period

logger = structlog.get_logger(__name__)


class BalanceValidator:
    """Checks that included lines have equal total debits and credits.

    The result is reported, never raised and never corrected: a nonzero
    difference means an unbalanced posting upstream.
    """

    def __init__(self, tolerance: Decimal = Decimal("0.01")):
        self._tolerance = tolerance
        self._logger = logger.bind(component="balance_validator")

    def check_lines(self, lines: Iterable[LedgerLine]) -> LedgerValidationResult:
        total_debits = total_credits = ZERO
        count = 0
        for line in lines:
            total_debits += line.debit
            total_credits += line.credit
            count += 1
        difference = total_debits - total_credits
        return LedgerValidationResult(
            is_balanced=abs(difference) < self._tolerance,
            difference=difference,
            total_debits=total_debits,
            total_credits=total_credits,
            line_count=count,
        )

    def validate(
        self,
        snapshot: LedgerSnapshot,
        aggregator: LedgerAggregator,
        period: Period | None = None,
    ) -> LedgerValidationResult:
        """Check the lines the aggregator would include for ``period``."""
        period = period or snapshot.period
        result = self.check_lines(aggregator.included_lines(snapshot, period))
        if result.is_balanced:
            self._logger.debug(
                "ledger_balanced",
                company_id=snapshot.company_id,
                lines=result.line_count,
            )
        else:
            self._logger.warning(
                "ledger_out_of_balance",
                company_id=snapshot.company_id,
                period=period.label(),
                difference=str(result.difference),
                total_debits=str(result.total_debits),
                total_credits=str(result.total_credits),
            )
        return result
