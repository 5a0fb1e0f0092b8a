"""Tests for ledger aggregation into trial balances."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_statements.aggregator import LedgerAggregator
from ledger_statements.errors import DataQualityKind, DataQualityReport
from ledger_statements.models import AccountType, LineOrigin, LineStatus, Period

COMPANY_ID = "co-1"
PERIOD = Period(start=date(2024, 1, 1), end=date(2024, 12, 31))


@pytest.fixture
def aggregator(policy):
    return LedgerAggregator(policy)


@pytest.fixture
def accounts(make_account):
    return [
        make_account("1000", "Cash", AccountType.ASSET),
        make_account("2000", "Accounts Payable", AccountType.LIABILITY),
        make_account("3000", "Owner Capital", AccountType.EQUITY),
        make_account("4000", "Sales", AccountType.REVENUE),
        make_account("6000", "Rent", AccountType.EXPENSE),
    ]


class TestSignedBalances:
    """Tests for per-account sums and natural-side signs."""

    def test_single_debit_on_asset(self, aggregator, accounts, make_line):
        """A debit of 100 on a debit-normal account gives a balance of 100."""
        lines = [make_line("1000", debit="100")]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])

        row = tb.row_for_code("1000")
        assert row is not None
        assert row.balance == Decimal("100")

    def test_credit_normal_balance(self, aggregator, accounts, make_line):
        lines = [
            make_line("1000", debit="250", transaction_id="t1"),
            make_line("4000", credit="250", transaction_id="t1"),
        ]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])

        assert tb.balance_for_code("4000") == Decimal("250")
        assert tb.balance_for_code("1000") == Decimal("250")

    def test_equation_holds_over_all_rows(self, aggregator, accounts, make_line):
        """Debit-normal minus credit-normal balances equals raw debits minus credits."""
        lines = [
            make_line("1000", debit="500.10", transaction_id="t1"),
            make_line("3000", credit="500.10", transaction_id="t1"),
            make_line("6000", debit="120", transaction_id="t2"),
            make_line("2000", credit="100", transaction_id="t2"),
            make_line("4000", credit="33.33", transaction_id="t3"),
        ]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])

        debit_normal = sum(
            (r.balance for r in tb.rows if r.type in (AccountType.ASSET, AccountType.EXPENSE)),
            Decimal("0"),
        )
        credit_normal = sum(
            (r.balance for r in tb.rows if r.type not in (AccountType.ASSET, AccountType.EXPENSE)),
            Decimal("0"),
        )
        raw = sum((line.debit - line.credit for line in lines), Decimal("0"))
        assert debit_normal - credit_normal == raw

    def test_idempotent(self, aggregator, accounts, make_line):
        lines = [make_line("1000", debit="10"), make_line("4000", credit="10")]
        first = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])
        second = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])

        assert first.rows == second.rows
        assert first.visible == second.visible


class TestDeduplication:
    """Tests for merging the two line sources."""

    def test_shared_transaction_counts_once(self, aggregator, accounts, make_line):
        """The same posting in both sources contributes once."""
        direct = [make_line("1000", debit="50", transaction_id="tx-1")]
        derived = [
            make_line("1000", debit="50", transaction_id="tx-1", origin=LineOrigin.TRANSACTION)
        ]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, direct, derived)

        assert tb.balance_for_code("1000") == Decimal("50")

    def test_direct_source_wins_for_whole_transaction(self, make_line):
        direct = [make_line("1000", debit="50", transaction_id="tx-1")]
        derived = [
            make_line("1000", debit="70", transaction_id="tx-1", origin=LineOrigin.TRANSACTION),
            make_line("4000", credit="70", transaction_id="tx-1", origin=LineOrigin.TRANSACTION),
            make_line("1000", debit="5", transaction_id="tx-2", origin=LineOrigin.TRANSACTION),
        ]
        merged = LedgerAggregator.deduplicate(direct, derived)

        assert [line.transaction_id for line in merged] == ["tx-1", "tx-2"]
        assert merged[0].origin == LineOrigin.LEDGER

    def test_lines_without_transaction_id_are_kept(self, make_line):
        direct = [make_line("1000", debit="1")]
        derived = [make_line("1000", debit="2", origin=LineOrigin.TRANSACTION)]

        assert len(LedgerAggregator.deduplicate(direct, derived)) == 2


class TestFiltering:
    """Tests for status, date window and suppression rules."""

    def test_period_window_and_status(self, aggregator, accounts, make_line):
        lines = [
            make_line("1000", debit="1", entry_date=date(2023, 12, 31)),
            make_line("1000", debit="2", entry_date=date(2024, 1, 1)),
            make_line("1000", debit="4", entry_date=date(2024, 12, 31)),
            make_line("1000", debit="8", entry_date=date(2025, 1, 1)),
            make_line("1000", debit="16", status=LineStatus.PENDING),
            make_line("1000", debit="32", status=None),
        ]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])

        assert tb.balance_for_code("1000") == Decimal("6")

    def test_cumulative_drops_lower_bound(self, aggregator, accounts, make_line):
        lines = [
            make_line("1000", debit="1", entry_date=date(2020, 1, 1)),
            make_line("1000", debit="2", entry_date=date(2024, 6, 1)),
        ]
        tb = aggregator.aggregate(
            COMPANY_ID, PERIOD.as_cumulative(), accounts, lines, []
        )

        assert tb.balance_for_code("1000") == Decimal("3")

    def test_cumulative_skips_carry_forward_entries(self, aggregator, accounts, make_line):
        lines = [
            make_line("1000", debit="10"),
            make_line("1000", debit="99", description="Opening balance (carry forward)"),
        ]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD.as_cumulative(), accounts, lines, [])

        assert tb.balance_for_code("1000") == Decimal("10")

    def test_custom_statuses(self, policy, accounts, make_line):
        aggregator = LedgerAggregator(policy, statuses=[LineStatus.POSTED, LineStatus.APPROVED])
        lines = [
            make_line("1000", debit="1"),
            make_line("1000", debit="2", status=LineStatus.APPROVED),
        ]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])

        assert tb.balance_for_code("1000") == Decimal("3")

    def test_null_dates_excluded_and_reported(self, aggregator, accounts, make_line):
        report = DataQualityReport(COMPANY_ID)
        lines = [make_line("1000", debit="5"), make_line("1000", debit="7", entry_date=None)]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [], report=report)

        assert tb.balance_for_code("1000") == Decimal("5")
        issues = report.of_kind(DataQualityKind.NULL_DATE)
        assert len(issues) == 1
        assert issues[0].context["count"] == 1

    def test_unknown_accounts_reported(self, aggregator, accounts, make_line):
        report = DataQualityReport(COMPANY_ID)
        aggregator.aggregate(
            COMPANY_ID, PERIOD, accounts, [make_line("ghost", debit="1")], [], report=report
        )

        assert report.count(DataQualityKind.UNKNOWN_ACCOUNT) == 1

    def test_suppression_keeps_pinned_lookup(self, aggregator, accounts, make_line):
        """Zero rows are hidden from the generic list but still resolvable."""
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, [make_line("1000", debit="1")], [])

        assert [row.code for row in tb.visible] == ["1000"]
        assert tb.row_for_code("4000") is not None
        assert tb.balance_for_code("4000") == Decimal("0")

    def test_secondary_inventory_rows_hidden(self, aggregator, make_account, make_line):
        accounts = [
            make_account("1300", "Inventory", AccountType.ASSET),
            make_account("1310", "Inventory - Raw Materials", AccountType.ASSET),
        ]
        lines = [make_line("1300", debit="10"), make_line("1310", debit="20")]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, lines, [])

        assert [row.code for row in tb.visible] == ["1300"]

    def test_inventory_value_override(self, aggregator, make_account, make_line):
        accounts = [make_account("1300", "Inventory", AccountType.ASSET)]
        snapshot = aggregator.snapshot(
            COMPANY_ID, PERIOD, accounts, [make_line("1300", debit="10")], []
        )
        tb = aggregator.trial_balance(snapshot, inventory_value=Decimal("42"))

        assert tb.balance_for_code("1300") == Decimal("42")

    def test_rows_sorted_by_code(self, aggregator, make_account):
        accounts = [
            make_account("4000", "Sales", AccountType.REVENUE),
            make_account("1000", "Cash", AccountType.ASSET),
        ]
        tb = aggregator.aggregate(COMPANY_ID, PERIOD, accounts, [], [])

        assert [row.code for row in tb.rows] == ["1000", "4000"]
