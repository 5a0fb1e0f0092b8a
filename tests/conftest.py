"""Pytest configuration and fixtures."""

import os
from datetime import date
from decimal import Decimal

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("LEDGER_USERNAME", "test@example.com")
os.environ.setdefault("LEDGER_PASSWORD", "testpassword")

from ledger_statements.classifier import AccountClassifier  # noqa: E402
from ledger_statements.config.policy_loader import load_statement_policy  # noqa: E402
from ledger_statements.models import (  # noqa: E402
    Account,
    AccountType,
    LedgerLine,
    LineOrigin,
    LineStatus,
)


@pytest.fixture
def policy():
    """Default packaged statement policy."""
    return load_statement_policy()


@pytest.fixture
def classifier(policy):
    return AccountClassifier(policy)


@pytest.fixture
def make_account():
    """Factory for chart-of-accounts entries; the id defaults to the code."""

    def _make(code: str, name: str, account_type: AccountType, account_id: str | None = None):
        return Account(id=account_id or code, code=code, name=name, type=account_type)

    return _make


@pytest.fixture
def make_line():
    """Factory for ledger lines dated inside the default test period."""

    def _make(
        account_id: str,
        debit: str = "0",
        credit: str = "0",
        transaction_id: str | None = None,
        entry_date: date | None = date(2024, 6, 15),
        status: LineStatus | None = LineStatus.POSTED,
        origin: LineOrigin = LineOrigin.LEDGER,
        description: str = "",
    ):
        return LedgerLine(
            account_id=account_id,
            debit=Decimal(debit),
            credit=Decimal(credit),
            date=entry_date,
            status=status,
            transaction_id=transaction_id,
            description=description,
            origin=origin,
        )

    return _make


@pytest.fixture
def mock_login_response():
    """Mock successful login response."""
    return {
        "user": {
            "id": "11111111-1111-1111-1111-111111111111",
            "email": "test@example.com",
        },
        "tokens": {
            "access_token": "access-token-123",
            "refresh_token": "refresh-token-123",
        },
    }


@pytest.fixture
def mock_accounts_response():
    """Mock chart of accounts response."""
    return [
        {"id": "a-bank", "code": "1100", "name": "Bank", "account_type": "Asset"},
        {"id": "a-sales", "code": "4000", "name": "Sales", "account_type": "REVENUE"},
        {"id": "a-misc", "code": "9900", "name": "Suspense", "account_type": "memo"},
    ]


@pytest.fixture
def build_trial_balance(policy):
    """Build a trial balance from (code, name, type, signed balance) tuples.

    Each balance is posted as one line on the account's natural side, or
    the opposite side when negative.
    """
    from ledger_statements.aggregator import LedgerAggregator
    from ledger_statements.models import Period

    def _build(rows, period=None, company_id="co-1"):
        period = period or Period(start=date(2024, 1, 1), end=date(2024, 12, 31))
        accounts = []
        lines = []
        for code, name, account_type, amount in rows:
            accounts.append(Account(id=code, code=code, name=name, type=account_type))
            amount = Decimal(str(amount))
            debit_side = account_type in (AccountType.ASSET, AccountType.EXPENSE)
            if amount < 0:
                debit_side = not debit_side
            lines.append(
                LedgerLine(
                    account_id=code,
                    debit=abs(amount) if debit_side else Decimal("0"),
                    credit=Decimal("0") if debit_side else abs(amount),
                    date=date(2024, 6, 15),
                    status=LineStatus.POSTED,
                    transaction_id=None,
                    description="",
                    origin=LineOrigin.LEDGER,
                )
            )
        return LedgerAggregator(policy).aggregate(company_id, period, accounts, lines, [])

    return _build
