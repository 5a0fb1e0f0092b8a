"""Account classification and name heuristics."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Protocol

from ledger_statements.models import AccountType, NormalSide
from ledger_statements.ordering import StatementPolicy

COST_OF_SALES_PREFIX = "50"

_LEADING_DIGITS = re.compile(r"^\d+")
_CONTRA_TOKENS = re.compile(r"\b(accumulated|depreciation)\b")
_PUNCTUATION = re.compile(r"[\W_]+")
_VAT = re.compile(r"\bvat\b")


class AccountLike(Protocol):
    @property
    def code(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def type(self) -> AccountType: ...


def code_number(code: str) -> int | None:
    """Numeric value of an account code's leading digits, if it has any."""
    match = _LEADING_DIGITS.match(code.strip())
    return int(match.group()) if match else None


class AccountClassifier:
    """Maps accounts to types and answers the name/code questions builders ask."""

    def __init__(self, policy: StatementPolicy):
        self._policy = policy

    def classify(self, account: AccountLike | Mapping[str, Any]) -> tuple[AccountType, NormalSide]:
        if isinstance(account, Mapping):
            account_type = AccountType.parse(account.get("account_type", account.get("type")))
        else:
            account_type = AccountType.parse(account.type)
        return account_type, account_type.natural_side

    def is_cost_of_sales(self, account: AccountLike) -> bool:
        return self.is_direct_cost(account) or account.code in self._policy.cost_of_sales_codes

    @staticmethod
    def is_direct_cost(account: AccountLike) -> bool:
        """Trading cost row, as opposed to a disposal row on the allow-list."""
        return (
            account.code.startswith(COST_OF_SALES_PREFIX)
            or "cost of" in account.name.lower()
        )

    def is_fixed_asset(self, account: AccountLike) -> bool:
        number = code_number(account.code)
        return (
            account.type == AccountType.ASSET
            and number is not None
            and number >= self._policy.fixed_asset_code
        )

    def is_non_current_liability(self, account: AccountLike) -> bool:
        number = code_number(account.code)
        name = account.name.lower()
        return (
            (number is not None and number >= self._policy.non_current_liability_code)
            or "long term" in name
            or "long-term" in name
            or "mortgage" in name
        )

    @staticmethod
    def is_accumulated(account: AccountLike) -> bool:
        return "accumulated" in account.name.lower()

    @staticmethod
    def is_vat(account: AccountLike) -> bool:
        return bool(_VAT.search(account.name.lower()))

    @staticmethod
    def is_bank_or_cash(account: AccountLike) -> bool:
        name = account.name.lower()
        return "bank" in name or "cash" in name

    @staticmethod
    def is_inventory(account: AccountLike) -> bool:
        return "inventory" in account.name.lower()

    @staticmethod
    def normalize_name(name: str) -> str:
        """Reduce an account name to the part shared by an asset and its contra.

        Only used for contra-account matching, never for classification.
        """
        lowered = _CONTRA_TOKENS.sub(" ", name.lower())
        return " ".join(_PUNCTUATION.sub(" ", lowered).split())

    @classmethod
    def related(cls, a: str, b: str) -> bool:
        """True if one normalised name contains the other.

        Names that normalise to nothing (e.g. a bare "Accumulated
        Depreciation") relate to nothing.
        """
        left, right = cls.normalize_name(a), cls.normalize_name(b)
        if not left or not right:
            return False
        return left in right or right in left
