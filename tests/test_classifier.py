"""Tests for account classification and name heuristics."""

import pytest

from ledger_statements.classifier import AccountClassifier, code_number
from ledger_statements.models import Account, AccountType, NormalSide


class TestClassify:
    """Tests for type and natural-side mapping."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Asset", AccountType.ASSET),
            ("LIABILITY", AccountType.LIABILITY),
            (" equity ", AccountType.EQUITY),
            ("Revenue", AccountType.REVENUE),
            ("income", AccountType.REVENUE),
            ("expense", AccountType.EXPENSE),
            ("memo", AccountType.OTHER),
            (None, AccountType.OTHER),
        ],
    )
    def test_raw_type_strings(self, classifier, raw, expected):
        """Raw type strings map case-insensitively into the closed enum."""
        account_type, _ = classifier.classify({"account_type": raw})
        assert account_type == expected

    def test_natural_sides(self, classifier, make_account):
        """Assets and expenses are debit-normal; everything else credit-normal."""
        assert classifier.classify(make_account("1000", "Cash", AccountType.ASSET))[1] == (
            NormalSide.DEBIT
        )
        assert classifier.classify(make_account("6000", "Rent", AccountType.EXPENSE))[1] == (
            NormalSide.DEBIT
        )
        for account_type in (
            AccountType.LIABILITY,
            AccountType.EQUITY,
            AccountType.REVENUE,
            AccountType.OTHER,
        ):
            account = make_account("9000", "X", account_type)
            assert classifier.classify(account)[1] == NormalSide.CREDIT

    def test_account_from_record_parses_type(self):
        """Account records are parsed into the enum at ingestion."""
        account = Account.from_record(
            {"id": 7, "code": " 4000 ", "name": "Sales", "account_type": "Income"}
        )

        assert account.id == "7"
        assert account.code == "4000"
        assert account.type == AccountType.REVENUE
        assert account.active is True


class TestHeuristics:
    """Tests for cost-of-sales and fixed-asset heuristics."""

    def test_cost_of_sales_by_prefix(self, classifier, make_account):
        assert classifier.is_cost_of_sales(make_account("5010", "Purchases", AccountType.EXPENSE))

    def test_cost_of_sales_by_name(self, classifier, make_account):
        account = make_account("6100", "Cost of Goods Sold", AccountType.EXPENSE)
        assert classifier.is_cost_of_sales(account)

    def test_cost_of_sales_by_disposal_codes(self, classifier, make_account):
        assert classifier.is_cost_of_sales(
            make_account("9500", "Gain on Sale of Assets", AccountType.REVENUE)
        )
        assert classifier.is_cost_of_sales(
            make_account("9600", "Loss on Sale of Assets", AccountType.EXPENSE)
        )

    def test_disposal_codes_are_not_direct_costs(self, classifier, make_account):
        assert not classifier.is_direct_cost(
            make_account("9500", "Gain on Sale of Assets", AccountType.REVENUE)
        )
        assert classifier.is_direct_cost(make_account("5010", "Purchases", AccountType.EXPENSE))
        assert classifier.is_direct_cost(
            make_account("6100", "Cost of Packaging", AccountType.EXPENSE)
        )

    def test_not_cost_of_sales(self, classifier, make_account):
        assert not classifier.is_cost_of_sales(make_account("6000", "Rent", AccountType.EXPENSE))

    def test_fixed_asset_threshold(self, classifier, make_account):
        assert classifier.is_fixed_asset(make_account("1500", "Equipment", AccountType.ASSET))
        assert not classifier.is_fixed_asset(make_account("1499", "Prepaid", AccountType.ASSET))

    def test_fixed_asset_requires_asset_type(self, classifier, make_account):
        mortgage = make_account("2500", "Mortgage", AccountType.LIABILITY)
        assert not classifier.is_fixed_asset(mortgage)

    def test_non_numeric_code_is_never_fixed(self, classifier, make_account):
        assert not classifier.is_fixed_asset(make_account("FA-01", "Equipment", AccountType.ASSET))

    def test_code_number(self):
        assert code_number("1500") == 1500
        assert code_number("1500-01") == 1500
        assert code_number("FA") is None

    def test_vat_matches_whole_word_only(self, classifier, make_account):
        assert classifier.is_vat(make_account("1210", "VAT Input", AccountType.ASSET))
        assert not classifier.is_vat(make_account("2600", "Private Loan", AccountType.LIABILITY))

    def test_non_current_liability(self, classifier, make_account):
        assert classifier.is_non_current_liability(
            make_account("2500", "Bank Loan", AccountType.LIABILITY)
        )
        assert classifier.is_non_current_liability(
            make_account("2300", "Long Term Borrowings", AccountType.LIABILITY)
        )
        assert classifier.is_non_current_liability(
            make_account("2310", "Mortgage", AccountType.LIABILITY)
        )
        assert not classifier.is_non_current_liability(
            make_account("2000", "Accounts Payable", AccountType.LIABILITY)
        )


class TestContraMatching:
    """Tests for name normalisation and relatedness."""

    def test_normalize_strips_contra_tokens(self):
        name = "Accumulated Depreciation – Vehicles"
        assert AccountClassifier.normalize_name(name) == "vehicles"
        assert AccountClassifier.normalize_name("Office_Equipment") == "office equipment"

    def test_related_either_direction(self):
        assert AccountClassifier.related("Vehicles", "Accumulated Depreciation - Vehicles")
        assert AccountClassifier.related("Accumulated Depreciation - Equipment", "Office Equipment")

    def test_unrelated_names(self):
        assert not AccountClassifier.related("Vehicles", "Accumulated Depreciation - Buildings")

    def test_empty_normalized_name_relates_to_nothing(self):
        assert not AccountClassifier.related("Accumulated Depreciation", "Vehicles")
