"""Tests for the ordering policy and the YAML policy loader."""

from decimal import Decimal
from pathlib import Path

import pytest

from ledger_statements.config.policy_loader import (
    DEFAULT_POLICY_PATH,
    load_statement_policy,
    parse_statement_policy,
)
from ledger_statements.models import AccountType, TrialBalanceRow
from ledger_statements.ordering import OrderingPolicy, PinnedCode


def _row(code: str) -> TrialBalanceRow:
    return TrialBalanceRow(
        account_id=code, code=code, name=code, type=AccountType.ASSET, balance=Decimal("1")
    )


def _minimal_codes() -> dict:
    return {
        "primary_inventory": 1300,
        "fallback_cost_of_sales": 5000,
        "vat_receivable": 1210,
        "vat_payable": 2200,
    }


class TestOrderingPolicy:
    """Tests for pinned-code ordering."""

    def test_pins_first_in_priority_order(self):
        policy = OrderingPolicy((PinnedCode("1200", 2), PinnedCode("1100", 1)))
        rows = [_row("1050"), _row("1200"), _row("1100"), _row("1060")]

        assert [row.code for row in policy.order(rows)] == ["1100", "1200", "1050", "1060"]

    def test_split_ignores_missing_pins(self):
        policy = OrderingPolicy((PinnedCode("1100", 1), PinnedCode("9999", 2)))
        pinned, rest = policy.split([_row("1100"), _row("1200")])

        assert [(pin.code, row.code) for pin, row in pinned] == [("1100", "1100")]
        assert [row.code for row in rest] == ["1200"]

    def test_duplicate_codes_rejected(self):
        with pytest.raises(ValueError, match="duplicate"):
            OrderingPolicy((PinnedCode("1100", 1), PinnedCode("1100", 2)))

    def test_pin_for(self):
        policy = OrderingPolicy((PinnedCode("9500", 1, label="Gain", negate=True),))

        assert policy.pin_for("9500").negate is True
        assert policy.pin_for("4000") is None


class TestDefaultPolicy:
    """Tests for the packaged policy.yaml."""

    def test_loads(self):
        policy = load_statement_policy()

        assert policy.primary_inventory_code == "1300"
        assert policy.fallback_cost_of_sales_code == "5000"
        assert policy.cost_of_sales_codes == frozenset({"9500", "9600"})
        assert policy.excluded_current_asset_codes == frozenset({"1210", "2110", "2210"})
        assert policy.excluded_liability_codes == frozenset({"2100", "2200"})
        assert policy.fixed_asset_code == 1500
        assert policy.non_current_liability_code == 2500
        assert policy.suppression_threshold == Decimal("0.01")
        assert policy.balance_tolerance == Decimal("0.1")

    def test_section_pins(self):
        policy = load_statement_policy()

        assert policy.revenue.codes == ("4000", "9500")
        assert policy.cost_of_sales.codes == ("9500", "9600")
        assert policy.current_assets.codes == ("1100", "1200")
        gain = policy.cost_of_sales.pin_for("9500")
        assert gain.negate is True
        assert gain.always is True

    def test_cached(self):
        assert load_statement_policy() is load_statement_policy()

    def test_default_path_exists(self):
        assert DEFAULT_POLICY_PATH.exists()


class TestParsePolicy:
    """Tests for policy validation errors."""

    def test_minimal_policy_uses_defaults(self):
        policy = parse_statement_policy({"codes": _minimal_codes()})

        assert policy.revenue.pins == ()
        assert policy.cost_of_sales_codes == frozenset()
        assert policy.ledger_tolerance == Decimal("0.01")

    def test_missing_required_code(self):
        codes = _minimal_codes()
        del codes["vat_payable"]

        with pytest.raises(ValueError, match="codes.vat_payable is required"):
            parse_statement_policy({"codes": codes}, source="custom.yaml")

    def test_unknown_section(self):
        data = {"codes": _minimal_codes(), "sections": {"goodwill": []}}

        with pytest.raises(ValueError, match="unknown sections"):
            parse_statement_policy(data)

    def test_pin_without_code(self):
        data = {"codes": _minimal_codes(), "sections": {"revenue": [{"priority": 1}]}}

        with pytest.raises(ValueError, match=r"sections.revenue\[0\] needs a code"):
            parse_statement_policy(data)

    def test_duplicate_pins_name_the_source(self):
        data = {
            "codes": _minimal_codes(),
            "sections": {"revenue": [{"code": 4000}, {"code": 4000}]},
        }

        with pytest.raises(ValueError, match="custom.yaml: sections.revenue"):
            parse_statement_policy(data, source="custom.yaml")

    def test_negative_threshold(self):
        data = {"codes": _minimal_codes(), "thresholds": {"suppression": "-1"}}

        with pytest.raises(ValueError, match="negative thresholds.suppression"):
            parse_statement_policy(data)

    def test_not_a_mapping(self):
        with pytest.raises(ValueError, match="policy must be a mapping"):
            parse_statement_policy(["codes"])  # type: ignore[arg-type]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ValueError, match="policy file not found"):
            load_statement_policy(tmp_path / "missing.yaml")

    def test_override_file(self, tmp_path: Path):
        path = tmp_path / "policy.yaml"
        path.write_text(
            "codes:\n"
            "  primary_inventory: 1400\n"
            "  fallback_cost_of_sales: 5100\n"
            "  vat_receivable: 1210\n"
            "  vat_payable: 2200\n"
            "sections:\n"
            "  current_assets:\n"
            "    - code: 1000\n"
            "      priority: 1\n",
            encoding="utf-8",
        )

        policy = load_statement_policy(path)

        assert policy.primary_inventory_code == "1400"
        assert policy.current_assets.codes == ("1000",)
