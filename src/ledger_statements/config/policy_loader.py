"""Utilities for loading the statement layout policy from YAML."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from ledger_statements.ordering import OrderingPolicy, PinnedCode, StatementPolicy

DEFAULT_POLICY_PATH = Path(__file__).resolve().parent / "policy.yaml"

SECTION_NAMES = ("revenue", "cost_of_sales", "operating_expenses", "current_assets")


def _parse_pins(source: str, section: str, raw: Any) -> OrderingPolicy:
    if raw is None:
        return OrderingPolicy()
    if not isinstance(raw, list):
        raise ValueError(f"{source}: sections.{section} must be a list")

    pins: list[PinnedCode] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict) or "code" not in entry:
            raise ValueError(f"{source}: sections.{section}[{index}] needs a code")
        try:
            priority = int(entry.get("priority", index + 1))
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"{source}: invalid priority in sections.{section}[{index}]: "
                f"{entry.get('priority')!r}"
            ) from exc
        pins.append(
            PinnedCode(
                code=str(entry["code"]),
                priority=priority,
                label=entry.get("label"),
                negate=bool(entry.get("negate", False)),
                always=bool(entry.get("always", False)),
            )
        )

    try:
        return OrderingPolicy(tuple(pins))
    except ValueError as exc:
        raise ValueError(f"{source}: sections.{section}: {exc}") from exc


def _code(source: str, codes: dict[str, Any], key: str) -> str:
    value = codes.get(key)
    if value is None or str(value).strip() == "":
        raise ValueError(f"{source}: codes.{key} is required")
    return str(value).strip()


def _code_set(source: str, codes: dict[str, Any], key: str) -> frozenset[str]:
    value = codes.get(key) or []
    if not isinstance(value, list):
        raise ValueError(f"{source}: codes.{key} must be a list")
    return frozenset(str(code).strip() for code in value)


def _decimal(source: str, thresholds: dict[str, Any], key: str, default: str) -> Decimal:
    value = thresholds.get(key, default)
    try:
        parsed = Decimal(str(value))
    except (TypeError, ValueError, InvalidOperation) as exc:
        raise ValueError(f"{source}: invalid thresholds.{key}: {value!r}") from exc
    if parsed < 0:
        raise ValueError(f"{source}: negative thresholds.{key}: {parsed}")
    return parsed


def parse_statement_policy(data: dict[str, Any], source: str = "policy") -> StatementPolicy:
    """Build a StatementPolicy from already-parsed YAML data."""
    if not isinstance(data, dict):
        raise ValueError(f"{source}: policy must be a mapping")

    sections = data.get("sections") or {}
    codes = data.get("codes") or {}
    thresholds = data.get("thresholds") or {}
    for key, value in (("sections", sections), ("codes", codes), ("thresholds", thresholds)):
        if not isinstance(value, dict):
            raise ValueError(f"{source}: {key} must be a mapping")

    unknown = set(sections) - set(SECTION_NAMES)
    if unknown:
        raise ValueError(f"{source}: unknown sections {sorted(unknown)}")

    try:
        fixed_asset_code = int(thresholds.get("fixed_asset_code", 1500))
        non_current_liability_code = int(thresholds.get("non_current_liability_code", 2500))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{source}: code thresholds must be integers") from exc

    return StatementPolicy(
        revenue=_parse_pins(source, "revenue", sections.get("revenue")),
        cost_of_sales=_parse_pins(source, "cost_of_sales", sections.get("cost_of_sales")),
        operating_expenses=_parse_pins(
            source, "operating_expenses", sections.get("operating_expenses")
        ),
        current_assets=_parse_pins(source, "current_assets", sections.get("current_assets")),
        primary_inventory_code=_code(source, codes, "primary_inventory"),
        fallback_cost_of_sales_code=_code(source, codes, "fallback_cost_of_sales"),
        cost_of_sales_codes=_code_set(source, codes, "cost_of_sales"),
        excluded_current_asset_codes=_code_set(source, codes, "excluded_current_assets"),
        excluded_liability_codes=_code_set(source, codes, "excluded_liabilities"),
        vat_receivable_code=_code(source, codes, "vat_receivable"),
        vat_payable_code=_code(source, codes, "vat_payable"),
        fixed_asset_code=fixed_asset_code,
        non_current_liability_code=non_current_liability_code,
        suppression_threshold=_decimal(source, thresholds, "suppression", "0.01"),
        balance_tolerance=_decimal(source, thresholds, "balance_tolerance", "0.1"),
        ledger_tolerance=_decimal(source, thresholds, "ledger_tolerance", "0.01"),
    )


@lru_cache
def load_statement_policy(path: Path | None = None) -> StatementPolicy:
    """Load the statement policy, defaulting to the packaged policy.yaml.

    Args:
        path: Optional override file (``STATEMENT_POLICY_PATH``).

    Returns:
        Parsed and validated policy.
    """
    policy_path = Path(path) if path is not None else DEFAULT_POLICY_PATH
    if not policy_path.exists():
        raise ValueError(f"{policy_path.name}: policy file not found at {policy_path}")

    raw = policy_path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    return parse_statement_policy(data, source=policy_path.name)
