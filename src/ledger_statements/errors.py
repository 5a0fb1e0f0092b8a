"""Exceptions and data-quality reporting for the statement engine."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class StatementEngineError(Exception):
    """Base exception for the statement engine."""

    pass


class DataUnavailable(StatementEngineError):
    """A collaborator required to build statements could not be read."""

    def __init__(self, source: str, message: str | None = None):
        super().__init__(message or f"{source} unavailable")
        self.source = source


class SourceUnavailable(DataUnavailable):
    """Accounts or ledger lines could not be fetched."""

    pass


class DataQualityKind(str, Enum):
    NULL_DATE = "null_date"
    UNKNOWN_ACCOUNT = "unknown_account"
    UNMATCHED_CONTRA = "unmatched_contra"
    NBV_FLOORED = "nbv_floored"
    MISSING_COST_PRICE = "missing_cost_price"
    OPTIONAL_SOURCE_FAILED = "optional_source_failed"
    CASH_FLOW_MISMATCH = "cash_flow_mismatch"


@dataclass(frozen=True)
class DataQualityIssue:
    """A non-fatal defect in source data and the substitute that was used."""

    kind: DataQualityKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)


class DataQualityReport:
    """Collects data-quality warnings raised while building statements.

    Each recorded issue is also logged as a warning so that operators see
    it even when the caller ignores the report.
    """

    def __init__(self, company_id: str | None = None):
        self.company_id = company_id
        self._issues: list[DataQualityIssue] = []
        self._logger = logger.bind(component="data_quality", company_id=company_id)

    def record(self, kind: DataQualityKind, message: str, **context: Any) -> DataQualityIssue:
        issue = DataQualityIssue(kind=kind, message=message, context=context)
        self._issues.append(issue)
        self._logger.warning(f"data_quality_{kind.value}", detail=message, **context)
        return issue

    def count(self, kind: DataQualityKind) -> int:
        return sum(1 for issue in self._issues if issue.kind == kind)

    def of_kind(self, kind: DataQualityKind) -> list[DataQualityIssue]:
        return [issue for issue in self._issues if issue.kind == kind]

    def summary(self) -> dict[str, int]:
        return dict(Counter(issue.kind.value for issue in self._issues))

    @property
    def issues(self) -> tuple[DataQualityIssue, ...]:
        return tuple(self._issues)

    def __iter__(self) -> Iterator[DataQualityIssue]:
        return iter(self._issues)

    def __len__(self) -> int:
        return len(self._issues)
