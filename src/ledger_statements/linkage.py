"""Pairing of fixed-asset rows with their accumulated-depreciation contras."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Protocol

from ledger_statements.classifier import AccountClassifier
from ledger_statements.models import TrialBalanceRow


class AssetLinkage(Protocol):
    """Lookup from an asset row to the contra rows that offset it."""

    def contras_for(self, asset: TrialBalanceRow) -> list[TrialBalanceRow]: ...

    def unmatched(self) -> list[TrialBalanceRow]: ...


LinkageFactory = Callable[[Sequence[TrialBalanceRow], Sequence[TrialBalanceRow]], AssetLinkage]


class NameAssetLinkage:
    """Best-effort linkage by normalised account name.

    An asset picks up every contra whose normalised name contains, or is
    contained in, its own. A contra may therefore offset more than one
    asset when names overlap.
    """

    def __init__(
        self, assets: Sequence[TrialBalanceRow], contras: Sequence[TrialBalanceRow]
    ):
        self._links: dict[str, list[TrialBalanceRow]] = {}
        linked: set[str] = set()
        for asset in assets:
            matches = [c for c in contras if AccountClassifier.related(asset.name, c.name)]
            self._links[asset.account_id] = matches
            linked.update(c.account_id for c in matches)
        self._unmatched = [c for c in contras if c.account_id not in linked]

    def contras_for(self, asset: TrialBalanceRow) -> list[TrialBalanceRow]:
        return list(self._links.get(asset.account_id, []))

    def unmatched(self) -> list[TrialBalanceRow]:
        return list(self._unmatched)


class KeyedAssetLinkage:
    """Linkage by explicit contra-account id to asset-account id mapping."""

    def __init__(
        self,
        assets: Sequence[TrialBalanceRow],
        contras: Sequence[TrialBalanceRow],
        contra_to_asset: Mapping[str, str],
    ):
        asset_ids = {asset.account_id for asset in assets}
        self._links: dict[str, list[TrialBalanceRow]] = {}
        self._unmatched: list[TrialBalanceRow] = []
        for contra in contras:
            asset_id = contra_to_asset.get(contra.account_id)
            if asset_id in asset_ids:
                self._links.setdefault(asset_id, []).append(contra)
            else:
                self._unmatched.append(contra)

    @classmethod
    def factory(cls, contra_to_asset: Mapping[str, str]) -> LinkageFactory:
        def build(
            assets: Sequence[TrialBalanceRow], contras: Sequence[TrialBalanceRow]
        ) -> AssetLinkage:
            return cls(assets, contras, contra_to_asset)

        return build

    def contras_for(self, asset: TrialBalanceRow) -> list[TrialBalanceRow]:
        return list(self._links.get(asset.account_id, []))

    def unmatched(self) -> list[TrialBalanceRow]:
        return list(self._unmatched)
