"""
Resolves and caches the packages, apps and depots an account is entitled to.
"""

import logging
import os
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from steam_prefill.core.protocols import ProductInfoService
from steam_prefill.exceptions import EntitlementCacheError, EntitlementQueryError
from steam_prefill.models.steam import (
    EntitlementSnapshot,
    License,
    Package,
    PackageRequest,
)

log = logging.getLogger(__name__)


class EntitlementCache:
    """
    Keeps one entitlement snapshot per account on disk to speed up later runs.

    Staleness is judged only by the number of non-expired licenses. If the
    count is unchanged the cached snapshot is reused as is, which means an
    account that gained one license and lost another between runs keeps its
    old snapshot until the count changes.
    """

    def __init__(self, cache_dir_path: Path, product_info: ProductInfoService):
        self.cache_dir = cache_dir_path
        self.product_info = product_info
        self._account_key: str | None = None
        self._snapshot: EntitlementSnapshot | None = None

    def _snapshot_path(self, account_key: str) -> Path:
        return self.cache_dir / f"userLicenses_{account_key}.json"

    @property
    def snapshot(self) -> EntitlementSnapshot:
        if self._snapshot is None:
            raise EntitlementCacheError(
                "Entitlements have not been resolved yet. Call refresh() first."
            )
        return self._snapshot

    @property
    def owned_app_ids(self) -> set[int]:
        return set(self.snapshot.owned_app_ids)

    def has_app_access(self, app_id: int) -> bool:
        return app_id in self.snapshot.owned_app_ids

    def has_depot_access(self, depot_id: int) -> bool:
        return depot_id in self.snapshot.owned_depot_ids

    def load(self, account_key: str) -> EntitlementSnapshot | None:
        """
        Reads the persisted snapshot for an account.

        A missing, unreadable or malformed file is treated as not cached.
        """
        self._account_key = account_key
        path = self._snapshot_path(account_key)
        if not path.is_file():
            return None
        try:
            return EntitlementSnapshot.model_validate_json(
                path.read_text(encoding="utf-8")
            )
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            log.debug(f"Ignoring unreadable entitlement cache '{path.name}': {e}")
            return None

    async def refresh(
        self, licenses: Iterable[License], account_key: str | None = None
    ) -> EntitlementSnapshot:
        """
        Resolves the account's entitlements from its current license list.

        Expired licenses (lapsed subscriptions, for example) still show up as
        owned but their apps cannot be downloaded, so they are filtered out.

        Raises:
            EntitlementQueryError: If the product info query fails.
            EntitlementCacheError: If the new snapshot cannot be persisted.
        """
        account_key = account_key or self._account_key
        if not account_key:
            raise EntitlementCacheError("No account specified for entitlements.")

        non_expired = [lic for lic in licenses if not lic.expired]

        cached = self.load(account_key)
        if cached is not None and cached.license_count == len(non_expired):
            log.debug(f"Reusing cached entitlements for '{account_key}' ({cached})")
            self._snapshot = cached
            return cached

        # A failed query must not leave the previous snapshot in place
        self._snapshot = None

        # Some packages require an access token in order to request their apps/depots
        requests = [
            PackageRequest(lic.package_id, lic.access_token) for lic in non_expired
        ]
        try:
            package_info = await self.product_info.get_package_info(requests)
        except Exception as e:
            raise EntitlementQueryError(
                f"Failed to retrieve package info for {len(requests)} licenses: {e}"
            ) from e

        packages = sorted(
            (Package.from_product_info(pid, kv) for pid, kv in package_info.items()),
            key=lambda p: p.id,
        )
        snapshot = self._build_snapshot(len(non_expired), packages)
        self._save(account_key, snapshot)
        self._snapshot = snapshot
        log.debug(f"Resolved entitlements for '{account_key}' ({snapshot})")
        return snapshot

    @staticmethod
    def _build_snapshot(
        license_count: int, packages: Iterable[Package]
    ) -> EntitlementSnapshot:
        snapshot = EntitlementSnapshot(license_count=license_count)
        for package in packages:
            snapshot.owned_package_ids.add(package.id)
            # Free weekends that have ended no longer grant any apps
            if not package.grants_access:
                continue
            snapshot.owned_app_ids.update(package.app_ids)
            snapshot.owned_depot_ids.update(package.depot_ids)
        return snapshot

    def _save(self, account_key: str, snapshot: EntitlementSnapshot) -> None:
        path = self._snapshot_path(account_key)
        temp_path = path.with_suffix(".json.tmp")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(snapshot.to_json(), encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as e:
            raise EntitlementCacheError(
                f"Failed to save entitlement cache '{path}': {e}"
            ) from e
