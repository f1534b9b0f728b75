"""Unit tests for the Steam data models."""

import json

from steam_prefill.models.steam import EntitlementSnapshot, Package
from tests.fakes import package_kv

NOW = 1_700_000_000


class TestPackage:
    def test_reads_app_and_depot_ids(self):
        package = Package.from_product_info(7, package_kv([440, 570], [441, 571, 572]))

        assert package.id == 7
        assert package.app_ids == [440, 570]
        assert package.depot_ids == [441, 571, 572]
        assert package.grants_access

    def test_missing_sections(self):
        package = Package.from_product_info(7, {})

        assert package.app_ids == []
        assert package.depot_ids == []
        assert package.grants_access

    def test_expired_free_weekend_grants_nothing(self):
        package = Package.from_product_info(
            7, package_kv([440], free_weekend=True, expiry=NOW - 1), now=NOW
        )

        assert package.is_free_weekend
        assert not package.grants_access

    def test_running_free_weekend_still_grants_access(self):
        package = Package.from_product_info(
            7, package_kv([440], free_weekend=True, expiry=NOW + 3600), now=NOW
        )

        assert package.grants_access

    def test_expiry_alone_does_not_revoke_access(self):
        package = Package.from_product_info(7, package_kv([440], expiry=NOW - 1), now=NOW)

        assert not package.is_free_weekend
        assert package.grants_access


class TestEntitlementSnapshot:
    def test_json_is_sorted_and_camel_cased(self):
        snapshot = EntitlementSnapshot(
            license_count=2,
            owned_package_ids={9, 3},
            owned_app_ids={30, 10},
            owned_depot_ids={31},
        )

        data = json.loads(snapshot.to_json())

        assert data == {
            "licenseCount": 2,
            "ownedPackageIds": [3, 9],
            "ownedAppIds": [10, 30],
            "ownedDepotIds": [31],
        }
        assert EntitlementSnapshot.model_validate_json(snapshot.to_json()) == snapshot
