"""Package and add-on lookup."""

from typing import TYPE_CHECKING, Any

from eventbook.models.catalog import AddOn, Package
from eventbook.ports import CatalogProvider

from .dynamodb import from_dynamo_number

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class InMemoryCatalog(CatalogProvider):
    """Catalog held in dictionaries. One instance per test."""

    def __init__(
        self,
        packages: list[Package] | None = None,
        add_ons: list[AddOn] | None = None,
    ) -> None:
        self._packages: dict[tuple[str, str], Package] = {}
        self._add_ons: dict[tuple[str, str], AddOn] = {}
        for package in packages or []:
            self.add_package(package)
        for add_on in add_ons or []:
            self.add_add_on(add_on)

    def add_package(self, package: Package) -> None:
        self._packages[(package.tenant_id, package.package_id)] = package

    def add_add_on(self, add_on: AddOn) -> None:
        self._add_ons[(add_on.tenant_id, add_on.add_on_id)] = add_on

    def get_package(self, tenant_id: str, package_id: str) -> Package | None:
        return self._packages.get((tenant_id, package_id))

    def get_add_ons(self, tenant_id: str, add_on_ids: list[str]) -> list[AddOn]:
        found = (self._add_ons.get((tenant_id, i)) for i in dict.fromkeys(add_on_ids))
        return [a for a in found if a is not None]


class DynamoDBCatalog(CatalogProvider):
    """Catalog stored in the packages and add-ons tables."""

    PACKAGES_TABLE = "packages"
    ADD_ONS_TABLE = "add-ons"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize catalog.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def get_package(self, tenant_id: str, package_id: str) -> Package | None:
        item = self.db.get_item(
            self.PACKAGES_TABLE, {"tenant_id": tenant_id, "package_id": package_id}
        )
        if not item:
            return None
        return Package.model_validate(_normalize(item))

    def get_add_ons(self, tenant_id: str, add_on_ids: list[str]) -> list[AddOn]:
        """Batch read add-ons. Unknown IDs are omitted.

        Args:
            tenant_id: Owning tenant
            add_on_ids: IDs to look up, duplicates ignored

        Returns:
            Found add-ons in request order
        """
        unique_ids = list(dict.fromkeys(add_on_ids))
        keys = [{"tenant_id": tenant_id, "add_on_id": i} for i in unique_ids]
        items = self.db.batch_get(self.ADD_ONS_TABLE, keys)
        by_id = {item["add_on_id"]: AddOn.model_validate(_normalize(item)) for item in items}
        return [by_id[i] for i in unique_ids if i in by_id]


def _normalize(item: dict[str, Any]) -> dict[str, Any]:
    return {k: from_dynamo_number(v) for k, v in item.items()}
