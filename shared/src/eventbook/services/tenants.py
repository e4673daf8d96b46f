"""Tenant resolution from API keys."""

from typing import TYPE_CHECKING

from eventbook.ports import TenantResolver

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class StaticTenantResolver(TenantResolver):
    """Fixed api_key to tenant_id mapping."""

    def __init__(self, keys: dict[str, str] | None = None) -> None:
        self._keys = dict(keys or {})

    def resolve(self, api_key: str) -> str | None:
        return self._keys.get(api_key)


class DynamoDBTenantResolver(TenantResolver):
    """Looks up the tenants table keyed by api_key. Inactive tenants resolve to None."""

    TABLE = "tenants"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def resolve(self, api_key: str) -> str | None:
        if not api_key:
            return None
        item = self.db.get_item(self.TABLE, {"api_key": api_key}, consistent_read=False)
        if not item or not item.get("active", True):
            return None
        tenant_id: str = item["tenant_id"]
        return tenant_id
