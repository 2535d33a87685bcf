"""Client-side read-through cache of reference data."""
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SUPPLIERS = 'suppliers'
SITES = 'sites'
ITEMS = 'items'
TAX_RATES = 'tax_rates'
KINDS = (SUPPLIERS, SITES, ITEMS, TAX_RATES)


class ReferenceDataRepository:
    """
    Suppliers, sites, items and tax rates, fetched once per kind and kept
    in process until ``invalidate(kind)``. Writes made through this
    repository invalidate the kind they touched.
    """

    def __init__(self, client):
        self._client = client
        self._cache: Dict[str, Dict[object, list]] = {kind: {} for kind in KINDS}

    def invalidate(self, kind: Optional[str] = None) -> None:
        """Drop one kind (or everything when kind is None)."""
        if kind is None:
            for entries in self._cache.values():
                entries.clear()
            return
        if kind not in self._cache:
            raise ValueError(f'Unknown reference data kind: {kind}')
        self._cache[kind].clear()
        logger.debug(f"[CACHE] reference data '{kind}' invalidated")

    async def _read_through(self, kind, key, loader):
        entries = self._cache[kind]
        if key not in entries:
            entries[key] = await loader()
        return entries[key]

    async def suppliers(self) -> list:
        return await self._read_through(SUPPLIERS, None, self._client.list_suppliers)

    async def supplier_sites(self, supplier_id: int) -> list:
        return await self._read_through(
            SITES, supplier_id, lambda: self._client.list_supplier_sites(supplier_id)
        )

    async def inventory_items(self) -> list:
        return await self._read_through(ITEMS, None, self._client.list_inventory_items)

    async def tax_rates(self) -> list:
        return await self._read_through(TAX_RATES, None, self._client.list_tax_rates)

    async def create_supplier(self, data: dict) -> dict:
        supplier = await self._client.create_supplier(data)
        self.invalidate(SUPPLIERS)
        return supplier

    async def create_supplier_site(self, supplier_id: int, data: dict) -> dict:
        site = await self._client.create_supplier_site(supplier_id, data)
        self.invalidate(SITES)
        return site

    async def create_inventory_item(self, data: dict) -> dict:
        item = await self._client.create_inventory_item(data)
        self.invalidate(ITEMS)
        return item

    async def create_tax_rate(self, data: dict) -> dict:
        tax_rate = await self._client.create_tax_rate(data)
        self.invalidate(TAX_RATES)
        return tax_rate
