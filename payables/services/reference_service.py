"""Reference data service: suppliers, sites, inventory items and tax rates.

Reads go through the Redis cache (read-through); every write invalidates the
kind it touched. When Redis is down the database is read directly.
"""
import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from payables.exceptions import ValidationError, NotFoundError
from payables.models import Supplier, SupplierSite, InventoryItem, TaxRate
from payables.services.cache_service import get_cache
from payables.utils.number_format import parse_decimal

logger = logging.getLogger(__name__)

SUPPLIERS = 'ref:suppliers'
SITES = 'ref:sites'
ITEMS = 'ref:items'
TAX_RATES = 'ref:tax_rates'


def _ttl():
    return current_app.config.get('CACHE_REFERENCE_TTL', 300)


def _read_through(module, key, loader):
    return get_cache().read_through(module, key, loader, ttl=_ttl())


def invalidate(module):
    get_cache().invalidate(module)


def list_suppliers(session):
    def load():
        return [s.to_dict() for s in session.query(Supplier).order_by(Supplier.name).all()]
    return _read_through(SUPPLIERS, 'all', load)


def list_supplier_sites(session, supplier_id):
    def load():
        sites = (session.query(SupplierSite)
                 .filter(SupplierSite.supplier_id == supplier_id)
                 .order_by(SupplierSite.name)
                 .all())
        return [site.to_dict() for site in sites]
    return _read_through(SITES, f'supplier:{supplier_id}', load)


def list_inventory_items(session):
    def load():
        items = (session.query(InventoryItem)
                 .filter(InventoryItem.active.is_(True))
                 .order_by(InventoryItem.code)
                 .all())
        return [item.to_dict() for item in items]
    return _read_through(ITEMS, 'active', load)


def list_tax_rates(session):
    def load():
        return [rate.to_dict() for rate in session.query(TaxRate).order_by(TaxRate.code).all()]
    return _read_through(TAX_RATES, 'all', load)


def _commit(session, obj, what):
    try:
        session.add(obj)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ValidationError(f'{what} already exists: {e.orig}')
    except Exception:
        session.rollback()
        raise
    return obj


def create_supplier(payload: dict, session) -> Supplier:
    name = (payload.get('name') or '').strip()
    if not name:
        raise ValidationError('Supplier name is required', field='name')

    supplier = Supplier(
        name=name,
        tax_id=payload.get('tax_id') or None,
        email=payload.get('email') or None,
        phone=payload.get('phone') or None,
        currency_code=payload.get('currency_code') or None,
        notes=payload.get('notes') or None,
    )
    _commit(session, supplier, 'Supplier')
    if not supplier.number:
        supplier.number = f'SUP{supplier.id:06d}'
        session.commit()

    invalidate(SUPPLIERS)
    logger.info(f"[REFERENCE] Supplier created: {supplier.number} {supplier.name}")
    return supplier


def create_supplier_site(supplier_id: int, payload: dict, session) -> SupplierSite:
    if session.get(Supplier, supplier_id) is None:
        raise NotFoundError(f'Supplier {supplier_id} not found')
    name = (payload.get('name') or '').strip()
    if not name:
        raise ValidationError('Site name is required', field='name')

    site = SupplierSite(
        supplier_id=supplier_id,
        name=name,
        address_line1=payload.get('address_line1') or None,
        city=payload.get('city') or None,
        state=payload.get('state') or None,
    )
    _commit(session, site, 'Supplier site')
    invalidate(SITES)
    return site


def create_inventory_item(payload: dict, session) -> InventoryItem:
    code = (payload.get('code') or '').strip()
    name = (payload.get('name') or '').strip()
    if not code or not name:
        raise ValidationError('Item code and name are required', field='code')

    item = InventoryItem(
        code=code,
        name=name,
        unit_price=parse_decimal(payload.get('unit_price'), 'unit_price'),
        active=payload.get('active', True),
    )
    _commit(session, item, 'Inventory item')
    invalidate(ITEMS)
    return item


def create_tax_rate(payload: dict, session) -> TaxRate:
    code = (payload.get('code') or '').strip()
    rate = parse_decimal(payload.get('rate'), 'rate')
    if not code or rate is None:
        raise ValidationError('Tax rate code and rate are required', field='rate')
    if rate < 0:
        raise ValidationError('Tax rate cannot be negative', field='rate')

    tax_rate = TaxRate(code=code, name=(payload.get('name') or code).strip(), rate=rate)
    _commit(session, tax_rate, 'Tax rate')
    invalidate(TAX_RATES)
    return tax_rate
