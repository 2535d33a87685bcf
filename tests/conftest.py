import os
from datetime import date
from decimal import Decimal

import pytest

# In-memory database and no Redis for the test run (set before config is imported)
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['CACHE_ENABLED'] = 'false'
os.environ['FLASK_DEBUG'] = '0'

from payables import create_app
from payables.database import get_session, create_schema, drop_schema
from payables.models import Supplier, SupplierSite, InventoryItem, TaxRate, Receipt, ReceiptLine
from payables.services import invoice_service


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config')
    app.config['TESTING'] = True
    return app


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema and database session for each test."""
    with app.app_context():
        drop_schema()
        create_schema()
        session = get_session()
        yield session
        session.rollback()
        session.remove()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client (schema already created by the session fixture)."""
    return app.test_client()


@pytest.fixture(scope='function')
def supplier(session):
    supplier = Supplier(number='SUP000001', name='Acme Metals', currency_code='USD')
    session.add(supplier)
    session.commit()
    return supplier


@pytest.fixture(scope='function')
def other_supplier(session):
    supplier = Supplier(number='SUP000002', name='Borealis Paper', currency_code='USD')
    session.add(supplier)
    session.commit()
    return supplier


@pytest.fixture(scope='function')
def site(session, supplier):
    site = SupplierSite(supplier_id=supplier.id, name='Main office', city='Springfield')
    session.add(site)
    session.commit()
    return site


@pytest.fixture(scope='function')
def item(session):
    item = InventoryItem(code='BOLT-10', name='Steel bolt 10mm', unit_price=Decimal('100'))
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def tax_rate(session):
    rate = TaxRate(code='VAT10', name='VAT 10%', rate=Decimal('10'))
    session.add(rate)
    session.commit()
    return rate


@pytest.fixture(scope='function')
def receipt(session, supplier, site, item):
    """Receipt with one accepted line and one rejected (quantity 0) line."""
    receipt = Receipt(
        number='RCV-1001', supplier_id=supplier.id, site_id=site.id,
        receipt_date=date(2024, 3, 1), currency_code='EUR', exchange_rate=Decimal('1.08'),
    )
    receipt.lines.append(ReceiptLine(
        item_id=item.id, description='Steel bolt 10mm',
        quantity_accepted=Decimal('5'), unit_price=Decimal('20'), tax_rate=Decimal('10'),
    ))
    receipt.lines.append(ReceiptLine(
        item_id=item.id, description='Damaged bolts',
        quantity_accepted=Decimal('0'), unit_price=Decimal('20'),
    ))
    session.add(receipt)
    session.commit()
    return receipt


@pytest.fixture(scope='function')
def make_invoice(session, supplier):
    """Factory: a submitted and approved invoice (10 x 100 at 10% tax = 1100 by default)."""
    def _make(quantity='10', unit_price='100', tax_rate='10', supplier_id=None,
              approved=True, submit=True, **header):
        payload = {
            'supplier_id': supplier_id or supplier.id,
            'invoice_date': '2024-03-01',
            'payment_terms': 30,
            'lines': [{
                'description': 'Steel bolts',
                'quantity': quantity,
                'unit_price': unit_price,
                'tax_rate': tax_rate,
            }],
        }
        payload.update(header)
        invoice = invoice_service.create_invoice(payload, session)
        if submit:
            invoice_service.submit_invoice(invoice.id, session)
        if approved:
            invoice_service.set_invoice_status(invoice.id, {'approval_status': 'APPROVED'}, session)
        return invoice
    return _make
