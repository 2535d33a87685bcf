"""Async HTTP client for the payables authority.

Every call either returns the authority's answer or raises one of the typed
errors: ValidationError (400/422), NotFoundError (404), ConflictError (409)
and TransportError for network failures and 5xx answers. Nothing is retried.
"""
import logging
from typing import Iterable, List, Optional

import httpx

from payables.core.conflicts import DraftConflict
from payables.core.types import (
    ApplicationDraft, EditSource, InvoiceDraft, ReceiptData, payment_from_dict
)
from payables.exceptions import (
    ConflictError, NotFoundError, TransportError, ValidationError
)

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> tuple:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, {}
    if not isinstance(body, dict):
        return str(body), {}
    return body.get('message') or response.reason_phrase, body


def raise_for_status(response: httpx.Response) -> None:
    """Map a non-2xx authority answer to the matching typed error."""
    if response.is_success:
        return
    message, body = _error_message(response)
    status = response.status_code

    if status == 409:
        raise ConflictError(
            payment_number=body.get('payment_number', ''),
            invoice_number=body.get('invoice_number', ''),
            payment_id=body.get('payment_id'),
            invoice_id=body.get('invoice_id'),
        )
    if status == 404:
        raise NotFoundError(message)
    if status in (400, 422):
        payload = {'errors': body['errors']} if body.get('errors') else None
        raise ValidationError(message, field=body.get('field'), payload=payload)
    raise TransportError(f'Authority answered {status}: {message}', status_code=502)


class AuthorityClient:
    """
    Thin async wrapper around the authority's JSON API.

    Usage:
        async with AuthorityClient('http://localhost:5000') as client:
            invoice = await client.get_invoice(7)
    """

    def __init__(self, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip('/')
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config_object=None, transport=None) -> 'AuthorityClient':
        """Build a client from AUTHORITY_BASE_URL / AUTHORITY_TIMEOUT_SECONDS."""
        if config_object is None:
            from config import Config
            config_object = Config
        return cls(
            getattr(config_object, 'AUTHORITY_BASE_URL'),
            timeout=getattr(config_object, 'AUTHORITY_TIMEOUT_SECONDS', 10.0),
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs):
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"[AUTHORITY] {method} {path} failed: {e}")
            raise TransportError(f'Payables service unreachable: {e}')

        if response.status_code >= 500:
            logger.error(f"[AUTHORITY] {method} {path} -> {response.status_code}")
        raise_for_status(response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise TransportError(f'Invalid JSON from {method} {path}')

    # Reference data

    async def list_suppliers(self) -> List[dict]:
        return await self._request('GET', '/api/suppliers')

    async def list_supplier_sites(self, supplier_id: int) -> List[dict]:
        return await self._request('GET', f'/api/suppliers/{supplier_id}/sites')

    async def list_inventory_items(self) -> List[dict]:
        return await self._request('GET', '/api/inventory-items')

    async def list_tax_rates(self) -> List[dict]:
        return await self._request('GET', '/api/tax-rates')

    async def create_supplier(self, data: dict) -> dict:
        return await self._request('POST', '/api/suppliers', json=data)

    async def create_supplier_site(self, supplier_id: int, data: dict) -> dict:
        return await self._request('POST', f'/api/suppliers/{supplier_id}/sites', json=data)

    async def create_inventory_item(self, data: dict) -> dict:
        return await self._request('POST', '/api/inventory-items', json=data)

    async def create_tax_rate(self, data: dict) -> dict:
        return await self._request('POST', '/api/tax-rates', json=data)

    # Invoices

    @staticmethod
    def _invoice_body(invoice: InvoiceDraft, edit_source: Optional[EditSource]) -> dict:
        body = invoice.to_dict()
        if edit_source is not None:
            body['edit_source'] = edit_source.value
        return body

    async def create_invoice(self, invoice: InvoiceDraft,
                             edit_source: Optional[EditSource] = None) -> InvoiceDraft:
        data = await self._request('POST', '/api/invoices', json=self._invoice_body(invoice, edit_source))
        return InvoiceDraft.from_dict(data)

    async def get_invoice(self, invoice_id: int) -> InvoiceDraft:
        return InvoiceDraft.from_dict(await self._request('GET', f'/api/invoices/{invoice_id}'))

    async def update_invoice(self, invoice: InvoiceDraft,
                             edit_source: Optional[EditSource] = None) -> InvoiceDraft:
        data = await self._request(
            'PUT', f'/api/invoices/{invoice.id}', json=self._invoice_body(invoice, edit_source)
        )
        return InvoiceDraft.from_dict(data)

    async def submit_invoice(self, invoice_id: int) -> InvoiceDraft:
        return InvoiceDraft.from_dict(await self._request('POST', f'/api/invoices/{invoice_id}/submit'))

    # Payments

    async def next_payment_number(self) -> str:
        data = await self._request('GET', '/api/payments/next-number')
        return data['number']

    async def create_payment(self, payment):
        return payment_from_dict(await self._request('POST', '/api/payments', json=payment.to_dict()))

    async def get_payment(self, payment_id: int):
        """A PaymentDraft, or a read-only PostedPayment once it is PAID."""
        return payment_from_dict(await self._request('GET', f'/api/payments/{payment_id}'))

    async def update_payment(self, payment):
        data = await self._request('PUT', f'/api/payments/{payment.id}', json=payment.to_dict())
        return payment_from_dict(data)

    async def finalize_payment(self, payment_id: int):
        return payment_from_dict(await self._request('POST', f'/api/payments/{payment_id}/finalize'))

    async def delete_payment(self, payment_id: int) -> None:
        await self._request('DELETE', f'/api/payments/{payment_id}')

    async def get_payment_applications(self, payment_id: int) -> List[ApplicationDraft]:
        data = await self._request('GET', f'/api/payments/{payment_id}/applications')
        return [ApplicationDraft.from_dict(raw) for raw in data]

    async def check_draft_conflicts(self, invoice_ids: Iterable[int],
                                    exclude_payment_id: Optional[int] = None) -> List[DraftConflict]:
        data = await self._request('POST', '/api/payments/conflicts', json={
            'invoice_ids': list(invoice_ids),
            'exclude_payment_id': exclude_payment_id,
        })
        return [DraftConflict.from_dict(raw) for raw in data]

    async def list_eligible_invoices(self, supplier_id: int,
                                     exclude_payment_id: Optional[int] = None) -> List[InvoiceDraft]:
        params = {'supplier_id': supplier_id}
        if exclude_payment_id is not None:
            params['exclude_payment_id'] = exclude_payment_id
        data = await self._request('GET', '/api/payments/eligible-invoices', params=params)
        return [InvoiceDraft.from_dict(raw) for raw in data]

    # Receipts

    async def get_receipt(self, receipt_id: int) -> ReceiptData:
        return ReceiptData.from_dict(await self._request('GET', f'/api/receipts/{receipt_id}'))
