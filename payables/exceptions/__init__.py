"""Custom exceptions for the payables application."""


class PayablesError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(PayablesError):
    """Missing field, non-positive quantity/price or over-allocation."""
    def __init__(self, message, field=None, payload=None):
        payload = dict(payload or ())
        if field:
            payload['field'] = field
        super().__init__(message, 400, payload)
        self.field = field


class NotFoundError(PayablesError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(PayablesError):
    """An invoice is already held by another draft payment."""
    def __init__(self, payment_number, invoice_number, payment_id=None, invoice_id=None):
        message = (
            f'Invoice {invoice_number} is already applied on draft payment {payment_number}'
        )
        payload = {
            'payment_number': payment_number,
            'invoice_number': invoice_number,
            'payment_id': payment_id,
            'invoice_id': invoice_id,
        }
        super().__init__(message, 409, payload)
        self.payment_number = payment_number
        self.invoice_number = invoice_number
        self.payment_id = payment_id
        self.invoice_id = invoice_id


class TransportError(PayablesError):
    """Raised when the authority service cannot be reached or fails."""
    def __init__(self, message="The payables service is unavailable", status_code=502, payload=None):
        super().__init__(message, status_code, payload)
