class PaymentError(Exception):
    """Base error for the payments app. ``code`` is returned to API clients."""

    code = 'PAYMENT_ERROR'

    def __init__(self, message, code=None):
        super().__init__(message)
        if code:
            self.code = code


class PaymentValidationError(PaymentError):
    code = 'VALIDATION_ERROR'


class GatewayUnavailableError(PaymentError):
    code = 'GATEWAY_UNAVAILABLE'


class GatewayError(PaymentError):
    code = 'GATEWAY_ERROR'
