"""
x402 escrow exception hierarchy
"""


class X402Error(Exception):
    """x402 base exception"""

    pass


class ValidationError(X402Error):
    """Validation-related error"""

    pass


class PayloadDecodeError(ValidationError):
    """Payment header could not be decoded into a payload"""

    pass


class SignatureError(X402Error):
    """Signature-related error"""

    pass


class SignatureVerificationError(SignatureError):
    """Signature verification failed"""

    pass


class SignatureCreationError(SignatureError):
    """Signature creation failed"""

    pass


class TransactionError(X402Error):
    """Transaction-related error"""

    pass


class TransactionTimeoutError(TransactionError):
    """Transaction timeout"""

    pass


class TransactionFailedError(TransactionError):
    """Transaction execution failed (reverted or rejected by the node)"""

    pass


class PaymentNotFoundError(X402Error):
    """No escrow record exists for the payment id"""

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class ConfigurationError(X402Error):
    """Configuration-related error"""

    pass


class MonitorError(X402Error):
    """Payment monitoring error"""

    pass


class MonitorCapacityError(MonitorError):
    """Raised when the monitoring registry is full"""

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(f"Monitoring capacity reached ({capacity} payments)")
