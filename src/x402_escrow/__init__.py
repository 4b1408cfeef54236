"""
x402-escrow - HTTP 402 micropayments settled through an on-chain escrow

Supports paying clients, gated resource servers and a gas-paying facilitator.
"""

__version__ = "0.1.0"

from x402_escrow.config import FacilitatorSettings, X402Config
from x402_escrow.exceptions import (
    ConfigurationError,
    MonitorCapacityError,
    MonitorError,
    PayloadDecodeError,
    PaymentNotFoundError,
    SignatureCreationError,
    SignatureError,
    SignatureVerificationError,
    TransactionError,
    TransactionFailedError,
    TransactionTimeoutError,
    ValidationError,
    X402Error,
)
from x402_escrow.protocol import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    X402_VERSION,
    create_402_response,
    create_payment_response,
    validate_payment_payload,
)
from x402_escrow.types import (
    EVMPermitPayload,
    PaymentPayload,
    PaymentRequirements,
    PaymentStatus,
    SettleResponse,
    VerifyResponse,
    X402Payment,
)

__all__ = [
    "__version__",
    # Config
    "FacilitatorSettings",
    "X402Config",
    # Protocol
    "PAYMENT_HEADER",
    "PAYMENT_RESPONSE_HEADER",
    "X402_VERSION",
    "create_402_response",
    "create_payment_response",
    "validate_payment_payload",
    # Types
    "EVMPermitPayload",
    "PaymentPayload",
    "PaymentRequirements",
    "PaymentStatus",
    "SettleResponse",
    "VerifyResponse",
    "X402Payment",
    # Exceptions
    "ConfigurationError",
    "MonitorCapacityError",
    "MonitorError",
    "PayloadDecodeError",
    "PaymentNotFoundError",
    "SignatureCreationError",
    "SignatureError",
    "SignatureVerificationError",
    "TransactionError",
    "TransactionFailedError",
    "TransactionTimeoutError",
    "ValidationError",
    "X402Error",
]
