"""
x402 escrow client SDK
"""

from x402_escrow.clients.escrow_client import EscrowClient
from x402_escrow.clients.x402_http_client import (
    X402HttpClient,
    create_payment_payload,
    create_signed_payment_header,
)

__all__ = [
    "EscrowClient",
    "X402HttpClient",
    "create_payment_payload",
    "create_signed_payment_header",
]
