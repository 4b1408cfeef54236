"""
X402 Utility Functions
"""

from x402_escrow.utils.eip712 import (
    EVM_ZERO_ADDRESS,
    build_payment_intent_typed_data,
    build_permit_typed_data,
    join_signature,
    payment_id_to_bytes,
    split_signature,
)
from x402_escrow.utils.payment_id import generate_payment_id
from x402_escrow.utils.status import compute_payment_status

__all__ = [
    "EVM_ZERO_ADDRESS",
    "build_payment_intent_typed_data",
    "build_permit_typed_data",
    "compute_payment_status",
    "generate_payment_id",
    "join_signature",
    "payment_id_to_bytes",
    "split_signature",
]
