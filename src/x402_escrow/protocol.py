"""
X402 protocol helpers: header codec, payload validation and response builders.

Implements the HTTP 402 Payment Required handshake for escrow payments.
"""

import time
from typing import Optional

from x402_escrow.encoding import decode_payment_payload, encode_payment_payload
from x402_escrow.types import (
    SUPPORTED_SCHEMES,
    Payment402Response,
    PaymentPayload,
    PaymentRequirements,
    PaymentResponseHeader,
    SignatureParts,
    ValidationResult,
)

X402_VERSION = 1

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"


def parse_payment_header(header: str) -> PaymentPayload:
    """Decode an X-PAYMENT header value"""
    return decode_payment_payload(header, PaymentPayload)


def create_payment_header(payload: PaymentPayload) -> str:
    """Encode a payload as an X-PAYMENT header value"""
    return encode_payment_payload(payload)


def _signature_present(signature: Optional[SignatureParts]) -> bool:
    if signature is None:
        return False
    return signature.v is not None and bool(signature.r) and bool(signature.s)


def validate_payment_payload(payload: PaymentPayload) -> ValidationResult:
    """
    Validate payment payload structure.

    Signatures are only checked for presence; cryptographic verification
    happens in the escrow contract during settlement.
    """
    if payload.x402_version != X402_VERSION:
        return ValidationResult(
            valid=False, error=f"Unsupported version: {payload.x402_version}"
        )

    if payload.scheme not in SUPPORTED_SCHEMES:
        return ValidationResult(valid=False, error=f"Unsupported scheme: {payload.scheme}")

    evm_payload = payload.payload
    if not evm_payload.payment_id or not evm_payload.payer or not evm_payload.recipient:
        return ValidationResult(valid=False, error="Missing required fields in payload")

    if not _signature_present(evm_payload.permit_signature) or not _signature_present(
        evm_payload.payment_signature
    ):
        return ValidationResult(valid=False, error="Missing signatures")

    return ValidationResult(valid=True)


def create_402_response(
    requirements: PaymentRequirements | list[PaymentRequirements],
    error: Optional[str] = None,
) -> Payment402Response:
    """Create 402 Payment Required response body"""
    accepts = requirements if isinstance(requirements, list) else [requirements]
    return Payment402Response(x402Version=X402_VERSION, accepts=accepts, error=error)


def create_payment_response(
    tx_hash: str,
    payment_id: str,
    settled: bool,
    block_number: Optional[int | str] = None,
) -> PaymentResponseHeader:
    """Create the X-PAYMENT-RESPONSE settlement receipt"""
    return PaymentResponseHeader(
        txHash=tx_hash,
        paymentId=payment_id,
        settled=settled,
        blockNumber=str(block_number) if block_number is not None else None,
        timestamp=int(time.time() * 1000),
    )
