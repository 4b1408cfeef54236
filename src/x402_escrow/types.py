"""
Type definitions for x402 escrow protocol
"""

from enum import Enum
from typing import Any, Literal, Optional

import httpx
from pydantic import BaseModel, Field, field_validator

# Payment schemes
SCHEME_EVM_PERMIT = "evm-permit"
SCHEME_EVM_LEGACY = "evm-legacy"

PaymentScheme = Literal["evm-permit", "evm-legacy"]

SUPPORTED_SCHEMES = (SCHEME_EVM_PERMIT, SCHEME_EVM_LEGACY)


class PaymentStatus(str, Enum):
    """Escrow payment status, derived from the on-chain record and the clock"""

    PENDING = "PENDING"
    CLAIMED = "CLAIMED"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"


TERMINAL_STATUSES = frozenset({PaymentStatus.CLAIMED, PaymentStatus.REFUNDED})


class PaymentRequirements(BaseModel):
    """Payment requirements sent in a 402 response"""

    scheme: str
    network: str
    max_amount_required: str = Field(alias="maxAmountRequired")
    resource: str
    description: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")
    pay_to: str = Field(alias="payTo")
    asset: str
    max_timeout_seconds: int = Field(alias="maxTimeoutSeconds")
    output_schema: Optional[str] = Field(None, alias="outputSchema")
    extra: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True
        frozen = True


class Payment402Response(BaseModel):
    """Payment required response (402)"""

    x402_version: int = Field(alias="x402Version")
    accepts: list[PaymentRequirements]
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class SignatureParts(BaseModel):
    """ECDSA signature split into v, r, s"""

    v: Optional[int] = None
    r: Optional[str] = None
    s: Optional[str] = None


class EVMPermitPayload(BaseModel):
    """Signed gasless escrow payment.

    Every field is optional so that structural validation can name the
    missing one instead of failing at decode time.
    """

    payment_id: Optional[str] = Field(None, alias="paymentId")
    payer: Optional[str] = None
    recipient: Optional[str] = None
    amount: Optional[str] = None
    duration: Optional[int] = None
    deadline: Optional[str] = None
    nonce: Optional[str] = None
    permit_signature: Optional[SignatureParts] = Field(None, alias="permitSignature")
    payment_signature: Optional[SignatureParts] = Field(None, alias="paymentSignature")

    class Config:
        populate_by_name = True


class PaymentPayload(BaseModel):
    """Payment payload sent by client in the X-PAYMENT header"""

    x402_version: int = Field(alias="x402Version")
    scheme: str
    network: str
    payload: EVMPermitPayload

    class Config:
        populate_by_name = True


class ValidationResult(BaseModel):
    """Outcome of structural payload validation"""

    valid: bool
    error: Optional[str] = None


class PaymentResponseHeader(BaseModel):
    """Settlement receipt sent in the X-PAYMENT-RESPONSE header"""

    tx_hash: str = Field(alias="txHash")
    payment_id: str = Field(alias="paymentId")
    settled: bool
    block_number: Optional[str] = Field(None, alias="blockNumber")
    timestamp: Optional[int] = None

    class Config:
        populate_by_name = True


class VerifyRequest(BaseModel):
    """Body of POST /verify"""

    payment: str


class SettleRequest(BaseModel):
    """Body of POST /settle"""

    payment: str
    payment_id: Optional[str] = Field(None, alias="paymentId")

    class Config:
        populate_by_name = True


class VerifyResponse(BaseModel):
    """Verification response from facilitator"""

    valid: bool
    payment_id: Optional[str] = Field(None, alias="paymentId")
    payer: Optional[str] = None
    amount: Optional[str] = None
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class SettleResponse(BaseModel):
    """Settlement response from facilitator"""

    tx_hash: Optional[str] = Field(None, alias="txHash")
    payment_id: Optional[str] = Field(None, alias="paymentId")
    settled: bool
    block_number: Optional[str] = Field(None, alias="blockNumber")
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class PaymentRecord(BaseModel):
    """Escrow record as returned by getPayment"""

    payer: str
    recipient: str
    amount: int
    expires_at: int = Field(alias="expiresAt")
    claimed: bool
    refunded: bool

    class Config:
        populate_by_name = True


class X402Payment(BaseModel):
    """Escrow record joined with its id and computed status"""

    id: str
    payer: str
    recipient: str
    amount: str
    expires_at: int = Field(alias="expiresAt")
    claimed: bool
    refunded: bool
    status: PaymentStatus

    class Config:
        populate_by_name = True


class PaymentTransactionResult(BaseModel):
    """Result of a direct escrow write (create, claim, refund)"""

    payment_id: str = Field(alias="paymentId")
    transaction_hash: str = Field(alias="transactionHash")
    payment: X402Payment

    class Config:
        populate_by_name = True


class PaymentRequestParams(BaseModel):
    """Body of POST /payments/create"""

    recipient: str
    amount: int
    duration: int
    service_type: Optional[str] = Field(None, alias="serviceType")
    metadata: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True


class PaymentRequestResponse(BaseModel):
    """Payment request descriptor for QR codes and deep links"""

    payment_id: str = Field(alias="paymentId")
    recipient: str
    amount: str
    duration: int
    expires_at: int = Field(alias="expiresAt")
    status: str
    qr_code_data: str = Field(alias="qrCodeData")
    deep_link: str = Field(alias="deepLink")

    class Config:
        populate_by_name = True


class MonitorRequest(BaseModel):
    """Body of POST /payments/{paymentId}/monitor"""

    callback_url: str = Field(alias="callbackUrl")

    @field_validator("callback_url")
    @classmethod
    def check_callback_url(cls, value: str) -> str:
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"Invalid callback URL: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("Callback URL must be an absolute http(s) URL")
        return value

    class Config:
        populate_by_name = True


class PaymentContext(BaseModel):
    """Payment metadata handed to a protected handler via request.state"""

    payment_id: str = Field(alias="paymentId")
    tx_hash: Optional[str] = Field(None, alias="txHash")
    payer: Optional[str] = None
    amount: Optional[str] = None

    class Config:
        populate_by_name = True


class TokenNonces(BaseModel):
    """Per-payer permit nonce (token) and payment-intent nonce (escrow)"""

    token_nonce: int = Field(alias="tokenNonce")
    escrow_nonce: int = Field(alias="escrowNonce")

    class Config:
        populate_by_name = True
