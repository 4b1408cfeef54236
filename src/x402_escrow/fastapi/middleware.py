"""
FastAPI middleware for x402 escrow payment processing
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional

import httpx
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from x402_escrow.encoding import canonical_json
from x402_escrow.exceptions import PayloadDecodeError
from x402_escrow.facilitator.facilitator_client import FacilitatorClient
from x402_escrow.protocol import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    create_402_response,
    create_payment_response,
    parse_payment_header,
    validate_payment_payload,
)
from x402_escrow.types import (
    SCHEME_EVM_PERMIT,
    PaymentContext,
    PaymentPayload,
    PaymentRequirements,
    PaymentResponseHeader,
)

logger = logging.getLogger(__name__)


class CheckOnlyConfig(BaseModel):
    """Challenge parameters for a protected route; every field is required"""

    pay_to: str = Field(alias="payTo")
    asset: str
    max_amount_required: str = Field(alias="maxAmountRequired")
    network: str
    max_timeout_seconds: int = Field(alias="maxTimeoutSeconds")
    description: str

    class Config:
        populate_by_name = True
        frozen = True


class GateConfig(CheckOnlyConfig):
    """Challenge parameters plus the facilitator that verifies and settles"""

    facilitator_url: str = Field(alias="facilitatorUrl")


def build_requirements(config: CheckOnlyConfig, resource: str) -> PaymentRequirements:
    return PaymentRequirements(
        scheme=SCHEME_EVM_PERMIT,
        network=config.network,
        maxAmountRequired=config.max_amount_required,
        resource=resource,
        description=config.description,
        mimeType="application/json",
        payTo=config.pay_to,
        asset=config.asset,
        maxTimeoutSeconds=config.max_timeout_seconds,
    )


def payment_required(
    request: Request, config: CheckOnlyConfig, error: str = "Payment required"
) -> JSONResponse:
    """Return 402 payment required response"""
    body = create_402_response(build_requirements(config, request.url.path), error)
    return JSONResponse(
        content=body.model_dump(by_alias=True, exclude_none=True), status_code=402
    )


def _decode_header(request: Request, config: CheckOnlyConfig) -> PaymentPayload | JSONResponse:
    """Decode and structurally validate X-PAYMENT, or build the 402 to return"""
    header = request.headers.get(PAYMENT_HEADER)
    if not header:
        return payment_required(request, config)

    try:
        payload = parse_payment_header(header)
    except PayloadDecodeError as e:
        logger.warning(f"Failed to decode payment header: {e}")
        return payment_required(request, config, f"Invalid payment header: {e}")

    result = validate_payment_payload(payload)
    if not result.valid:
        return payment_required(request, config, f"Invalid payment: {result.error}")
    return payload


async def _call_handler(func: Callable, request: Request, *args: Any, **kwargs: Any) -> Response:
    response = await func(request, *args, **kwargs)
    if isinstance(response, Response):
        return response
    return JSONResponse(content=response)


class X402Middleware:
    """
    FastAPI middleware for automatic 402 payment handling.

    Usage:
        app = FastAPI()
        middleware = X402Middleware(GateConfig(
            payTo="0x...", asset="0x...", maxAmountRequired="1000000",
            network="eip155:31337", maxTimeoutSeconds=3600,
            description="Premium data", facilitatorUrl="http://localhost:8403",
        ))

        @app.get("/protected")
        @middleware.protect
        async def protected_endpoint(request: Request):
            return {"paymentId": request.state.x402_payment.payment_id}
    """

    def __init__(
        self,
        config: GateConfig,
        facilitator: Optional[FacilitatorClient] = None,
    ) -> None:
        self._config = config
        self._owns_facilitator = facilitator is None
        self._facilitator = facilitator or FacilitatorClient(config.facilitator_url)

    @property
    def config(self) -> GateConfig:
        return self._config

    @property
    def facilitator(self) -> FacilitatorClient:
        return self._facilitator

    async def close(self) -> None:
        """Close the facilitator client if this middleware created it"""
        if self._owns_facilitator:
            await self._facilitator.close()

    def protect(self, func: Callable) -> Callable:
        """
        Decorator to protect an endpoint with an escrow payment.

        The endpoint must accept ``request: Request`` as its first argument.
        Only payment processing failures become 402s; once the payment is
        settled, exceptions raised by the endpoint propagate unchanged.
        """

        @wraps(func)
        async def wrapper(request: Request, *args: Any, **kwargs: Any) -> Response:
            try:
                outcome = await self._process_payment(request)
            except Exception as e:
                logger.error(f"X402 middleware error: {e}", exc_info=True)
                return payment_required(request, self._config, f"Payment processing error: {e}")
            if isinstance(outcome, JSONResponse):
                return outcome

            response = await _call_handler(func, request, *args, **kwargs)
            response.headers[PAYMENT_RESPONSE_HEADER] = canonical_json(outcome)
            return response

        return wrapper

    async def _process_payment(self, request: Request) -> PaymentResponseHeader | JSONResponse:
        """Decode, verify and settle X-PAYMENT; returns the receipt or the 402 to send"""
        decoded = _decode_header(request, self._config)
        if isinstance(decoded, JSONResponse):
            return decoded
        payload = decoded
        header = request.headers[PAYMENT_HEADER]

        try:
            verify_result = await self._facilitator.verify(header)
        except httpx.HTTPError as e:
            logger.error(f"Payment verification request failed: {e}")
            return payment_required(request, self._config, "Payment verification failed")
        if not verify_result.valid:
            logger.warning(f"Payment verification failed: {verify_result.error}")
            return payment_required(
                request, self._config, f"Payment verification failed: {verify_result.error}"
            )

        try:
            settle_result = await self._facilitator.settle(header)
        except httpx.HTTPError as e:
            logger.error(f"Payment settlement request failed: {e}")
            return payment_required(request, self._config, "Payment settlement failed")
        if not settle_result.settled:
            logger.error(f"Payment settlement failed: {settle_result.error}")
            return payment_required(
                request, self._config, f"Payment settlement failed: {settle_result.error}"
            )

        payment_id = settle_result.payment_id or payload.payload.payment_id
        receipt = create_payment_response(
            settle_result.tx_hash,
            payment_id,
            True,
            settle_result.block_number,
        )
        request.state.x402_payment = PaymentContext(
            paymentId=payment_id,
            txHash=settle_result.tx_hash,
            payer=payload.payload.payer,
            amount=payload.payload.amount,
        )
        logger.info(f"Payment settled for {request.url.path}: txHash={settle_result.tx_hash}")
        return receipt


def x402_protected(
    config: GateConfig,
    facilitator: Optional[FacilitatorClient] = None,
) -> Callable:
    """
    Convenience decorator to protect endpoints.

        @app.get("/premium")
        @x402_protected(GateConfig(...))
        async def premium(request: Request):
            ...
    """
    return X402Middleware(config, facilitator).protect


def x402_check_only(config: CheckOnlyConfig) -> Callable:
    """
    Protect an endpoint without verifying or settling (development only).

    Any structurally valid X-PAYMENT header is accepted; the handler still
    gets ``request.state.x402_payment`` without a txHash.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(request: Request, *args: Any, **kwargs: Any) -> Response:
            decoded = _decode_header(request, config)
            if isinstance(decoded, JSONResponse):
                return decoded
            evm = decoded.payload
            request.state.x402_payment = PaymentContext(
                paymentId=evm.payment_id, payer=evm.payer, amount=evm.amount
            )
            return await _call_handler(func, request, *args, **kwargs)

        return wrapper

    return decorator
