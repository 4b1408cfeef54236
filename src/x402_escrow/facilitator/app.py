"""
Facilitator HTTP service.

Exposes verify/settle for resource servers plus payment status, payment
requests and webhook monitoring. Run with ``x402-facilitator``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from x402_escrow import __version__
from x402_escrow.config import SERVICE_NAME, FacilitatorSettings
from x402_escrow.exceptions import MonitorCapacityError, PaymentNotFoundError, X402Error
from x402_escrow.facilitator.x402_facilitator import PaymentFacilitator
from x402_escrow.gateway.web3_gateway import Web3Gateway
from x402_escrow.logging_config import setup_logging
from x402_escrow.types import (
    MonitorRequest,
    PaymentRequestParams,
    PaymentRequestResponse,
    SettleRequest,
    SettleResponse,
    VerifyRequest,
    VerifyResponse,
    X402Payment,
)

logger = logging.getLogger(__name__)


def create_app(facilitator: PaymentFacilitator, settings: FacilitatorSettings) -> FastAPI:
    """
    Build the facilitator FastAPI app.

    Args:
        facilitator: Payment facilitator the routes delegate to
        settings: Service settings; supplies the gas-paying key for /settle
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await facilitator.close()

    app = FastAPI(
        title="X402 Facilitator",
        description="Facilitator service for X402 escrow payments",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/config")
    async def config():
        chain = facilitator.get_config()
        return {
            "chainId": chain.chain_id,
            "escrowAddress": chain.escrow_address,
            "tokenAddress": chain.token_address,
        }

    @app.post("/verify", response_model=VerifyResponse, response_model_by_alias=True)
    async def verify(request: VerifyRequest):
        """Verify an encoded payment without touching the chain"""
        try:
            return await facilitator.verify_payment(request.payment)
        except Exception as e:
            logger.exception("Verify failed")
            raise HTTPException(status_code=500, detail=str(e))

    @app.post(
        "/settle",
        response_model=SettleResponse,
        response_model_by_alias=True,
        response_model_exclude_none=True,
    )
    async def settle(request: SettleRequest):
        """Create the payment on-chain; the facilitator pays gas"""
        try:
            return await facilitator.settle_payment(
                request.payment, settings.facilitator_private_key
            )
        except Exception as e:
            logger.exception("Settle failed")
            raise HTTPException(status_code=500, detail=str(e))

    @app.post(
        "/payments/create",
        response_model=PaymentRequestResponse,
        response_model_by_alias=True,
    )
    async def create_payment_request(params: PaymentRequestParams):
        return facilitator.create_payment_request(
            recipient=params.recipient,
            amount=params.amount,
            duration=params.duration,
            service_type=params.service_type,
            metadata=params.metadata,
        )

    @app.get(
        "/payments/{payment_id}",
        response_model=X402Payment,
        response_model_by_alias=True,
    )
    async def get_payment(payment_id: str):
        try:
            return await facilitator.check_payment_status(payment_id)
        except PaymentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except X402Error as e:
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/payments/{payment_id}/monitor")
    async def monitor_payment(payment_id: str, request: MonitorRequest):
        try:
            await facilitator.monitor_payment(payment_id, request.callback_url)
        except MonitorCapacityError as e:
            raise HTTPException(status_code=429, detail=str(e))
        return {"paymentId": payment_id, "monitoring": True, "callbackUrl": request.callback_url}

    @app.delete("/payments/{payment_id}/monitor")
    async def stop_monitoring(payment_id: str):
        await facilitator.stop_monitoring(payment_id)
        return {"paymentId": payment_id, "monitoring": False}

    return app


def build_facilitator(settings: FacilitatorSettings) -> PaymentFacilitator:
    """Wire a production facilitator from settings"""
    gateway = Web3Gateway.from_config(settings)
    return PaymentFacilitator(
        settings.chain_config(),
        gateway,
        poll_interval=settings.poll_interval_seconds,
        max_monitored=settings.max_monitored_payments,
        verify_signatures=settings.verify_signatures,
    )


def main(settings: Optional[FacilitatorSettings] = None) -> None:
    """Start the facilitator server"""
    settings = settings or FacilitatorSettings.from_env()
    setup_logging(settings.log_level)

    app = create_app(build_facilitator(settings), settings)

    logger.info("=" * 60)
    logger.info("Starting X402 Facilitator Server")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")
    logger.info(f"  Chain ID: {settings.chain_id}")
    logger.info(f"  Escrow: {settings.escrow_address}")
    logger.info(f"  Token: {settings.token_address}")
    logger.info("=" * 60)

    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
