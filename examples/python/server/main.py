"""
Example resource server: one free route and one route gated by an escrow payment.
"""

import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from x402_escrow.fastapi import GateConfig, x402_protected
from x402_escrow.logging_config import setup_logging

load_dotenv(Path(__file__).parent.parent.parent.parent / ".env")
setup_logging()

logger = logging.getLogger(__name__)

CHAIN_ID = int(os.environ["X402_CHAIN_ID"])
PAY_TO_ADDRESS = os.environ["PAY_TO_ADDRESS"]
TOKEN_ADDRESS = os.environ["X402_TOKEN_ADDRESS"]
FACILITATOR_URL = os.getenv("FACILITATOR_URL", "http://localhost:8403")
SERVER_HOST = "0.0.0.0"
SERVER_PORT = 8000

gate = GateConfig(
    payTo=PAY_TO_ADDRESS,
    asset=TOKEN_ADDRESS,
    maxAmountRequired="1000000",  # 1 USDC (6 decimals)
    network=f"eip155:{CHAIN_ID}",
    maxTimeoutSeconds=3600,
    description="Premium market data",
    facilitatorUrl=FACILITATOR_URL,
)

app = FastAPI(title="X402 Server", description="Protected resource server")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-PAYMENT-RESPONSE"],
)


@app.get("/")
async def root():
    """Service info"""
    return {
        "service": "X402 Protected Resource Server",
        "status": "running",
        "payTo": PAY_TO_ADDRESS,
        "facilitator": FACILITATOR_URL,
    }


@app.get("/protected")
@x402_protected(gate)
async def protected_endpoint(request: Request):
    payment = request.state.x402_payment
    logger.info(f"Serving paid request: paymentId={payment.payment_id}")
    return {
        "data": {"BTC": 67000.12, "ETH": 3450.5},
        "paymentId": payment.payment_id,
        "txHash": payment.tx_hash,
    }


if __name__ == "__main__":
    logger.info("=" * 60)
    logger.info("Starting X402 Protected Resource Server")
    logger.info(f"  Pay To: {PAY_TO_ADDRESS}")
    logger.info(f"  Facilitator URL: {FACILITATOR_URL}")
    logger.info("  /protected - 1 USDC held in escrow for 1 hour")
    logger.info("=" * 60)

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT, log_level="info", access_log=True)
