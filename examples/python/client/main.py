"""
Example paying client: requests a protected route and pays the 402 challenge
without holding any ETH.
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

from x402_escrow.abi import TOKEN_ABI
from x402_escrow.clients import X402HttpClient
from x402_escrow.gateway import Web3Gateway
from x402_escrow.logging_config import setup_logging
from x402_escrow.protocol import PAYMENT_RESPONSE_HEADER
from x402_escrow.signatures import SignatureEngine, SigningConfig

load_dotenv(Path(__file__).parent.parent.parent.parent / ".env")
setup_logging(logging.DEBUG)

logger = logging.getLogger(__name__)

PAYER_PRIVATE_KEY = os.getenv("PAYER_PRIVATE_KEY", "")
RESOURCE_URL = os.getenv("RESOURCE_URL", "http://localhost:8000/protected")


async def main() -> None:
    rpc_url = os.environ["X402_RPC_URL"]
    chain_id = int(os.environ["X402_CHAIN_ID"])
    token_address = os.environ["X402_TOKEN_ADDRESS"]
    escrow_address = os.environ["X402_ESCROW_ADDRESS"]

    gateway = Web3Gateway(rpc_url, chain_id)
    token_name = await gateway.read_contract(token_address, TOKEN_ABI, "name", [])
    engine = SignatureEngine(
        gateway,
        SigningConfig(
            tokenAddress=token_address,
            tokenName=token_name,
            escrowAddress=escrow_address,
            chainId=chain_id,
        ),
    )

    logger.info(f"Requesting {RESOURCE_URL} (token: {token_name}, chain: {chain_id})")
    async with httpx.AsyncClient(timeout=60.0) as http_client:
        client = X402HttpClient(http_client, engine, PAYER_PRIVATE_KEY)
        response = await client.get(RESOURCE_URL)

    logger.info(f"Status: {response.status_code}")
    receipt = response.headers.get(PAYMENT_RESPONSE_HEADER)
    if receipt:
        receipt = json.loads(receipt)
        logger.info(f"Payment {receipt['paymentId']} settled in tx {receipt['txHash']}")
    logger.info(f"Response: {response.text[:200]}")


if __name__ == "__main__":
    if not PAYER_PRIVATE_KEY:
        logger.error("PAYER_PRIVATE_KEY not set in .env file")
        sys.exit(1)
    asyncio.run(main())
