"""
X402HttpClient - HTTP client adapter with automatic 402 payment handling
"""

import logging
from typing import Any, Optional

import httpx

from x402_escrow.protocol import PAYMENT_HEADER, X402_VERSION, create_payment_header
from x402_escrow.signatures import PaymentDetails, SignatureEngine
from x402_escrow.types import Payment402Response, PaymentPayload, PaymentRequirements
from x402_escrow.utils.payment_id import generate_payment_id

logger = logging.getLogger(__name__)

DEADLINE_WINDOW_SECONDS = 3600


async def create_payment_payload(
    engine: SignatureEngine,
    private_key: str,
    requirements: PaymentRequirements,
    payment_id: Optional[str] = None,
) -> PaymentPayload:
    """
    Sign a gasless escrow payment that satisfies ``requirements``.

    The escrow lock lasts ``maxTimeoutSeconds``; both signatures expire one hour
    after the latest block.
    """
    from eth_account import Account

    payer = Account.from_key(private_key).address
    nonces = await engine.get_nonces(payer)
    deadline = await engine.gateway.get_latest_block_timestamp() + DEADLINE_WINDOW_SECONDS

    details = PaymentDetails(
        paymentId=payment_id or generate_payment_id(),
        payer=payer,
        recipient=requirements.pay_to,
        amount=int(requirements.max_amount_required),
        duration=requirements.max_timeout_seconds,
    )
    evm_payload = await engine.create_signed_payload(details, nonces, deadline, private_key)
    logger.info(
        f"Created payment: paymentId={details.payment_id}, payer={payer}, "
        f"amount={details.amount}, recipient={details.recipient}"
    )
    return PaymentPayload(
        x402Version=X402_VERSION,
        scheme=requirements.scheme,
        network=requirements.network,
        payload=evm_payload,
    )


async def create_signed_payment_header(
    engine: SignatureEngine,
    private_key: str,
    requirements: PaymentRequirements,
    payment_id: Optional[str] = None,
) -> str:
    """Sign a payment and encode it as an X-PAYMENT header value"""
    payload = await create_payment_payload(engine, private_key, requirements, payment_id)
    return create_payment_header(payload)


class X402HttpClient:
    """
    HTTP client adapter with automatic 402 payment handling.

    Wraps httpx.AsyncClient; on a 402 it pays the first accepted requirement
    and retries the request once.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        engine: SignatureEngine,
        private_key: str,
    ) -> None:
        """
        Args:
            http_client: httpx.AsyncClient instance
            engine: Signature engine configured for the server's token and escrow
            private_key: Payer key
        """
        self._http_client = http_client
        self._engine = engine
        self._private_key = private_key

    async def request_with_payment(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make HTTP request with automatic 402 payment handling.

        Flow:
            1. Send original request
            2. If 402, parse the challenge
            3. Sign a payment for accepts[0]
            4. Retry once with the X-PAYMENT header
        """
        logger.info(f"Making {method} request to {url}")
        response = await self._http_client.request(method, url, **kwargs)
        logger.info(f"Received response: status={response.status_code}")

        if response.status_code != 402:
            return response

        challenge = self._parse_payment_required(response)
        if challenge is None or not challenge.accepts:
            logger.error("Failed to parse payment requirements from 402 response")
            return response

        requirements = challenge.accepts[0]
        logger.info(
            f"Payment required: amount={requirements.max_amount_required}, "
            f"payTo={requirements.pay_to}"
        )
        header = await create_signed_payment_header(
            self._engine, self._private_key, requirements
        )

        headers = dict(kwargs.get("headers") or {})
        headers[PAYMENT_HEADER] = header
        kwargs["headers"] = headers

        response = await self._http_client.request(method, url, **kwargs)
        logger.info(f"Payment retry response: status={response.status_code}")
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET request with payment handling"""
        return await self.request_with_payment("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST request with payment handling"""
        return await self.request_with_payment("POST", url, **kwargs)

    @staticmethod
    def _parse_payment_required(response: httpx.Response) -> Optional[Payment402Response]:
        try:
            return Payment402Response(**response.json())
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid 402 body: {e}")
            return None
