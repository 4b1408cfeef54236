"""
FacilitatorClient - Client for communicating with facilitator service
"""

from typing import Any, Optional

import httpx

from x402_escrow.types import (
    MonitorRequest,
    SettleRequest,
    SettleResponse,
    VerifyRequest,
    VerifyResponse,
    X402Payment,
)

DEFAULT_TIMEOUT_SECONDS = 30.0


class FacilitatorClient:
    """
    Client for communicating with facilitator service.

    Every method raises ``httpx.HTTPError`` on transport failures and
    non-2xx responses; callers decide how to map them.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize facilitator client.

        Args:
            base_url: Facilitator service base URL
            headers: Custom HTTP headers (e.g., Authorization)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (in-process ASGI apps, mocks)
        """
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def verify(self, payment: str) -> VerifyResponse:
        """
        Verify an encoded payment (no on-chain transaction).

        Args:
            payment: Base64 X-PAYMENT header value

        Returns:
            VerifyResponse
        """
        client = await self._get_client()
        body = VerifyRequest(payment=payment).model_dump(by_alias=True)
        response = await client.post("/verify", json=body)
        response.raise_for_status()
        return VerifyResponse(**response.json())

    async def settle(self, payment: str) -> SettleResponse:
        """
        Execute payment settlement (on-chain transaction).

        Args:
            payment: Base64 X-PAYMENT header value

        Returns:
            SettleResponse with txHash
        """
        client = await self._get_client()
        body = SettleRequest(payment=payment).model_dump(by_alias=True, exclude_none=True)
        response = await client.post("/settle", json=body)
        response.raise_for_status()
        return SettleResponse(**response.json())

    async def health(self) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.get("/health")
        response.raise_for_status()
        return response.json()

    async def get_config(self) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.get("/config")
        response.raise_for_status()
        return response.json()

    async def get_payment(self, payment_id: str) -> X402Payment:
        client = await self._get_client()
        response = await client.get(f"/payments/{payment_id}")
        response.raise_for_status()
        return X402Payment(**response.json())

    async def monitor(self, payment_id: str, callback_url: str) -> dict[str, Any]:
        """Ask the facilitator to POST status changes of a payment to ``callback_url``"""
        client = await self._get_client()
        body = MonitorRequest(callbackUrl=callback_url).model_dump(by_alias=True)
        response = await client.post(f"/payments/{payment_id}/monitor", json=body)
        response.raise_for_status()
        return response.json()

    async def stop_monitor(self, payment_id: str) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.delete(f"/payments/{payment_id}/monitor")
        response.raise_for_status()
        return response.json()
