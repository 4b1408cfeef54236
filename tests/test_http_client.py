"""
Tests for X402HttpClient automatic 402 handling
"""

import httpx
import pytest

from x402_escrow.clients.x402_http_client import X402HttpClient, create_payment_payload
from x402_escrow.protocol import PAYMENT_HEADER, create_402_response, parse_payment_header


class FakeResource:
    """Resource server that demands payment until it sees an X-PAYMENT header"""

    def __init__(self, requirements, always_402=False, body=None):
        self.requirements = requirements
        self.always_402 = always_402
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if PAYMENT_HEADER in request.headers and not self.always_402:
            return httpx.Response(200, json={"data": "premium"})
        if self.body is not None:
            return httpx.Response(402, content=self.body)
        challenge = create_402_response(self.requirements, "Payment required")
        return httpx.Response(402, json=challenge.model_dump(by_alias=True, exclude_none=True))


def _client(resource, engine, payer_key) -> X402HttpClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(resource), base_url="http://resource")
    return X402HttpClient(http, engine, payer_key)


@pytest.mark.anyio
async def test_pays_and_retries_once(requirements, engine, payer_key, payer_address):
    resource = FakeResource(requirements)
    response = await _client(resource, engine, payer_key).get(
        "/premium", headers={"Accept": "application/json"}
    )

    assert response.status_code == 200
    assert len(resource.requests) == 2
    retry = resource.requests[1]
    assert retry.headers["Accept"] == "application/json"

    payload = parse_payment_header(retry.headers[PAYMENT_HEADER])
    assert payload.scheme == "evm-permit"
    assert payload.payload.payer == payer_address
    assert payload.payload.recipient == requirements.pay_to
    assert payload.payload.amount == requirements.max_amount_required
    assert payload.payload.duration == requirements.max_timeout_seconds


@pytest.mark.anyio
async def test_non_402_passes_through(requirements, engine, payer_key):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": "free"})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    response = await X402HttpClient(http, engine, payer_key).post("http://resource/free")
    assert response.status_code == 200


@pytest.mark.anyio
async def test_second_402_is_returned(requirements, engine, payer_key):
    resource = FakeResource(requirements, always_402=True)
    response = await _client(resource, engine, payer_key).get("/premium")

    assert response.status_code == 402
    assert len(resource.requests) == 2


@pytest.mark.anyio
async def test_unparseable_challenge_is_not_paid(requirements, engine, payer_key):
    resource = FakeResource(requirements, body=b"not json")
    response = await _client(resource, engine, payer_key).get("/premium")

    assert response.status_code == 402
    assert len(resource.requests) == 1


@pytest.mark.anyio
async def test_payload_deadline_follows_latest_block(requirements, engine, chain, payer_key):
    payload = await create_payment_payload(engine, payer_key, requirements)
    assert int(payload.payload.deadline) == chain.now + 3600
    assert payload.payload.nonce == "0"


@pytest.mark.anyio
async def test_explicit_payment_id_is_kept(requirements, engine, payer_key):
    payment_id = "0x" + "ab" * 32
    payload = await create_payment_payload(engine, payer_key, requirements, payment_id)
    assert payload.payload.payment_id == payment_id
