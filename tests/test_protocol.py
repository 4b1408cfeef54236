"""Tests for payload validation and protocol response builders"""

import time

import pytest
from test_encoding import _payload

from x402_escrow.protocol import (
    X402_VERSION,
    create_402_response,
    create_payment_response,
    validate_payment_payload,
)
from x402_escrow.types import PaymentRequirements, SignatureParts


class TestValidatePaymentPayload:
    def test_valid_payload(self):
        result = validate_payment_payload(_payload())
        assert result.valid is True
        assert result.error is None

    def test_legacy_scheme_accepted(self):
        payload = _payload().model_copy(update={"scheme": "evm-legacy"})
        assert validate_payment_payload(payload).valid is True

    def test_unsupported_version(self):
        payload = _payload().model_copy(update={"x402_version": 2})
        result = validate_payment_payload(payload)
        assert result.valid is False
        assert result.error == "Unsupported version: 2"

    def test_unsupported_scheme(self):
        payload = _payload().model_copy(update={"scheme": "exact"})
        result = validate_payment_payload(payload)
        assert result.valid is False
        assert result.error == "Unsupported scheme: exact"

    @pytest.mark.parametrize("field", ["paymentId", "payer", "recipient"])
    def test_missing_required_field(self, field):
        result = validate_payment_payload(_payload(**{field: None}))
        assert result.valid is False
        assert result.error == "Missing required fields in payload"

    def test_empty_required_field(self):
        result = validate_payment_payload(_payload(payer=""))
        assert result.error == "Missing required fields in payload"

    @pytest.mark.parametrize("field", ["permitSignature", "paymentSignature"])
    def test_missing_signature(self, field):
        result = validate_payment_payload(_payload(**{field: None}))
        assert result.valid is False
        assert result.error == "Missing signatures"

    def test_incomplete_signature(self):
        result = validate_payment_payload(
            _payload(permitSignature=SignatureParts(v=27, r="0x" + "aa" * 32))
        )
        assert result.error == "Missing signatures"

    def test_version_checked_before_scheme(self):
        payload = _payload().model_copy(update={"x402_version": 9, "scheme": "exact"})
        assert validate_payment_payload(payload).error == "Unsupported version: 9"


class TestResponses:
    @pytest.fixture
    def reqs(self):
        return PaymentRequirements(
            scheme="evm-permit",
            network="eip155:31337",
            maxAmountRequired="1000000",
            resource="/premium",
            payTo="0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
            asset="0x5FbDB2315678afecb367f032d93F642f64180aa3",
            maxTimeoutSeconds=3600,
        )

    def test_402_response_wraps_single_requirement(self, reqs):
        body = create_402_response(reqs, "Payment required")
        assert body.x402_version == X402_VERSION
        assert body.accepts == [reqs]
        assert body.error == "Payment required"

    def test_402_response_accepts_list(self, reqs):
        body = create_402_response([reqs, reqs])
        assert len(body.accepts) == 2
        assert body.error is None

    def test_402_serializes_camel_case(self, reqs):
        dumped = create_402_response(reqs).model_dump(by_alias=True, exclude_none=True)
        assert dumped["x402Version"] == 1
        assert dumped["accepts"][0]["maxAmountRequired"] == "1000000"
        assert dumped["accepts"][0]["payTo"] == reqs.pay_to

    def test_payment_response_timestamp_in_ms(self):
        before = int(time.time() * 1000)
        receipt = create_payment_response("0xabc", "0x" + "11" * 32, True, 42)
        assert receipt.timestamp >= before
        assert receipt.block_number == "42"
        assert receipt.settled is True

    def test_payment_response_without_block(self):
        receipt = create_payment_response("0xabc", "0x" + "11" * 32, False)
        assert receipt.block_number is None
