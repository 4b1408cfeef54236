"""
End-to-end escrow lifecycle: gasless creation, claim, expiry and refund.
"""

import pytest
from conftest import INITIAL_TOKENS
from fake_chain import ESCROW_ADDRESS

from x402_escrow.clients.escrow_client import EscrowClient
from x402_escrow.exceptions import PaymentNotFoundError, TransactionFailedError
from x402_escrow.protocol import create_payment_header
from x402_escrow.types import PaymentStatus
from x402_escrow.utils import generate_payment_id

AMOUNT = 1_000_000


@pytest.fixture
def escrow(x402_config, chain):
    return EscrowClient(x402_config, chain, clock=chain.clock)


@pytest.fixture
async def settled_payment_id(facilitator, sign_payment, facilitator_key):
    payload = await sign_payment()
    result = await facilitator.settle_payment(create_payment_header(payload), facilitator_key)
    assert result.settled is True
    return payload.payload.payment_id


class TestGaslessLifecycle:
    @pytest.mark.anyio
    async def test_created_payment_is_pending(self, escrow, chain, settled_payment_id):
        payment = await escrow.check_payment_status(settled_payment_id)
        assert payment.status == PaymentStatus.PENDING
        assert abs(payment.expires_at - (chain.now + 3600)) <= 1

    @pytest.mark.anyio
    async def test_recipient_claims(
        self, escrow, chain, settled_payment_id, recipient_key, recipient_address
    ):
        result = await escrow.claim_payment(settled_payment_id, recipient_key)
        assert result.payment.status == PaymentStatus.CLAIMED
        assert result.payment.claimed is True
        assert chain.token_balance(recipient_address) == AMOUNT
        assert chain.token_balance(ESCROW_ADDRESS) == 0

    @pytest.mark.anyio
    async def test_claim_after_expiry_fails(
        self, escrow, chain, settled_payment_id, recipient_key
    ):
        chain.advance_time(3601)
        with pytest.raises(TransactionFailedError, match="Payment expired"):
            await escrow.claim_payment(settled_payment_id, recipient_key)

    @pytest.mark.anyio
    async def test_only_recipient_can_claim(
        self, escrow, chain, settled_payment_id, facilitator_key
    ):
        with pytest.raises(TransactionFailedError, match="Only recipient"):
            await escrow.claim_payment(settled_payment_id, facilitator_key)

    @pytest.mark.anyio
    async def test_expired_then_refunded(
        self, escrow, chain, settled_payment_id, payer_key, payer_address
    ):
        chain.advance_time(3601)
        payment = await escrow.check_payment_status(settled_payment_id)
        assert payment.status == PaymentStatus.EXPIRED

        # refunding costs the payer gas
        chain.fund(payer_address, 10**18)
        result = await escrow.refund_payment(settled_payment_id, payer_key)
        assert result.payment.status == PaymentStatus.REFUNDED
        assert chain.token_balance(payer_address) == INITIAL_TOKENS

    @pytest.mark.anyio
    async def test_refund_before_expiry_fails(
        self, escrow, chain, settled_payment_id, payer_key, payer_address
    ):
        chain.fund(payer_address, 10**18)
        with pytest.raises(TransactionFailedError, match="Payment not expired"):
            await escrow.refund_payment(settled_payment_id, payer_key)
        payment = await escrow.check_payment_status(settled_payment_id)
        assert payment.status == PaymentStatus.PENDING

    @pytest.mark.anyio
    async def test_claimed_payment_cannot_be_refunded(
        self, escrow, chain, settled_payment_id, recipient_key, payer_key, payer_address
    ):
        await escrow.claim_payment(settled_payment_id, recipient_key)
        chain.advance_time(3601)
        chain.fund(payer_address, 10**18)
        with pytest.raises(TransactionFailedError, match="already settled"):
            await escrow.refund_payment(settled_payment_id, payer_key)
        payment = await escrow.check_payment_status(settled_payment_id)
        assert payment.status == PaymentStatus.CLAIMED


class TestDirectPayment:
    @pytest.mark.anyio
    async def test_create_payment_with_approval(
        self, escrow, chain, payer_key, payer_address, recipient_address
    ):
        chain.fund(payer_address, 10**18)
        payment_id = generate_payment_id()

        result = await escrow.create_payment(payment_id, recipient_address, AMOUNT, 600, payer_key)

        assert result.payment_id == payment_id
        assert result.payment.status == PaymentStatus.PENDING
        assert result.payment.expires_at == chain.now + 600
        assert [m for m, _ in chain.sent] == ["approve", "createPayment"]
        assert await escrow.token_balance(payer_address) == INITIAL_TOKENS - AMOUNT

    @pytest.mark.anyio
    async def test_direct_payment_needs_gas(self, escrow, payer_key, recipient_address):
        with pytest.raises(TransactionFailedError, match="insufficient funds for gas"):
            await escrow.create_payment(
                generate_payment_id(), recipient_address, AMOUNT, 600, payer_key
            )

    @pytest.mark.anyio
    async def test_unknown_payment_not_found(self, escrow):
        payment_id = generate_payment_id()
        with pytest.raises(PaymentNotFoundError) as exc_info:
            await escrow.get_payment_record(payment_id)
        assert exc_info.value.payment_id == payment_id
