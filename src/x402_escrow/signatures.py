"""
SignatureEngine - builds and verifies the two signatures of a gasless payment.

A payer authorizes an escrow payment off-chain with:
    - an ERC-2612 permit letting the escrow pull ``amount`` tokens, and
    - an EIP-712 PaymentIntent binding paymentId, recipient, amount and duration.
Both share a single deadline. The facilitator relays them on-chain and pays gas.
"""

import asyncio
import logging
from typing import Any

from pydantic import BaseModel, Field

from x402_escrow.abi import ESCROW_ABI, TOKEN_ABI
from x402_escrow.exceptions import SignatureVerificationError
from x402_escrow.gateway.base import BlockchainGateway
from x402_escrow.types import EVMPermitPayload, SignatureParts, TokenNonces
from x402_escrow.utils.eip712 import (
    build_payment_intent_typed_data,
    build_permit_typed_data,
    join_signature,
    split_signature,
)

logger = logging.getLogger(__name__)


class SigningConfig(BaseModel):
    """Contract and chain parameters that go into both EIP-712 domains"""

    token_address: str = Field(alias="tokenAddress")
    token_name: str = Field(alias="tokenName")
    escrow_address: str = Field(alias="escrowAddress")
    chain_id: int = Field(alias="chainId")

    class Config:
        populate_by_name = True


class PaymentDetails(BaseModel):
    """What the payer is authorizing"""

    payment_id: str = Field(alias="paymentId")
    payer: str
    recipient: str
    amount: int
    duration: int

    class Config:
        populate_by_name = True


class SignatureEngine:
    """
    Create and check Permit / PaymentIntent signatures.

    Nonce reads and signing go through the gateway; recovery is local.
    """

    def __init__(self, gateway: BlockchainGateway, config: SigningConfig) -> None:
        self._gateway = gateway
        self._config = config

    @property
    def config(self) -> SigningConfig:
        return self._config

    @property
    def gateway(self) -> BlockchainGateway:
        return self._gateway

    async def get_nonces(self, payer: str) -> TokenNonces:
        """Read the token permit nonce and the escrow intent nonce concurrently"""
        token_nonce, escrow_nonce = await asyncio.gather(
            self._gateway.get_nonce(self._config.token_address, TOKEN_ABI, payer),
            self._gateway.get_nonce(self._config.escrow_address, ESCROW_ABI, payer),
        )
        return TokenNonces(tokenNonce=token_nonce, escrowNonce=escrow_nonce)

    def permit_typed_data(
        self, owner: str, value: int, nonce: int, deadline: int
    ) -> dict[str, Any]:
        return build_permit_typed_data(
            token_address=self._config.token_address,
            token_name=self._config.token_name,
            chain_id=self._config.chain_id,
            owner=owner,
            spender=self._config.escrow_address,
            value=value,
            nonce=nonce,
            deadline=deadline,
        )

    def payment_intent_typed_data(
        self, payment: PaymentDetails, nonce: int, deadline: int
    ) -> dict[str, Any]:
        return build_payment_intent_typed_data(
            escrow_address=self._config.escrow_address,
            chain_id=self._config.chain_id,
            payment_id=payment.payment_id,
            payer=payment.payer,
            recipient=payment.recipient,
            amount=payment.amount,
            duration=payment.duration,
            nonce=nonce,
            deadline=deadline,
        )

    async def sign_permit(
        self,
        owner: str,
        value: int,
        nonce: int,
        deadline: int,
        private_key: str,
    ) -> SignatureParts:
        """Sign an ERC-2612 permit for the escrow contract"""
        typed_data = self.permit_typed_data(owner, value, nonce, deadline)
        signature = await self._gateway.sign_typed_data(typed_data, private_key)
        return split_signature(signature)

    async def sign_payment_intent(
        self,
        payment: PaymentDetails,
        nonce: int,
        deadline: int,
        private_key: str,
    ) -> SignatureParts:
        """Sign the escrow PaymentIntent"""
        typed_data = self.payment_intent_typed_data(payment, nonce, deadline)
        signature = await self._gateway.sign_typed_data(typed_data, private_key)
        return split_signature(signature)

    async def create_signed_payload(
        self,
        payment: PaymentDetails,
        nonces: TokenNonces,
        deadline: int,
        private_key: str,
    ) -> EVMPermitPayload:
        """
        Sign both structures and assemble the EVM permit payload.

        The key must belong to ``payment.payer``; a mismatch is only caught
        when the escrow contract recovers the signer.
        """
        permit_signature = await self.sign_permit(
            payment.payer, payment.amount, nonces.token_nonce, deadline, private_key
        )
        payment_signature = await self.sign_payment_intent(
            payment, nonces.escrow_nonce, deadline, private_key
        )

        logger.debug(
            "Created signed payload",
            extra={"payment_id": payment.payment_id, "payer": payment.payer},
        )

        return EVMPermitPayload(
            paymentId=payment.payment_id,
            payer=payment.payer,
            recipient=payment.recipient,
            amount=str(payment.amount),
            duration=payment.duration,
            deadline=str(deadline),
            nonce=str(nonces.escrow_nonce),
            permitSignature=permit_signature,
            paymentSignature=payment_signature,
        )

    def recover_signer(self, typed_data: dict[str, Any], signature: SignatureParts) -> str:
        """Recover the address that signed ``typed_data``"""
        from eth_account import Account
        from eth_account.messages import encode_typed_data

        try:
            signable = encode_typed_data(full_message=typed_data)
            return Account.recover_message(signable, signature=join_signature(signature))
        except Exception as e:
            raise SignatureVerificationError(f"Could not recover signer: {e}") from e

    def recover_permit_signer(
        self, owner: str, value: int, nonce: int, deadline: int, signature: SignatureParts
    ) -> str:
        return self.recover_signer(
            self.permit_typed_data(owner, value, nonce, deadline), signature
        )

    def recover_payment_signer(
        self, payment: PaymentDetails, nonce: int, deadline: int, signature: SignatureParts
    ) -> str:
        return self.recover_signer(
            self.payment_intent_typed_data(payment, nonce, deadline), signature
        )

    async def verify_payload_signatures(
        self,
        payload: EVMPermitPayload,
        check_nonces: bool = True,
    ) -> None:
        """
        Check both signatures of a payload locally.

        Mirrors what the escrow contract does in createPaymentWithPermit, so a
        payload that passes here can still fail on-chain (e.g. balance).

        Raises:
            SignatureVerificationError: If either signature does not recover to
                the payer, or the intent nonce is stale
        """
        payer = payload.payer
        try:
            details = PaymentDetails(
                paymentId=payload.payment_id,
                payer=payer,
                recipient=payload.recipient,
                amount=int(payload.amount),
                duration=payload.duration,
            )
            deadline = int(payload.deadline)
            intent_nonce = int(payload.nonce)
        except (TypeError, ValueError) as e:
            raise SignatureVerificationError(f"Incomplete payment payload: {e}") from e

        nonces = await self.get_nonces(payer)
        if check_nonces and intent_nonce != nonces.escrow_nonce:
            raise SignatureVerificationError(
                f"Stale escrow nonce: payload={intent_nonce}, chain={nonces.escrow_nonce}"
            )

        intent_signer = self.recover_payment_signer(
            details, intent_nonce, deadline, payload.payment_signature
        )
        if intent_signer.lower() != payer.lower():
            raise SignatureVerificationError(
                f"Payment signature signed by {intent_signer}, expected {payer}"
            )

        permit_signer = self.recover_permit_signer(
            payer, details.amount, nonces.token_nonce, deadline, payload.permit_signature
        )
        if permit_signer.lower() != payer.lower():
            raise SignatureVerificationError(
                f"Permit signature signed by {permit_signer}, expected {payer}"
            )
