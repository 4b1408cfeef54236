"""
EscrowClient - config-driven access to the escrow and token contracts
"""

import logging
import time
from typing import Callable, Optional

from x402_escrow.abi import ESCROW_ABI, TOKEN_ABI
from x402_escrow.config import X402Config
from x402_escrow.exceptions import PaymentNotFoundError, TransactionFailedError
from x402_escrow.gateway.base import BlockchainGateway
from x402_escrow.types import PaymentRecord, PaymentTransactionResult, X402Payment
from x402_escrow.utils.eip712 import EVM_ZERO_ADDRESS, payment_id_to_bytes
from x402_escrow.utils.status import compute_payment_status

logger = logging.getLogger(__name__)


def _wall_clock() -> int:
    return int(time.time())


class EscrowClient:
    """
    Reads escrow records and performs direct (payer-pays-gas) escrow writes.

    Status is derived from the record and ``clock``; it is never stored.
    """

    def __init__(
        self,
        config: X402Config,
        gateway: BlockchainGateway,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._clock = clock or _wall_clock

    @property
    def gateway(self) -> BlockchainGateway:
        return self._gateway

    def get_config(self) -> X402Config:
        return self._config

    async def get_payment_record(self, payment_id: str) -> PaymentRecord:
        """
        Read the raw escrow record.

        Raises:
            PaymentNotFoundError: If no payment was created under ``payment_id``
        """
        raw = await self._gateway.read_contract(
            self._config.escrow_address,
            ESCROW_ABI,
            "getPayment",
            [payment_id_to_bytes(payment_id)],
        )
        payer, recipient, amount, expires_at, claimed, refunded = raw
        if payer.lower() == EVM_ZERO_ADDRESS:
            raise PaymentNotFoundError(payment_id)

        return PaymentRecord(
            payer=payer,
            recipient=recipient,
            amount=int(amount),
            expiresAt=int(expires_at),
            claimed=bool(claimed),
            refunded=bool(refunded),
        )

    async def check_payment_status(self, payment_id: str) -> X402Payment:
        """Read a payment and compute its current status"""
        record = await self.get_payment_record(payment_id)
        status = compute_payment_status(record, self._clock())
        return X402Payment(
            id=payment_id,
            payer=record.payer,
            recipient=record.recipient,
            amount=str(record.amount),
            expiresAt=record.expires_at,
            claimed=record.claimed,
            refunded=record.refunded,
            status=status,
        )

    async def token_balance(self, address: str) -> int:
        return int(
            await self._gateway.read_contract(
                self._config.token_address, TOKEN_ABI, "balanceOf", [address]
            )
        )

    async def _write(self, contract: str, abi: list, method: str, args: list, key: str) -> str:
        tx_hash = await self._gateway.send_transaction(contract, abi, method, args, key)
        receipt = await self._gateway.wait_for_receipt(tx_hash)
        if receipt.get("status") != "confirmed":
            raise TransactionFailedError(f"{method} reverted: txHash={tx_hash}")
        return tx_hash

    async def create_payment(
        self,
        payment_id: str,
        recipient: str,
        amount: int,
        duration: int,
        private_key: str,
    ) -> PaymentTransactionResult:
        """
        Create a payment directly: approve the escrow, then lock the tokens.

        The payer signs and pays gas for both transactions.
        """
        await self._write(
            self._config.token_address,
            TOKEN_ABI,
            "approve",
            [self._config.escrow_address, amount],
            private_key,
        )
        tx_hash = await self._write(
            self._config.escrow_address,
            ESCROW_ABI,
            "createPayment",
            [payment_id_to_bytes(payment_id), recipient, amount, duration],
            private_key,
        )
        logger.info(f"Payment created: paymentId={payment_id}, txHash={tx_hash}")
        return PaymentTransactionResult(
            paymentId=payment_id,
            transactionHash=tx_hash,
            payment=await self.check_payment_status(payment_id),
        )

    async def claim_payment(self, payment_id: str, private_key: str) -> PaymentTransactionResult:
        """Claim a pending payment (recipient only, before expiry)"""
        tx_hash = await self._write(
            self._config.escrow_address,
            ESCROW_ABI,
            "claimPayment",
            [payment_id_to_bytes(payment_id)],
            private_key,
        )
        logger.info(f"Payment claimed: paymentId={payment_id}, txHash={tx_hash}")
        return PaymentTransactionResult(
            paymentId=payment_id,
            transactionHash=tx_hash,
            payment=await self.check_payment_status(payment_id),
        )

    async def refund_payment(self, payment_id: str, private_key: str) -> PaymentTransactionResult:
        """Refund an expired payment (payer only)"""
        tx_hash = await self._write(
            self._config.escrow_address,
            ESCROW_ABI,
            "refundPayment",
            [payment_id_to_bytes(payment_id)],
            private_key,
        )
        logger.info(f"Payment refunded: paymentId={payment_id}, txHash={tx_hash}")
        return PaymentTransactionResult(
            paymentId=payment_id,
            transactionHash=tx_hash,
            payment=await self.check_payment_status(payment_id),
        )
