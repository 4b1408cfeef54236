"""
PaymentFacilitator - verifies and settles gasless escrow payments.

The facilitator relays a payer's Permit + PaymentIntent signatures to
``createPaymentWithPermit`` and pays the gas itself. It also reads payment
status and owns the webhook monitor.
"""

import json
import logging
import time
from typing import Any, Callable, Optional

import httpx

from x402_escrow.abi import ESCROW_ABI, TOKEN_ABI, get_function_signature
from x402_escrow.clients.escrow_client import EscrowClient
from x402_escrow.config import (
    DEFAULT_MAX_MONITORED_PAYMENTS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    X402Config,
)
from x402_escrow.encoding import hex_to_bytes
from x402_escrow.exceptions import PayloadDecodeError, X402Error
from x402_escrow.facilitator.monitor import MonitoredPayment, PaymentMonitor
from x402_escrow.gateway.base import BlockchainGateway
from x402_escrow.protocol import parse_payment_header, validate_payment_payload
from x402_escrow.signatures import SignatureEngine, SigningConfig
from x402_escrow.types import (
    EVMPermitPayload,
    PaymentPayload,
    PaymentRequestResponse,
    SettleResponse,
    VerifyResponse,
    X402Payment,
)
from x402_escrow.utils.eip712 import payment_id_to_bytes
from x402_escrow.utils.payment_id import generate_payment_id

PENDING_CREATION = "PENDING_CREATION"


class PaymentFacilitator:
    """
    Core payment processor for the escrow protocol.

    Verification is structural by default; the escrow contract checks both
    signatures when the payment is settled. Pass ``verify_signatures=True``
    to also recover the signers locally during verify.
    """

    def __init__(
        self,
        config: X402Config,
        gateway: BlockchainGateway,
        token_name: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_monitored: int = DEFAULT_MAX_MONITORED_PAYMENTS,
        verify_signatures: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._token_name = token_name
        self._verify_signatures = verify_signatures
        self._clock = clock or (lambda: int(time.time()))
        self._escrow = EscrowClient(config, gateway, clock=self._clock)
        self._monitor = PaymentMonitor(
            self,
            http_client=http_client,
            poll_interval=poll_interval,
            max_monitored=max_monitored,
        )
        self._engine: Optional[SignatureEngine] = None
        self._logger = logging.getLogger(self.__class__.__name__)
        self._logger.info(
            f"Initialized: chainId={config.chain_id}, escrow={config.escrow_address}, "
            f"token={config.token_address}, verify_signatures={verify_signatures}"
        )

    @property
    def monitor(self) -> PaymentMonitor:
        return self._monitor

    @property
    def escrow(self) -> EscrowClient:
        return self._escrow

    def get_config(self) -> X402Config:
        return self._config

    async def signature_engine(self) -> SignatureEngine:
        """Signature engine for the configured token; reads the token name once."""
        if self._engine is None:
            token_name = self._token_name
            if token_name is None:
                token_name = await self._gateway.read_contract(
                    self._config.token_address, TOKEN_ABI, "name", []
                )
                self._token_name = token_name
            self._engine = SignatureEngine(
                self._gateway,
                SigningConfig(
                    tokenAddress=self._config.token_address,
                    tokenName=token_name,
                    escrowAddress=self._config.escrow_address,
                    chainId=self._config.chain_id,
                ),
            )
        return self._engine

    async def _verify(self, encoded: str) -> tuple[VerifyResponse, Optional[PaymentPayload]]:
        try:
            payload = parse_payment_header(encoded)
        except PayloadDecodeError as e:
            self._logger.warning(f"Verification failed: {e}")
            return VerifyResponse(valid=False, error=str(e)), None

        permit = payload.payload
        self._logger.info(
            f"Verifying payment: paymentId={permit.payment_id}, "
            f"payer={permit.payer}, amount={permit.amount}"
        )

        result = validate_payment_payload(payload)
        if not result.valid:
            self._logger.warning(f"Validation failed: {result.error}")
            return VerifyResponse(valid=False, error=result.error), None

        if self._verify_signatures:
            try:
                engine = await self.signature_engine()
                await engine.verify_payload_signatures(permit)
            except (X402Error, ValueError) as e:
                self._logger.warning(f"Invalid signature: {e}")
                return VerifyResponse(valid=False, error=str(e)), None

        self._logger.info("Payment verification successful")
        return (
            VerifyResponse(
                valid=True,
                paymentId=permit.payment_id,
                payer=permit.payer,
                amount=permit.amount,
            ),
            payload,
        )

    async def verify_payment(self, encoded: str) -> VerifyResponse:
        """
        Verify an encoded X-PAYMENT header value.

        Args:
            encoded: Base64 payment payload

        Returns:
            VerifyResponse; ``valid`` is False with an error on any failure
        """
        response, _ = await self._verify(encoded)
        return response

    @staticmethod
    def _settlement_args(permit: EVMPermitPayload) -> list[Any]:
        """Arguments for createPaymentWithPermit, in contract order"""
        intent_sig = permit.payment_signature
        permit_sig = permit.permit_signature
        return [
            payment_id_to_bytes(permit.payment_id),
            permit.payer,
            permit.recipient,
            int(permit.amount),
            int(permit.duration),
            int(permit.deadline),
            int(intent_sig.v),
            hex_to_bytes(intent_sig.r),
            hex_to_bytes(intent_sig.s),
            int(permit_sig.v),
            hex_to_bytes(permit_sig.r),
            hex_to_bytes(permit_sig.s),
        ]

    async def settle_payment(self, encoded: str, facilitator_key: str) -> SettleResponse:
        """
        Verify a payment and create it on-chain, paying gas with ``facilitator_key``.

        A revert is reported as ``settled=False`` and never retried.
        """
        verify_result, payload = await self._verify(encoded)
        if not verify_result.valid or payload is None:
            self._logger.error(
                f"Settlement failed: verification failed - {verify_result.error}"
            )
            return SettleResponse(settled=False, error=verify_result.error)

        permit = payload.payload
        self._logger.info(f"Starting settlement: paymentId={permit.payment_id}")
        self._logger.info(f"  - payer: {permit.payer}")
        self._logger.info(f"  - recipient: {permit.recipient}")
        self._logger.info(f"  - amount: {permit.amount}")
        self._logger.info(f"  - duration: {permit.duration}")

        try:
            args = self._settlement_args(permit)
        except (TypeError, ValueError) as e:
            self._logger.error(f"Settlement failed: malformed payload - {e}")
            return SettleResponse(
                paymentId=permit.payment_id, settled=False, error=f"Invalid payload: {e}"
            )

        self._logger.info(
            f"Calling {get_function_signature(ESCROW_ABI, 'createPaymentWithPermit')} "
            f"on {self._config.escrow_address}"
        )
        try:
            tx_hash = await self._gateway.send_transaction(
                self._config.escrow_address,
                ESCROW_ABI,
                "createPaymentWithPermit",
                args,
                facilitator_key,
            )
        except X402Error as e:
            self._logger.error(f"Settlement transaction failed: {e}")
            return SettleResponse(paymentId=permit.payment_id, settled=False, error=str(e))

        self._logger.info(f"Transaction broadcast successful: txHash={tx_hash}")
        self._logger.info("Waiting for transaction receipt...")
        try:
            receipt = await self._gateway.wait_for_receipt(tx_hash)
        except X402Error as e:
            # Outcome unknown; callers poll /payments/{id}
            self._logger.error(f"Settlement receipt unavailable: txHash={tx_hash}, {e}")
            return SettleResponse(
                txHash=tx_hash, paymentId=permit.payment_id, settled=False, error=str(e)
            )

        if receipt.get("status") != "confirmed":
            self._logger.error(f"Transaction failed on-chain: txHash={tx_hash}")
            return SettleResponse(
                txHash=tx_hash,
                paymentId=permit.payment_id,
                settled=False,
                error="Transaction failed on-chain",
            )

        block_number = receipt.get("blockNumber")
        self._logger.info(f"Payment settled: txHash={tx_hash}, block={block_number}")
        return SettleResponse(
            txHash=tx_hash,
            paymentId=permit.payment_id,
            settled=True,
            blockNumber=str(block_number) if block_number is not None else None,
        )

    async def check_payment_status(self, payment_id: str) -> X402Payment:
        """
        Raises:
            PaymentNotFoundError: If the payment does not exist on-chain
        """
        return await self._escrow.check_payment_status(payment_id)

    def create_payment_request(
        self,
        recipient: str,
        amount: int,
        duration: int,
        service_type: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentRequestResponse:
        """Describe a payment for a QR code or wallet deep link. Nothing is sent on-chain."""
        payment_id = generate_payment_id()
        qr_code_data = json.dumps(
            {
                "paymentId": payment_id,
                "recipient": recipient,
                "amount": str(amount),
                "duration": duration,
                "serviceType": service_type,
                "metadata": metadata,
            }
        )
        deep_link = (
            f"x402://pay?id={payment_id}&recipient={recipient}"
            f"&amount={amount}&duration={duration}"
        )
        return PaymentRequestResponse(
            paymentId=payment_id,
            recipient=recipient,
            amount=str(amount),
            duration=duration,
            expiresAt=self._clock() + duration,
            status=PENDING_CREATION,
            qrCodeData=qr_code_data,
            deepLink=deep_link,
        )

    async def monitor_payment(
        self,
        payment_id: str,
        callback_url: str,
        poll_interval: Optional[float] = None,
    ) -> MonitoredPayment:
        return await self._monitor.start(payment_id, callback_url, poll_interval)

    async def stop_monitoring(self, payment_id: str) -> bool:
        return await self._monitor.stop(payment_id)

    async def stop_all_monitoring(self) -> None:
        await self._monitor.stop_all()

    async def close(self) -> None:
        await self._monitor.close()
