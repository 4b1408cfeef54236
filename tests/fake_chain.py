"""
In-memory EVM chain with an ERC-2612 token and the X402 escrow contract.

Signatures are recovered with eth-account against the same typed data the
escrow contract hashes, so a payload that settles here carries valid
signatures. Every successful write charges the sender a fixed gas fee;
reverts raise before any state changes.
"""

import hashlib
from typing import Any

from eth_account import Account
from eth_account.messages import encode_typed_data

from x402_escrow.exceptions import TransactionFailedError
from x402_escrow.gateway.base import BlockchainGateway
from x402_escrow.utils.eip712 import (
    EVM_ZERO_ADDRESS,
    build_payment_intent_typed_data,
    build_permit_typed_data,
)

CHAIN_ID = 31337
TOKEN_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
ESCROW_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
TOKEN_NAME = "Mock USDC"

GAS_FEE = 21_000 * 10**9
GENESIS_TIMESTAMP = 1_700_000_000


class Revert(Exception):
    pass


class FakeChain(BlockchainGateway):
    def __init__(
        self,
        chain_id: int = CHAIN_ID,
        token_address: str = TOKEN_ADDRESS,
        escrow_address: str = ESCROW_ADDRESS,
        token_name: str = TOKEN_NAME,
    ) -> None:
        self.chain_id = chain_id
        self.token_address = token_address
        self.escrow_address = escrow_address
        self.token_name = token_name

        self.now = GENESIS_TIMESTAMP
        self.block_number = 1
        self.native: dict[str, int] = {}
        self.tokens: dict[str, int] = {}
        self.token_nonces: dict[str, int] = {}
        self.escrow_nonces: dict[str, int] = {}
        self.allowances: dict[tuple[str, str], int] = {}
        self.payments: dict[bytes, dict[str, Any]] = {}
        self.receipts: dict[str, dict[str, Any]] = {}
        self.sent: list[tuple[str, str]] = []

    # test helpers

    def clock(self) -> int:
        return self.now

    def advance_time(self, seconds: int) -> None:
        self.now += seconds

    def fund(self, address: str, wei: int) -> None:
        self.native[address.lower()] = self.native.get(address.lower(), 0) + wei

    def mint(self, address: str, amount: int) -> None:
        self.tokens[address.lower()] = self.tokens.get(address.lower(), 0) + amount

    def token_balance(self, address: str) -> int:
        return self.tokens.get(address.lower(), 0)

    # BlockchainGateway

    async def read_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
    ) -> Any:
        if contract_address.lower() == self.token_address.lower():
            if method == "name":
                return self.token_name
            if method == "balanceOf":
                return self.token_balance(args[0])
            if method == "nonces":
                return self.token_nonces.get(args[0].lower(), 0)
            if method == "allowance":
                return self.allowances.get((args[0].lower(), args[1].lower()), 0)
        elif contract_address.lower() == self.escrow_address.lower():
            if method == "nonces":
                return self.escrow_nonces.get(args[0].lower(), 0)
            if method == "getPayment":
                payment = self.payments.get(args[0])
                if payment is None:
                    return (EVM_ZERO_ADDRESS, EVM_ZERO_ADDRESS, 0, 0, False, False)
                return (
                    payment["payer"],
                    payment["recipient"],
                    payment["amount"],
                    payment["expiresAt"],
                    payment["claimed"],
                    payment["refunded"],
                )
        raise ValueError(f"Unknown call {method} on {contract_address}")

    async def sign_typed_data(self, typed_data: dict[str, Any], private_key: str) -> str:
        signed = Account.sign_message(encode_typed_data(full_message=typed_data), private_key)
        return "0x" + bytes(signed.signature).hex()

    async def send_transaction(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        private_key: str,
    ) -> str:
        sender = Account.from_key(private_key).address
        try:
            if self.native.get(sender.lower(), 0) < GAS_FEE:
                raise Revert("insufficient funds for gas")
            if contract_address.lower() == self.token_address.lower() and method == "approve":
                spender, amount = args
                self.allowances[(sender.lower(), spender.lower())] = int(amount)
            elif contract_address.lower() == self.escrow_address.lower():
                getattr(self, f"_escrow_{method}")(sender, *args)
            else:
                raise Revert(f"unknown method {method}")
        except Revert as e:
            raise TransactionFailedError(f"{method} failed: execution reverted: {e}") from e

        self.native[sender.lower()] -= GAS_FEE
        self.block_number += 1
        tx_hash = "0x" + hashlib.sha256(f"{self.block_number}:{method}".encode()).hexdigest()
        self.receipts[tx_hash] = {
            "hash": tx_hash,
            "blockNumber": str(self.block_number),
            "status": "confirmed",
        }
        self.sent.append((method, sender))
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: int = 120) -> dict[str, Any]:
        return self.receipts[tx_hash]

    async def get_balance(self, address: str) -> int:
        return self.native.get(address.lower(), 0)

    async def get_latest_block_timestamp(self) -> int:
        return self.now

    # escrow contract

    def _recover(self, typed_data: dict[str, Any], v: int, r: bytes, s: bytes) -> str:
        signable = encode_typed_data(full_message=typed_data)
        return Account.recover_message(signable, signature=bytes(r) + bytes(s) + bytes([v]))

    def _transfer(self, source: str, target: str, amount: int) -> None:
        if self.token_balance(source) < amount:
            raise Revert("ERC20: transfer amount exceeds balance")
        self.tokens[source.lower()] -= amount
        self.mint(target, amount)

    def _store(self, payment_id: bytes, payer: str, recipient: str, amount: int, duration: int):
        self.payments[payment_id] = {
            "payer": payer,
            "recipient": recipient,
            "amount": amount,
            "expiresAt": self.now + duration,
            "claimed": False,
            "refunded": False,
        }

    def _escrow_createPaymentWithPermit(
        self, sender, payment_id, payer, recipient, amount, duration, deadline,
        v, r, s, permit_v, permit_r, permit_s,
    ) -> None:
        if self.now > deadline:
            raise Revert("Signature expired")
        if payment_id in self.payments:
            raise Revert("Payment already exists")
        if amount <= 0:
            raise Revert("Amount must be greater than 0")

        escrow_nonce = self.escrow_nonces.get(payer.lower(), 0)
        intent = build_payment_intent_typed_data(
            self.escrow_address, self.chain_id, "0x" + payment_id.hex(),
            payer, recipient, amount, duration, escrow_nonce, deadline,
        )
        if self._recover(intent, v, r, s).lower() != payer.lower():
            raise Revert("Invalid payment signature")

        token_nonce = self.token_nonces.get(payer.lower(), 0)
        permit = build_permit_typed_data(
            self.token_address, self.token_name, self.chain_id,
            payer, self.escrow_address, amount, token_nonce, deadline,
        )
        if self._recover(permit, permit_v, permit_r, permit_s).lower() != payer.lower():
            raise Revert("ERC2612InvalidSigner")

        self._transfer(payer, self.escrow_address, amount)
        self.token_nonces[payer.lower()] = token_nonce + 1
        self.escrow_nonces[payer.lower()] = escrow_nonce + 1
        self._store(payment_id, payer, recipient, amount, duration)

    def _escrow_createPayment(self, sender, payment_id, recipient, amount, duration) -> None:
        if payment_id in self.payments:
            raise Revert("Payment already exists")
        key = (sender.lower(), self.escrow_address.lower())
        if self.allowances.get(key, 0) < amount:
            raise Revert("ERC20: insufficient allowance")
        self._transfer(sender, self.escrow_address, amount)
        self.allowances[key] -= amount
        self._store(payment_id, sender, recipient, amount, duration)

    def _settled_payment(self, payment_id: bytes) -> dict[str, Any]:
        payment = self.payments.get(payment_id)
        if payment is None:
            raise Revert("Payment does not exist")
        if payment["claimed"] or payment["refunded"]:
            raise Revert("Payment already settled")
        return payment

    def _escrow_claimPayment(self, sender, payment_id) -> None:
        payment = self._settled_payment(payment_id)
        if sender.lower() != payment["recipient"].lower():
            raise Revert("Only recipient can claim")
        if self.now > payment["expiresAt"]:
            raise Revert("Payment expired")
        self._transfer(self.escrow_address, payment["recipient"], payment["amount"])
        payment["claimed"] = True

    def _escrow_refundPayment(self, sender, payment_id) -> None:
        payment = self._settled_payment(payment_id)
        if sender.lower() != payment["payer"].lower():
            raise Revert("Only payer can refund")
        if self.now <= payment["expiresAt"]:
            raise Revert("Payment not expired")
        self._transfer(self.escrow_address, payment["payer"], payment["amount"])
        payment["refunded"] = True
