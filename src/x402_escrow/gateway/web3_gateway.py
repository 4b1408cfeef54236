"""
Web3Gateway - EVM chain gateway implementation
"""

import logging
from typing import Any

from x402_escrow.exceptions import (
    SignatureCreationError,
    TransactionFailedError,
    TransactionTimeoutError,
)
from x402_escrow.gateway.base import BlockchainGateway

logger = logging.getLogger(__name__)


class Web3Gateway(BlockchainGateway):
    """EVM gateway implementation using web3.py and eth-account"""

    def __init__(self, rpc_url: str, chain_id: int) -> None:
        self._rpc_url = rpc_url
        self._chain_id = chain_id
        self._w3: Any = None
        logger.debug("Web3Gateway initialized", extra={"rpc_url": rpc_url, "chain_id": chain_id})

    @classmethod
    def from_config(cls, config: Any) -> "Web3Gateway":
        """Create gateway from an X402Config"""
        return cls(config.rpc_url, config.chain_id)

    def _ensure_async_web3_client(self) -> Any:
        """Lazy initialize async web3 client."""
        if self._w3 is None:
            from web3 import AsyncHTTPProvider, AsyncWeb3
            from web3.middleware import ExtraDataToPOAMiddleware

            w3 = AsyncWeb3(AsyncHTTPProvider(self._rpc_url))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._w3 = w3

        return self._w3

    @staticmethod
    def _normalize_args(args: list[Any]) -> list[Any]:
        """Checksum address arguments; web3 rejects lowercase addresses."""
        from web3 import Web3

        return [
            Web3.to_checksum_address(arg) if isinstance(arg, str) and Web3.is_address(arg) else arg
            for arg in args
        ]

    def _contract(self, contract_address: str, abi: list[dict[str, Any]]) -> Any:
        from web3 import Web3

        w3 = self._ensure_async_web3_client()
        return w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=abi)

    async def read_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
    ) -> Any:
        contract = self._contract(contract_address, abi)
        func = getattr(contract.functions, method)
        return await func(*self._normalize_args(args)).call()

    async def sign_typed_data(self, typed_data: dict[str, Any], private_key: str) -> str:
        """Sign EIP-712 typed data locally."""
        try:
            from eth_account import Account
            from eth_account.messages import encode_typed_data

            encoded = encode_typed_data(full_message=typed_data)
            signed = Account.sign_message(encoded, private_key=private_key)
            return "0x" + bytes(signed.signature).hex()
        except Exception as e:
            raise SignatureCreationError(f"Failed to sign typed data: {e}") from e

    async def send_transaction(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        private_key: str,
    ) -> str:
        """Execute contract transaction (async)."""
        from eth_account import Account
        from web3 import Web3

        w3 = self._ensure_async_web3_client()
        sender = Account.from_key(private_key).address

        try:
            contract = self._contract(contract_address, abi)
            func = getattr(contract.functions, method)

            tx = await func(*self._normalize_args(args)).build_transaction(
                {
                    "from": sender,
                    "nonce": await w3.eth.get_transaction_count(sender),
                    "chainId": self._chain_id,
                }
            )

            signed_tx = w3.eth.account.sign_transaction(tx, private_key=private_key)
            tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            return Web3.to_hex(tx_hash)
        except Exception as e:
            logger.error(
                "Contract write failed: %s",
                e,
                extra={"method": method, "contract": contract_address},
            )
            raise TransactionFailedError(f"{method} failed: {e}") from e

    async def wait_for_receipt(self, tx_hash: str, timeout: int = 120) -> dict[str, Any]:
        """Wait for EVM transaction confirmation"""
        from web3.exceptions import TimeExhausted

        w3 = self._ensure_async_web3_client()
        try:
            receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise TransactionTimeoutError(
                f"Transaction {tx_hash} not confirmed within {timeout}s"
            ) from e

        return {
            "hash": tx_hash,
            "blockNumber": str(receipt["blockNumber"]),
            "status": "confirmed" if receipt["status"] == 1 else "failed",
            "gasUsed": receipt.get("gasUsed"),
            "receipt": receipt,
        }

    async def get_balance(self, address: str) -> int:
        from web3 import Web3

        w3 = self._ensure_async_web3_client()
        return await w3.eth.get_balance(Web3.to_checksum_address(address))

    async def get_latest_block_timestamp(self) -> int:
        w3 = self._ensure_async_web3_client()
        block = await w3.eth.get_block("latest")
        return int(block["timestamp"])
