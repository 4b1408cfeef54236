"""
Blockchain gateway base interface
"""

from abc import ABC, abstractmethod
from typing import Any


class BlockchainGateway(ABC):
    """
    Abstract base class for chain access.

    Covers everything the protocol core needs from an EVM node: contract reads,
    EIP-712 signing, transaction submission and receipt waits. Keeping it behind
    one interface lets the facilitator run against an in-memory chain.
    """

    @abstractmethod
    async def read_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
    ) -> Any:
        """
        Call a view function.

        Args:
            contract_address: Contract address
            abi: Contract ABI
            method: Method name
            args: Method arguments

        Returns:
            Decoded return value
        """
        pass

    async def get_nonce(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        owner: str,
    ) -> int:
        """Read ``nonces(owner)`` from a token or escrow contract"""
        return int(await self.read_contract(contract_address, abi, "nonces", [owner]))

    @abstractmethod
    async def sign_typed_data(self, typed_data: dict[str, Any], private_key: str) -> str:
        """
        Sign EIP-712 typed data.

        Args:
            typed_data: Full typed data (types incl. EIP712Domain, primaryType,
                domain, message)
            private_key: Signer's private key

        Returns:
            65-byte signature as 0x-prefixed hex
        """
        pass

    @abstractmethod
    async def send_transaction(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        private_key: str,
    ) -> str:
        """
        Build, sign and broadcast a contract write; the signer pays gas.

        Returns:
            Transaction hash

        Raises:
            TransactionFailedError: If the call reverts or the node rejects it
        """
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str, timeout: int = 120) -> dict[str, Any]:
        """
        Wait for transaction confirmation.

        Returns:
            Dict with ``hash``, ``blockNumber`` and ``status``
            (``"confirmed"`` or ``"failed"``)

        Raises:
            TransactionTimeoutError: If no receipt arrives within ``timeout``
        """
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native currency balance in wei"""
        pass

    @abstractmethod
    async def get_latest_block_timestamp(self) -> int:
        """Timestamp of the latest block (unix seconds)"""
        pass
