"""
EIP-712 helpers for the escrow protocol.

Builds the Permit and PaymentIntent typed-data documents and converts
between 65-byte signatures and their v, r, s parts.
"""

from typing import Any

from x402_escrow.abi import (
    DOMAIN_VERSION,
    EIP712_DOMAIN_TYPE,
    ESCROW_DOMAIN_NAME,
    PAYMENT_INTENT_PRIMARY_TYPE,
    PAYMENT_INTENT_TYPE,
    PERMIT_PRIMARY_TYPE,
    PERMIT_TYPE,
)
from x402_escrow.encoding import hex_to_bytes
from x402_escrow.types import SignatureParts

EVM_ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def payment_id_to_bytes(payment_id: str) -> bytes:
    """
    Convert payment ID from hex string to bytes32.

    Args:
        payment_id: Hex string with 0x prefix (64 hex characters)

    Returns:
        32-byte payment ID

    Raises:
        ValueError: If format is invalid
    """
    if not payment_id.startswith("0x"):
        raise ValueError(
            f"Invalid payment ID format: {payment_id}. Expected hex string with 0x prefix"
        )

    payment_id_hex = payment_id[2:]
    if len(payment_id_hex) != 64:
        raise ValueError(
            f"Invalid payment ID length: {len(payment_id_hex)}. Expected 64 hex characters"
        )

    return bytes.fromhex(payment_id_hex)


def split_signature(signature: str | bytes) -> SignatureParts:
    """Split a 65-byte ECDSA signature into r = [0:32], s = [32:64], v = [64]."""
    sig = hex_to_bytes(signature) if isinstance(signature, str) else bytes(signature)
    if len(sig) != 65:
        raise ValueError(f"Invalid signature length: {len(sig)}. Expected 65 bytes")
    return SignatureParts(
        r="0x" + sig[0:32].hex(),
        s="0x" + sig[32:64].hex(),
        v=sig[64],
    )


def join_signature(parts: SignatureParts) -> bytes:
    """Inverse of split_signature"""
    if parts.v is None or not parts.r or not parts.s:
        raise ValueError("Incomplete signature")
    return hex_to_bytes(parts.r) + hex_to_bytes(parts.s) + bytes([parts.v])


def build_domain(name: str, chain_id: int, verifying_contract: str) -> dict[str, Any]:
    """EIP-712 domain with the fixed version "1" """
    return {
        "name": name,
        "version": DOMAIN_VERSION,
        "chainId": chain_id,
        "verifyingContract": verifying_contract,
    }


def build_permit_typed_data(
    token_address: str,
    token_name: str,
    chain_id: int,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> dict[str, Any]:
    """ERC-2612 Permit typed data (spender is the escrow contract)."""
    return {
        "types": {"EIP712Domain": EIP712_DOMAIN_TYPE, PERMIT_PRIMARY_TYPE: PERMIT_TYPE},
        "primaryType": PERMIT_PRIMARY_TYPE,
        "domain": build_domain(token_name, chain_id, token_address),
        "message": {
            "owner": owner,
            "spender": spender,
            "value": int(value),
            "nonce": int(nonce),
            "deadline": int(deadline),
        },
    }


def build_payment_intent_typed_data(
    escrow_address: str,
    chain_id: int,
    payment_id: str,
    payer: str,
    recipient: str,
    amount: int,
    duration: int,
    nonce: int,
    deadline: int,
) -> dict[str, Any]:
    """PaymentIntent typed data hashed by the escrow contract."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            PAYMENT_INTENT_PRIMARY_TYPE: PAYMENT_INTENT_TYPE,
        },
        "primaryType": PAYMENT_INTENT_PRIMARY_TYPE,
        "domain": build_domain(ESCROW_DOMAIN_NAME, chain_id, escrow_address),
        "message": {
            "paymentId": payment_id_to_bytes(payment_id),
            "payer": payer,
            "recipient": recipient,
            "amount": int(amount),
            "duration": int(duration),
            "nonce": int(nonce),
            "deadline": int(deadline),
        },
    }
