"""
Payment ID generation utilities.

Escrow payment IDs are bytes32 values, represented as 0x-prefixed hex strings.
"""

import secrets


def generate_payment_id() -> str:
    """
    Generate a random payment ID in hex format.

    Returns:
        A 32-byte payment ID as a hex string with '0x' prefix.
    """
    return "0x" + secrets.token_hex(32)
