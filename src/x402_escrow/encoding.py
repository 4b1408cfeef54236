"""
Encoding utilities for x402 protocol
"""

import base64
import binascii
import json
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from x402_escrow.exceptions import PayloadDecodeError

T = TypeVar("T")


def encode_base64(data: str | bytes) -> str:
    """Encode data to base64"""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def decode_base64(data: str) -> str:
    """Decode base64 to string"""
    return base64.b64decode(data, validate=True).decode("utf-8")


def canonical_json(data: Any) -> str:
    """Serialize to JSON with sorted keys and no whitespace"""
    if hasattr(data, "model_dump"):
        data = data.model_dump(by_alias=True, exclude_none=True, mode="json")
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def encode_payment_payload(payload: Any) -> str:
    """Encode payment payload to base64 for HTTP header"""
    return encode_base64(canonical_json(payload))


def decode_payment_payload(encoded: str, model_class: type[T] | None = None) -> T | dict[str, Any]:
    """Decode payment payload from base64 HTTP header

    Raises:
        PayloadDecodeError: If the header is not base64, not JSON, or does not
            match ``model_class``
    """
    try:
        data = json.loads(decode_base64(encoded))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise PayloadDecodeError(f"Malformed payment header: {e}") from e

    if model_class is None:
        return data
    if not isinstance(data, dict):
        raise PayloadDecodeError("Malformed payment header: expected a JSON object")
    try:
        return model_class(**data)
    except (PydanticValidationError, TypeError) as e:
        raise PayloadDecodeError(f"Malformed payment payload: {e}") from e


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string to bytes"""
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)
