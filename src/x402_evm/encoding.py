"""
Encoding utilities for x402 protocol
"""

import base64
import binascii
import json
from typing import Any, Mapping, TypeVar

from x402_evm.exceptions import PaymentHeaderError

T = TypeVar("T")

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_HEADER_ALT = "X-402-Payment"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"


def encode_base64(data: str | bytes) -> str:
    """Encode data to base64"""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def decode_base64(data: str) -> str:
    """Decode base64 to string"""
    return base64.b64decode(data, validate=True).decode("utf-8")


def encode_payment_payload(payload: Any) -> str:
    """Encode payment payload (or any JSON-able model) to base64 for an HTTP header"""
    if hasattr(payload, "model_dump"):
        json_str = json.dumps(payload.model_dump(by_alias=True, exclude_none=True))
    else:
        json_str = json.dumps(payload)
    return encode_base64(json_str)


def decode_payment_payload(encoded: str, model_class: type[T] | None = None) -> T | dict[str, Any]:
    """Decode payment payload from base64 HTTP header

    Raises:
        PaymentHeaderError: If the header is not base64-encoded UTF-8 JSON
    """
    try:
        json_str = decode_base64(encoded.strip())
        data = json.loads(json_str)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise PaymentHeaderError(f"Malformed payment header: {e}") from e
    if not isinstance(data, dict):
        raise PaymentHeaderError("Payment header must encode a JSON object")
    if model_class is not None:
        return model_class(**data)
    return data


def get_payment_header(headers: Mapping[str, str]) -> str | None:
    """Read the payment header (either name, case-insensitive) from request headers"""
    for name in (PAYMENT_HEADER, PAYMENT_HEADER_ALT):
        value = headers.get(name)
        if value is None:
            value = headers.get(name.lower())
        if value:
            return value
    return None
