"""
X402 Utility Functions
"""

from x402_evm.utils.address import (
    EVM_ZERO_ADDRESS,
    address_from_word,
    checksum,
    is_zero_address,
    normalize_address,
    same_address,
)
from x402_evm.utils.signature import (
    SplitSignature,
    hex_to_bytes,
    signature_to_bytes,
    split_signature,
)

__all__ = [
    "EVM_ZERO_ADDRESS",
    "address_from_word",
    "checksum",
    "is_zero_address",
    "normalize_address",
    "same_address",
    "SplitSignature",
    "hex_to_bytes",
    "signature_to_bytes",
    "split_signature",
]
