"""
Signature helpers shared by the settlement paths
"""

from typing import NamedTuple

from x402_evm.exceptions import SignatureVerificationError


class SplitSignature(NamedTuple):
    v: int
    r: bytes
    s: bytes


def signature_to_bytes(signature: str) -> bytes:
    """Decode a 0x-prefixed (or bare) hex signature.

    Raises:
        SignatureVerificationError: If the string is not valid hex
    """
    try:
        return bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)
    except ValueError as e:
        raise SignatureVerificationError(f"Signature is not valid hex: {e}") from e


def split_signature(signature: str) -> SplitSignature:
    """Split a 65-byte ECDSA signature into (v, r, s).

    Raises:
        SignatureVerificationError: If the signature is not 65 bytes long
    """
    sig_bytes = signature_to_bytes(signature)
    if len(sig_bytes) != 65:
        raise SignatureVerificationError(
            f"Invalid signature length: {len(sig_bytes)} bytes, expected 65"
        )
    r = sig_bytes[:32]
    s = sig_bytes[32:64]
    v = sig_bytes[64]
    if v < 27:
        v += 27
    return SplitSignature(v=v, r=r, s=s)


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string to bytes"""
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)
