"""
Address utility functions for EVM addresses
"""

from eth_utils import is_address, to_checksum_address

EVM_ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_address(address: str) -> str:
    """Normalize an EVM address for case-insensitive comparison"""
    return address.lower()


def same_address(a: str, b: str) -> bool:
    """Compare two EVM addresses ignoring checksum casing"""
    return normalize_address(a) == normalize_address(b)


def checksum(address: str) -> str:
    """Convert an address to its EIP-55 checksum form.

    Raises:
        ValueError: If *address* is not a valid EVM address
    """
    if not is_address(address):
        raise ValueError(f"Invalid EVM address: {address}")
    return to_checksum_address(address)


def is_zero_address(address: str) -> bool:
    return normalize_address(address) == EVM_ZERO_ADDRESS


def address_from_word(word: bytes) -> str | None:
    """Extract an address from a 32-byte storage word or ABI return value.

    Returns:
        Checksummed address, or None if the word holds the zero address
    """
    if len(word) < 20:
        return None
    raw = word[-20:]
    if not any(raw):
        return None
    return to_checksum_address(raw)
