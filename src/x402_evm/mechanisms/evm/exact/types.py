"""
EIP-712 definitions for the exact scheme's EVM authorizations.
"""

from typing import Any

from eth_abi import encode
from eth_utils import keccak

from x402_evm.types import (
    Eip3009Authorization,
    PermitAuthorization,
    Permit2Authorization,
    Permit2WitnessAuthorization,
)
from x402_evm.utils import checksum, hex_to_bytes

# ---------------------------------------------------------------------------
# EIP-2612 Permit
# ---------------------------------------------------------------------------

PERMIT_PRIMARY_TYPE = "Permit"

PERMIT_EIP712_TYPES = {
    "Permit": [
        {"name": "owner", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

# ---------------------------------------------------------------------------
# EIP-3009 TransferWithAuthorization
# ---------------------------------------------------------------------------

TRANSFER_AUTH_PRIMARY_TYPE = "TransferWithAuthorization"

TRANSFER_AUTH_EIP712_TYPES = {
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}

# ---------------------------------------------------------------------------
# Permit2 SignatureTransfer
# ---------------------------------------------------------------------------

PERMIT2_DOMAIN_NAME = "Permit2"

PERMIT2_PRIMARY_TYPE = "PermitTransferFrom"
PERMIT2_WITNESS_PRIMARY_TYPE = "PermitWitnessTransferFrom"

_TOKEN_PERMISSIONS = [
    {"name": "token", "type": "address"},
    {"name": "amount", "type": "uint256"},
]

PERMIT2_EIP712_TYPES = {
    "PermitTransferFrom": [
        {"name": "permitted", "type": "TokenPermissions"},
        {"name": "spender", "type": "address"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
    "TokenPermissions": _TOKEN_PERMISSIONS,
}

PERMIT2_WITNESS_EIP712_TYPES = {
    "PermitWitnessTransferFrom": [
        {"name": "permitted", "type": "TokenPermissions"},
        {"name": "spender", "type": "address"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
        {"name": "witness", "type": "Witness"},
    ],
    "TokenPermissions": _TOKEN_PERMISSIONS,
    "Witness": [
        {"name": "to", "type": "address"},
    ],
}

# Tail of the witness type string passed to permitWitnessTransferFrom
WITNESS_TYPE_STRING = (
    "Witness witness)TokenPermissions(address token,uint256 amount)Witness(address to)"
)
WITNESS_TYPEHASH = keccak(text="Witness(address to)")


def witness_hash(to: str) -> bytes:
    """keccak256(abi.encode(WITNESS_TYPEHASH, to))"""
    return keccak(encode(["bytes32", "address"], [WITNESS_TYPEHASH, checksum(to)]))


# ---------------------------------------------------------------------------
# Domains and messages
# ---------------------------------------------------------------------------


def build_token_domain(
    token_name: str,
    token_version: str,
    chain_id: int,
    verifying_contract: str,
) -> dict[str, Any]:
    """Build EIP-712 domain dict for token-signed authorizations."""
    return {
        "name": token_name,
        "version": token_version,
        "chainId": chain_id,
        "verifyingContract": checksum(verifying_contract),
    }


def build_permit2_domain(chain_id: int, permit2_address: str) -> dict[str, Any]:
    """Permit2's domain has no version field."""
    return {
        "name": PERMIT2_DOMAIN_NAME,
        "chainId": chain_id,
        "verifyingContract": checksum(permit2_address),
    }


def build_permit_message(auth: PermitAuthorization) -> dict[str, Any]:
    return {
        "owner": checksum(auth.owner),
        "spender": checksum(auth.spender),
        "value": int(auth.value),
        "nonce": int(auth.nonce),
        "deadline": int(auth.deadline),
    }


def build_eip3009_message(auth: Eip3009Authorization) -> dict[str, Any]:
    return {
        "from": checksum(auth.from_address),
        "to": checksum(auth.to),
        "value": int(auth.value),
        "validAfter": int(auth.valid_after),
        "validBefore": int(auth.valid_before),
        "nonce": hex_to_bytes(auth.nonce),
    }


def build_permit2_message(auth: Permit2Authorization) -> dict[str, Any]:
    message: dict[str, Any] = {
        "permitted": {
            "token": checksum(auth.token),
            "amount": int(auth.amount),
        },
        "spender": checksum(auth.spender),
        "nonce": int(auth.nonce),
        "deadline": int(auth.deadline),
    }
    if isinstance(auth, Permit2WitnessAuthorization):
        message["witness"] = {"to": checksum(auth.to)}
    return message
