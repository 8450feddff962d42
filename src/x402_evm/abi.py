"""
Shared ABI definitions and bytecode constants for smart contracts
"""

from typing import Any, List

# Function selectors searched for in deployed bytecode (without 0x)
# permit(address,address,uint256,uint256,uint8,bytes32,bytes32)
PERMIT_SELECTOR = "d505accf"
# transferWithAuthorization(address,address,uint256,uint256,uint256,bytes32,uint8,bytes32,bytes32)
EIP3009_VRS_SELECTOR = "e3ee160e"
# transferWithAuthorization(address,address,uint256,uint256,uint256,bytes32,bytes)
EIP3009_BYTES_SELECTOR = "cf092995"
EIP3009_SELECTORS = (EIP3009_VRS_SELECTOR, EIP3009_BYTES_SELECTOR)

# bytes32(uint256(keccak256("eip1967.proxy.implementation")) - 1)
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC
# keccak256("PROXIABLE")
EIP1822_PROXIABLE_SLOT = 0xC5F16F0FCC639FA48A6947836D9850F504798523BF8C9A3A87D5876CF622BCF7

# Canonical EIP-712 domain field order and types
EIP712_DOMAIN_FIELDS: list[tuple[str, str]] = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
]


def eip712_domain_type(domain: dict[str, Any]) -> list[dict[str, str]]:
    """Build an EIP712Domain type array from the keys present in *domain*.

    Preserves the canonical field order defined in EIP-712.
    """
    return [{"name": name, "type": typ} for name, typ in EIP712_DOMAIN_FIELDS if name in domain]


def _view(name: str, inputs: list[dict[str, Any]], outputs: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


# ERC20 token reads, including EIP-2612 / EIP-5267 metadata
ERC20_ABI: List[dict[str, Any]] = [
    _view("name", [], [{"name": "", "type": "string"}]),
    _view("version", [], [{"name": "", "type": "string"}]),
    _view(
        "eip712Domain",
        [],
        [
            {"name": "fields", "type": "bytes1"},
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
            {"name": "verifyingContract", "type": "address"},
            {"name": "salt", "type": "bytes32"},
            {"name": "extensions", "type": "uint256[]"},
        ],
    ),
    _view("balanceOf", [{"name": "account", "type": "address"}], [{"name": "", "type": "uint256"}]),
    _view(
        "allowance",
        [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        [{"name": "", "type": "uint256"}],
    ),
]

# Proxy accessor used as the last proxy-resolution strategy
IMPLEMENTATION_ABI: List[dict[str, Any]] = [
    _view("implementation", [], [{"name": "", "type": "address"}]),
]

# Seller-side settlement contract that calls permit() then moves funds
SETTLE_WITH_PERMIT_ABI: List[dict[str, Any]] = [
    {
        "name": "settleWithPermit",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "token", "type": "address"},
            {"name": "payer", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "deadline", "type": "uint256"},
            {"name": "v", "type": "uint8"},
            {"name": "r", "type": "bytes32"},
            {"name": "s", "type": "bytes32"},
        ],
        "outputs": [],
    },
]

_TRANSFER_AUTH_INPUTS: list[dict[str, Any]] = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "validAfter", "type": "uint256"},
    {"name": "validBefore", "type": "uint256"},
    {"name": "nonce", "type": "bytes32"},
]

# One overload per ABI
TRANSFER_WITH_AUTHORIZATION_ABI: List[dict[str, Any]] = [
    {
        "name": "transferWithAuthorization",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": _TRANSFER_AUTH_INPUTS
        + [
            {"name": "v", "type": "uint8"},
            {"name": "r", "type": "bytes32"},
            {"name": "s", "type": "bytes32"},
        ],
        "outputs": [],
    },
]

TRANSFER_WITH_AUTHORIZATION_BYTES_ABI: List[dict[str, Any]] = [
    {
        "name": "transferWithAuthorization",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": _TRANSFER_AUTH_INPUTS + [{"name": "signature", "type": "bytes"}],
        "outputs": [],
    },
]

_PERMIT_TRANSFER_FROM_TUPLE: dict[str, Any] = {
    "name": "permit",
    "type": "tuple",
    "components": [
        {
            "name": "permitted",
            "type": "tuple",
            "components": [
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
        },
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

_TRANSFER_DETAILS_TUPLE: dict[str, Any] = {
    "name": "transferDetails",
    "type": "tuple",
    "components": [
        {"name": "to", "type": "address"},
        {"name": "requestedAmount", "type": "uint256"},
    ],
}

PERMIT2_PERMIT_TRANSFER_FROM_ABI: List[dict[str, Any]] = [
    {
        "name": "permitTransferFrom",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            _PERMIT_TRANSFER_FROM_TUPLE,
            _TRANSFER_DETAILS_TUPLE,
            {"name": "owner", "type": "address"},
            {"name": "signature", "type": "bytes"},
        ],
        "outputs": [],
    },
]

PERMIT2_PERMIT_WITNESS_TRANSFER_FROM_ABI: List[dict[str, Any]] = [
    {
        "name": "permitWitnessTransferFrom",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            _PERMIT_TRANSFER_FROM_TUPLE,
            _TRANSFER_DETAILS_TUPLE,
            {"name": "owner", "type": "address"},
            {"name": "witness", "type": "bytes32"},
            {"name": "witnessTypeString", "type": "string"},
            {"name": "signature", "type": "bytes"},
        ],
        "outputs": [],
    },
]
