"""
Shared fixtures: an in-memory EVM chain and EIP-712 signing helpers
"""

import time
from typing import Any

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address

from x402_evm.abi import PERMIT_SELECTOR, eip712_domain_type
from x402_evm.config import NetworkConfig
from x402_evm.exceptions import (
    ChainReadError,
    ContractCallReverted,
)
from x402_evm.signers.facilitator.base import FacilitatorSigner
from x402_evm.types import PaymentPayload, PaymentRequirements
from x402_evm.utils import normalize_address

NETWORK = "eip155:84532"
CHAIN_ID = 84532

PAYER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "33" * 32
FACILITATOR_KEY = "0x" + "22" * 32

PAYER = Account.from_key(PAYER_KEY).address
OTHER = Account.from_key(OTHER_KEY).address
FACILITATOR = Account.from_key(FACILITATOR_KEY).address

TOKEN = "0x" + "a1" * 20
PAY_TO = "0x" + "b2" * 20
PERMIT2 = NetworkConfig.PERMIT2_ADDRESS

TOKEN_NAME = "Test Token"
TOKEN_VERSION = "1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


def bytecode(*selectors: str) -> bytes:
    """Fake runtime bytecode containing PUSH4 <selector> for each selector"""
    body = "".join(f"63{s}" for s in selectors)
    return bytes.fromhex("6080604052" + body + "00")


class FakeChain(FacilitatorSigner):
    """In-memory chain implementing the reader and signer interfaces"""

    def __init__(self, address: str = FACILITATOR) -> None:
        self.address = address
        self.codes: dict[str, bytes] = {}
        self.storage: dict[tuple[str, int], bytes] = {}
        self.views: dict[str, dict[str, Any]] = {}
        self.balances: dict[tuple[str, str], int] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.reads: list[tuple[str, str]] = []
        self.writes: list[dict[str, Any]] = []
        self.failing: set[str] = set()
        self.write_error: Exception | None = None
        self.receipt_error: Exception | None = None
        self._statuses: dict[str, str] = {}
        self._consumed: set[str] = set()

    # -- setup helpers -----------------------------------------------------

    def deploy(self, address: str, code: bytes, **views: Any) -> None:
        self.codes[normalize_address(address)] = code
        if views:
            self.views.setdefault(normalize_address(address), {}).update(views)

    def set_balance(self, token: str, owner: str, amount: int) -> None:
        self.balances[(normalize_address(token), normalize_address(owner))] = amount

    def set_allowance(self, token: str, owner: str, spender: str, amount: int) -> None:
        key = (normalize_address(token), normalize_address(owner), normalize_address(spender))
        self.allowances[key] = amount

    def read_count(self, kind: str | None = None) -> int:
        return len([r for r in self.reads if kind is None or r[0] == kind])

    # -- ChainReader -------------------------------------------------------

    def _check(self, kind: str, address: str) -> str:
        key = normalize_address(address)
        self.reads.append((kind, key))
        if key in self.failing:
            raise ChainReadError(f"RPC unreachable for {address}")
        return key

    async def get_code(self, address: str, network: str) -> bytes:
        key = self._check("get_code", address)
        return self.codes.get(key, b"")

    async def get_storage_at(self, address: str, slot: int, network: str) -> bytes:
        key = self._check("get_storage_at", address)
        return self.storage.get((key, slot), b"\x00" * 32)

    async def read_contract(self, contract_address, abi, method, args, network):
        key = self._check(method, contract_address)
        if method == "balanceOf":
            return self.balances.get((key, normalize_address(args[0])), 0)
        if method == "allowance":
            owner, spender = (normalize_address(a) for a in args)
            return self.allowances.get((key, owner, spender), 0)
        value = self.views.get(key, {}).get(method)
        if value is None:
            raise ContractCallReverted(f"{method}() reverted")
        if isinstance(value, Exception):
            raise value
        return value

    # -- FacilitatorSigner -------------------------------------------------

    def get_address(self) -> str:
        return self.address

    async def write_contract(self, contract_address, abi, method, args, network) -> str:
        if self.write_error is not None:
            raise self.write_error
        tx_hash = "0x" + f"{len(self.writes) + 1:064x}"
        self.writes.append(
            {"contract": contract_address, "method": method, "args": args, "abi": abi}
        )

        # A signature can be consumed once; a replay lands but reverts
        replay_key = repr((normalize_address(contract_address), method, args))
        if replay_key in self._consumed:
            self._statuses[tx_hash] = "failed"
            return tx_hash
        self._consumed.add(replay_key)
        self._statuses[tx_hash] = "confirmed"

        if method == "settleWithPermit":
            token, payer, amount = args[0], args[1], args[2]
            balance_key = (normalize_address(token), normalize_address(payer))
            self.balances[balance_key] = self.balances.get(balance_key, 0) - amount
        return tx_hash

    async def wait_for_transaction_receipt(self, tx_hash, timeout=120, network=""):
        if self.receipt_error is not None:
            raise self.receipt_error
        return {"hash": tx_hash, "blockNumber": "1", "status": self._statuses[tx_hash]}


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def token_chain(chain):
    """Chain with a permit token, Permit2 deployed, and a funded payer"""
    chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR), name=TOKEN_NAME, version=TOKEN_VERSION)
    chain.deploy(PERMIT2, bytecode("30f28b7a"))
    chain.set_balance(TOKEN, PAYER, 10_000)
    chain.set_allowance(TOKEN, PAYER, PERMIT2, 2**256 - 1)
    return chain


def make_requirements(
    payment_type: str | None = None,
    amount: str = "1000",
    pay_to: str = PAY_TO,
    asset: str = TOKEN,
    network: str = NETWORK,
    **extra: Any,
) -> PaymentRequirements:
    return PaymentRequirements(
        scheme="exact",
        network=network,
        maxAmountRequired=amount,
        resource="https://example.com/resource",
        payTo=pay_to,
        asset=asset,
        paymentType=payment_type,
        extra=extra or None,
    )


def sign_typed_data(
    private_key: str,
    domain: dict[str, Any],
    types: dict[str, Any],
    primary_type: str,
    message: dict[str, Any],
) -> str:
    typed_data = {
        "types": {"EIP712Domain": eip712_domain_type(domain), **types},
        "primaryType": primary_type,
        "domain": domain,
        "message": message,
    }
    signed = Account.sign_message(encode_typed_data(full_message=typed_data), private_key)
    return "0x" + bytes(signed.signature).hex()


def in_one_hour() -> int:
    return int(time.time()) + 3600



# ---------------------------------------------------------------------------
# Signed payload builders
# ---------------------------------------------------------------------------

PERMIT_TYPES = {
    "Permit": [
        {"name": "owner", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

TRANSFER_WITH_AUTHORIZATION_TYPES = {
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}

TOKEN_PERMISSIONS = [
    {"name": "token", "type": "address"},
    {"name": "amount", "type": "uint256"},
]

PERMIT_TRANSFER_FROM_TYPES = {
    "PermitTransferFrom": [
        {"name": "permitted", "type": "TokenPermissions"},
        {"name": "spender", "type": "address"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
    "TokenPermissions": TOKEN_PERMISSIONS,
}

PERMIT_WITNESS_TRANSFER_FROM_TYPES = {
    "PermitWitnessTransferFrom": [
        {"name": "permitted", "type": "TokenPermissions"},
        {"name": "spender", "type": "address"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
        {"name": "witness", "type": "Witness"},
    ],
    "TokenPermissions": TOKEN_PERMISSIONS,
    "Witness": [{"name": "to", "type": "address"}],
}

EIP3009_NONCE = "0x" + "cd" * 32


def token_domain(name: str = TOKEN_NAME, version: str = TOKEN_VERSION, asset: str = TOKEN):
    return {
        "name": name,
        "version": version,
        "chainId": CHAIN_ID,
        "verifyingContract": to_checksum_address(asset),
    }


def permit2_domain():
    return {"name": "Permit2", "chainId": CHAIN_ID, "verifyingContract": PERMIT2}


def _envelope(authorization_type: str, signature: str, authorization: dict, network: str):
    return {
        "x402Version": 1,
        "scheme": "exact",
        "network": network,
        "payload": {
            "authorizationType": authorization_type,
            "signature": signature,
            "authorization": authorization,
        },
    }


def permit_payload(
    key: str = PAYER_KEY,
    spender: str = PAY_TO,
    value: int = 1000,
    nonce: int = 0,
    deadline: int | None = None,
    domain: dict | None = None,
    network: str = NETWORK,
    signing_key: str | None = None,
) -> PaymentPayload:
    owner = Account.from_key(key).address
    deadline = in_one_hour() if deadline is None else deadline
    message = {
        "owner": owner,
        "spender": to_checksum_address(spender),
        "value": value,
        "nonce": nonce,
        "deadline": deadline,
    }
    signature = sign_typed_data(
        signing_key or key, domain or token_domain(), PERMIT_TYPES, "Permit", message
    )
    authorization = {
        "owner": owner,
        "spender": spender,
        "value": str(value),
        "nonce": str(nonce),
        "deadline": str(deadline),
    }
    return PaymentPayload(**_envelope("permit", signature, authorization, network))


def eip3009_payload(
    key: str = PAYER_KEY,
    to: str = PAY_TO,
    value: int = 1000,
    valid_after: int = 0,
    valid_before: int | None = None,
    nonce: str = EIP3009_NONCE,
    domain: dict | None = None,
    network: str = NETWORK,
    signing_key: str | None = None,
) -> PaymentPayload:
    payer = Account.from_key(key).address
    valid_before = in_one_hour() if valid_before is None else valid_before
    message = {
        "from": payer,
        "to": to_checksum_address(to),
        "value": value,
        "validAfter": valid_after,
        "validBefore": valid_before,
        "nonce": bytes.fromhex(nonce[2:]),
    }
    signature = sign_typed_data(
        signing_key or key,
        domain or token_domain(),
        TRANSFER_WITH_AUTHORIZATION_TYPES,
        "TransferWithAuthorization",
        message,
    )
    authorization = {
        "from": payer,
        "to": to,
        "value": str(value),
        "validAfter": str(valid_after),
        "validBefore": str(valid_before),
        "nonce": nonce,
    }
    return PaymentPayload(**_envelope("eip3009", signature, authorization, network))


def permit2_payload(
    key: str = PAYER_KEY,
    spender: str = PAY_TO,
    token: str = TOKEN,
    amount: int = 1000,
    nonce: int = 7,
    deadline: int | None = None,
    witness_to: str | None = None,
    network: str = NETWORK,
    signing_key: str | None = None,
) -> PaymentPayload:
    """Permit2 payload; passing *witness_to* signs and sends the witness variant"""
    owner = Account.from_key(key).address
    deadline = in_one_hour() if deadline is None else deadline
    message: dict[str, Any] = {
        "permitted": {"token": to_checksum_address(token), "amount": amount},
        "spender": to_checksum_address(spender),
        "nonce": nonce,
        "deadline": deadline,
    }
    authorization: dict[str, Any] = {
        "owner": owner,
        "spender": spender,
        "token": token,
        "amount": str(amount),
        "nonce": str(nonce),
        "deadline": str(deadline),
    }
    if witness_to is None:
        types, primary_type = PERMIT_TRANSFER_FROM_TYPES, "PermitTransferFrom"
    else:
        types, primary_type = PERMIT_WITNESS_TRANSFER_FROM_TYPES, "PermitWitnessTransferFrom"
        message["witness"] = {"to": to_checksum_address(witness_to)}
        authorization["witness"] = {"to": witness_to}
    signature = sign_typed_data(signing_key or key, permit2_domain(), types, primary_type, message)
    return PaymentPayload(**_envelope("permit2", signature, authorization, network))
