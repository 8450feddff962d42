"""
Shared verification and settlement steps for the exact EVM schemes.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from x402_evm.abi import ERC20_ABI
from x402_evm.config import NetworkConfig
from x402_evm.exceptions import (
    BroadcastError,
    SignatureVerificationError,
    TransactionError,
    TransactionFailedError,
    TransactionTimeoutError,
)
from x402_evm.reasons import BROADCAST_FAILED, INSUFFICIENT_FUNDS, TRANSACTION_FAILED
from x402_evm.signers.facilitator.base import FacilitatorSigner
from x402_evm.tokens.detector import TokenDetector
from x402_evm.types import PaymentRequirements, SettleResponse, VerifyResponse
from x402_evm.utils import checksum, same_address

logger = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT = 120


@dataclass
class SchemeContext:
    """Collaborators every scheme verifier and settlement path needs"""

    signer: FacilitatorSigner
    permit2_address: str = NetworkConfig.PERMIT2_ADDRESS
    detector: TokenDetector | None = None
    receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT


def current_timestamp() -> int:
    return int(time.time())


def invalid(reason: str, payer: str | None = None) -> VerifyResponse:
    return VerifyResponse(isValid=False, invalidReason=reason, payer=payer)


def valid(payer: str) -> VerifyResponse:
    return VerifyResponse(isValid=True, payer=payer)


def signed_by(
    ctx: SchemeContext,
    expected: str,
    domain: dict[str, Any],
    types: dict[str, Any],
    primary_type: str,
    message: dict[str, Any],
    signature: str,
) -> bool:
    """True if *signature* over the typed data recovers to *expected*"""
    try:
        recovered = ctx.signer.recover_typed_data(domain, types, primary_type, message, signature)
    except SignatureVerificationError as e:
        logger.info(f"Signature recovery failed: {e}")
        return False
    if not same_address(recovered, expected):
        logger.info(f"Recovered signer {recovered} does not match {expected}")
        return False
    return True


async def check_balance(
    ctx: SchemeContext,
    network: str,
    token: str,
    owner: str,
    required: int,
) -> str | None:
    """Return INSUFFICIENT_FUNDS if *owner* holds less than *required*.

    Raises:
        ChainReadError: If the balance cannot be read
    """
    balance = await ctx.signer.read_contract(
        token, ERC20_ABI, "balanceOf", [checksum(owner)], network
    )
    if int(balance) < required:
        logger.info(f"Balance of {owner} is {balance}, {required} required")
        return INSUFFICIENT_FUNDS
    return None


async def submit_and_confirm(
    ctx: SchemeContext,
    requirements: PaymentRequirements,
    payer: str,
    contract_address: str,
    abi: list[dict[str, Any]],
    method: str,
    args: list[Any],
) -> SettleResponse:
    """Submit the single settlement transaction and wait for its receipt"""
    network = requirements.network

    def failure(reason: str, tx_hash: str | None = None) -> SettleResponse:
        return SettleResponse(
            success=False,
            errorReason=reason,
            transaction=tx_hash,
            network=network,
            payer=payer,
        )

    logger.info(f"[SETTLE] Calling {method} on {contract_address} ({network})")
    try:
        tx_hash = await ctx.signer.write_contract(
            contract_address=contract_address,
            abi=abi,
            method=method,
            args=args,
            network=network,
        )
    except TransactionFailedError as e:
        logger.warning(f"[SETTLE] {method} reverted before inclusion: {e}")
        return failure(TRANSACTION_FAILED)
    except BroadcastError as e:
        logger.error(f"[SETTLE] {method} could not be broadcast: {e}")
        return failure(BROADCAST_FAILED)

    logger.info(f"[SETTLE] Transaction broadcast: {tx_hash}")
    try:
        receipt = await ctx.signer.wait_for_transaction_receipt(
            tx_hash, timeout=ctx.receipt_timeout, network=network
        )
    except TransactionTimeoutError as e:
        logger.error(f"[SETTLE] No receipt for {tx_hash}: {e}")
        return failure(BROADCAST_FAILED, tx_hash)
    except TransactionError as e:
        logger.error(f"[SETTLE] Receipt for {tx_hash} unavailable: {e}")
        return failure(BROADCAST_FAILED, tx_hash)

    raw_status = receipt.get("status")
    tx_status = raw_status.lower() if isinstance(raw_status, str) else raw_status
    if tx_status == "failed" or tx_status == "0" or tx_status == 0:
        logger.warning(f"[SETTLE] Transaction {tx_hash} failed on chain")
        return failure(TRANSACTION_FAILED, tx_hash)

    logger.info(f"[SETTLE] Transaction {tx_hash} confirmed in block {receipt.get('blockNumber')}")
    return SettleResponse(success=True, transaction=tx_hash, network=network, payer=payer)
