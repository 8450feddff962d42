"""
EIP-2612 permit verification and settleWithPermit settlement
"""

import logging

from x402_evm import reasons
from x402_evm.abi import SETTLE_WITH_PERMIT_ABI
from x402_evm.config import NetworkConfig
from x402_evm.mechanisms.evm.exact.common import (
    SchemeContext,
    check_balance,
    current_timestamp,
    invalid,
    signed_by,
    submit_and_confirm,
    valid,
)
from x402_evm.mechanisms.evm.exact.types import (
    PERMIT_EIP712_TYPES,
    PERMIT_PRIMARY_TYPE,
    build_permit_message,
    build_token_domain,
)
from x402_evm.tokens.metadata import resolve_token_domain
from x402_evm.types import PERMIT, PaymentRequirements, PermitPayload, SettleResponse, VerifyResponse
from x402_evm.utils import checksum, same_address, split_signature

logger = logging.getLogger(__name__)


async def verify_permit(
    ctx: SchemeContext,
    payload: PermitPayload,
    requirements: PaymentRequirements,
) -> VerifyResponse:
    auth = payload.authorization
    owner = auth.owner

    chain_id = NetworkConfig.get_chain_id(requirements.network)
    token_domain = await resolve_token_domain(
        ctx.signer, requirements.network, requirements.asset, requirements.extra
    )

    now = current_timestamp()
    if int(auth.deadline) < now:
        logger.info(f"[PERMIT] Deadline {auth.deadline} is before {now}")
        return invalid(reasons.expired(PERMIT), owner)

    domain = build_token_domain(
        token_domain.name, token_domain.version, chain_id, requirements.asset
    )
    if not signed_by(
        ctx,
        owner,
        domain,
        PERMIT_EIP712_TYPES,
        PERMIT_PRIMARY_TYPE,
        build_permit_message(auth),
        payload.signature,
    ):
        return invalid(reasons.invalid_signature(PERMIT), owner)

    if not same_address(auth.spender, requirements.pay_to):
        return invalid(reasons.INVALID_SPENDER_ADDRESS, owner)

    required = int(requirements.max_amount_required)
    if int(auth.value) < required:
        return invalid(reasons.INVALID_EXACT_PAYLOAD_VALUE, owner)

    reason = await check_balance(ctx, requirements.network, requirements.asset, owner, required)
    if reason:
        return invalid(reason, owner)

    return valid(owner)


async def settle_permit(
    ctx: SchemeContext,
    payload: PermitPayload,
    requirements: PaymentRequirements,
) -> SettleResponse:
    auth = payload.authorization
    v, r, s = split_signature(payload.signature)
    args = [
        checksum(requirements.asset),
        checksum(auth.owner),
        int(auth.value),
        int(auth.deadline),
        v,
        r,
        s,
    ]
    # payTo is the settlement contract that consumes the permit
    return await submit_and_confirm(
        ctx,
        requirements,
        auth.owner,
        requirements.pay_to,
        SETTLE_WITH_PERMIT_ABI,
        "settleWithPermit",
        args,
    )
