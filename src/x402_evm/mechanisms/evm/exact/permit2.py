"""
Permit2 SignatureTransfer verification and settlement, with and without witness
"""

import logging

from x402_evm import reasons
from x402_evm.abi import (
    ERC20_ABI,
    PERMIT2_PERMIT_TRANSFER_FROM_ABI,
    PERMIT2_PERMIT_WITNESS_TRANSFER_FROM_ABI,
)
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
    PERMIT2_EIP712_TYPES,
    PERMIT2_PRIMARY_TYPE,
    PERMIT2_WITNESS_EIP712_TYPES,
    PERMIT2_WITNESS_PRIMARY_TYPE,
    WITNESS_TYPE_STRING,
    build_permit2_domain,
    build_permit2_message,
    witness_hash,
)
from x402_evm.types import (
    PaymentRequirements,
    Permit2Authorization,
    Permit2Payload,
    Permit2WitnessAuthorization,
    Permit2WitnessPayload,
    SettleResponse,
    VerifyResponse,
)
from x402_evm.utils import checksum, same_address, signature_to_bytes

logger = logging.getLogger(__name__)


async def _verify(
    ctx: SchemeContext,
    payload: Permit2Payload | Permit2WitnessPayload,
    requirements: PaymentRequirements,
) -> VerifyResponse:
    auth = payload.authorization
    owner = auth.owner
    authorization_type = payload.authorization_type
    is_witness = isinstance(auth, Permit2WitnessAuthorization)

    chain_id = NetworkConfig.get_chain_id(requirements.network)

    now = current_timestamp()
    if int(auth.deadline) < now:
        logger.info(f"[PERMIT2] Deadline {auth.deadline} is before {now}")
        return invalid(reasons.expired(authorization_type), owner)

    domain = build_permit2_domain(chain_id, ctx.permit2_address)
    if is_witness:
        types, primary_type = PERMIT2_WITNESS_EIP712_TYPES, PERMIT2_WITNESS_PRIMARY_TYPE
    else:
        types, primary_type = PERMIT2_EIP712_TYPES, PERMIT2_PRIMARY_TYPE
    if not signed_by(
        ctx,
        owner,
        domain,
        types,
        primary_type,
        build_permit2_message(auth),
        payload.signature,
    ):
        return invalid(reasons.invalid_signature(authorization_type), owner)

    if not same_address(auth.spender, requirements.pay_to):
        return invalid(reasons.INVALID_SPENDER_ADDRESS, owner)

    # Signature is valid here, so a differing recipient was signed deliberately
    if is_witness and not same_address(auth.to, requirements.pay_to):
        logger.warning(
            f"[PERMIT2] Witness recipient {auth.to} does not match payTo {requirements.pay_to}"
        )
        return invalid(reasons.WITNESS_RECIPIENT_MISMATCH, owner)

    if not same_address(auth.token, requirements.asset):
        return invalid(reasons.TOKEN_MISMATCH, owner)

    required = int(requirements.max_amount_required)
    if int(auth.amount) < required:
        return invalid(reasons.INVALID_EXACT_PAYLOAD_VALUE, owner)

    reason = await check_balance(ctx, requirements.network, requirements.asset, owner, required)
    if reason:
        return invalid(reason, owner)

    allowance = await ctx.signer.read_contract(
        requirements.asset,
        ERC20_ABI,
        "allowance",
        [checksum(owner), checksum(ctx.permit2_address)],
        requirements.network,
    )
    if int(allowance) < required:
        logger.info(f"[PERMIT2] Allowance of {owner} to Permit2 is {allowance}")
        return invalid(reasons.PERMIT2_NOT_APPROVED, owner)

    return valid(owner)


async def verify_permit2(
    ctx: SchemeContext,
    payload: Permit2Payload,
    requirements: PaymentRequirements,
) -> VerifyResponse:
    return await _verify(ctx, payload, requirements)


async def verify_permit2_witness(
    ctx: SchemeContext,
    payload: Permit2WitnessPayload,
    requirements: PaymentRequirements,
) -> VerifyResponse:
    return await _verify(ctx, payload, requirements)


def _permit_struct(auth: Permit2Authorization) -> tuple:
    return (
        (checksum(auth.token), int(auth.amount)),
        int(auth.nonce),
        int(auth.deadline),
    )


async def settle_permit2(
    ctx: SchemeContext,
    payload: Permit2Payload,
    requirements: PaymentRequirements,
) -> SettleResponse:
    auth = payload.authorization
    args = [
        _permit_struct(auth),
        (checksum(requirements.pay_to), int(requirements.max_amount_required)),
        checksum(auth.owner),
        signature_to_bytes(payload.signature),
    ]
    return await submit_and_confirm(
        ctx,
        requirements,
        auth.owner,
        ctx.permit2_address,
        PERMIT2_PERMIT_TRANSFER_FROM_ABI,
        "permitTransferFrom",
        args,
    )


async def settle_permit2_witness(
    ctx: SchemeContext,
    payload: Permit2WitnessPayload,
    requirements: PaymentRequirements,
) -> SettleResponse:
    auth = payload.authorization
    args = [
        _permit_struct(auth),
        (checksum(auth.to), int(requirements.max_amount_required)),
        checksum(auth.owner),
        witness_hash(auth.to),
        WITNESS_TYPE_STRING,
        signature_to_bytes(payload.signature),
    ]
    return await submit_and_confirm(
        ctx,
        requirements,
        auth.owner,
        ctx.permit2_address,
        PERMIT2_PERMIT_WITNESS_TRANSFER_FROM_ABI,
        "permitWitnessTransferFrom",
        args,
    )
