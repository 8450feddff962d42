"""
EIP-3009 transferWithAuthorization verification and settlement
"""

import logging

from x402_evm import reasons
from x402_evm.abi import (
    EIP3009_BYTES_SELECTOR,
    TRANSFER_WITH_AUTHORIZATION_ABI,
    TRANSFER_WITH_AUTHORIZATION_BYTES_ABI,
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
    TRANSFER_AUTH_EIP712_TYPES,
    TRANSFER_AUTH_PRIMARY_TYPE,
    build_eip3009_message,
    build_token_domain,
)
from x402_evm.tokens.metadata import resolve_token_domain
from x402_evm.types import (
    EIP3009,
    Eip3009Payload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)
from x402_evm.utils import checksum, hex_to_bytes, same_address, signature_to_bytes, split_signature

logger = logging.getLogger(__name__)


async def verify_eip3009(
    ctx: SchemeContext,
    payload: Eip3009Payload,
    requirements: PaymentRequirements,
) -> VerifyResponse:
    auth = payload.authorization
    payer = auth.from_address

    chain_id = NetworkConfig.get_chain_id(requirements.network)
    token_domain = await resolve_token_domain(
        ctx.signer, requirements.network, requirements.asset, requirements.extra
    )

    now = current_timestamp()
    if int(auth.valid_before) < now:
        logger.info(f"[EIP3009] validBefore {auth.valid_before} is before {now}")
        return invalid(reasons.expired(EIP3009), payer)
    if int(auth.valid_after) > now:
        logger.info(f"[EIP3009] validAfter {auth.valid_after} is after {now}")
        return invalid(reasons.not_yet_valid(EIP3009), payer)

    domain = build_token_domain(
        token_domain.name, token_domain.version, chain_id, requirements.asset
    )
    if not signed_by(
        ctx,
        payer,
        domain,
        TRANSFER_AUTH_EIP712_TYPES,
        TRANSFER_AUTH_PRIMARY_TYPE,
        build_eip3009_message(auth),
        payload.signature,
    ):
        return invalid(reasons.invalid_signature(EIP3009), payer)

    if not same_address(auth.to, requirements.pay_to):
        return invalid(reasons.INVALID_RECIPIENT_ADDRESS, payer)

    required = int(requirements.max_amount_required)
    if int(auth.value) < required:
        return invalid(reasons.INVALID_EXACT_PAYLOAD_VALUE, payer)

    reason = await check_balance(ctx, requirements.network, requirements.asset, payer, required)
    if reason:
        return invalid(reason, payer)

    return valid(payer)


async def _uses_bytes_signature(ctx: SchemeContext, token: str) -> bool:
    """True if the token only exposes the bytes-signature overload"""
    if ctx.detector is None:
        return False
    capabilities = await ctx.detector.detect(token)
    return capabilities.details.eip3009_selector == EIP3009_BYTES_SELECTOR


async def settle_eip3009(
    ctx: SchemeContext,
    payload: Eip3009Payload,
    requirements: PaymentRequirements,
) -> SettleResponse:
    auth = payload.authorization
    args = [
        checksum(auth.from_address),
        checksum(auth.to),
        int(auth.value),
        int(auth.valid_after),
        int(auth.valid_before),
        hex_to_bytes(auth.nonce),
    ]

    if await _uses_bytes_signature(ctx, requirements.asset):
        abi = TRANSFER_WITH_AUTHORIZATION_BYTES_ABI
        args.append(signature_to_bytes(payload.signature))
    else:
        abi = TRANSFER_WITH_AUTHORIZATION_ABI
        args.extend(split_signature(payload.signature))

    return await submit_and_confirm(
        ctx,
        requirements,
        auth.from_address,
        requirements.asset,
        abi,
        "transferWithAuthorization",
        args,
    )
