"""
ExactEvmFacilitatorMechanism - exact scheme on EVM, dispatching on authorizationType
"""

import logging
from typing import Any, Awaitable, Callable, NamedTuple

from x402_evm import reasons
from x402_evm.config import NetworkConfig
from x402_evm.exceptions import ChainReadError, UnsupportedNetworkError
from x402_evm.mechanisms._base.facilitator import FacilitatorMechanism
from x402_evm.mechanisms.evm.exact.common import DEFAULT_RECEIPT_TIMEOUT, SchemeContext, invalid
from x402_evm.mechanisms.evm.exact.eip3009 import settle_eip3009, verify_eip3009
from x402_evm.mechanisms.evm.exact.permit import settle_permit, verify_permit
from x402_evm.mechanisms.evm.exact.permit2 import (
    settle_permit2,
    settle_permit2_witness,
    verify_permit2,
    verify_permit2_witness,
)
from x402_evm.signers.facilitator.base import FacilitatorSigner
from x402_evm.tokens.detector import TokenDetector
from x402_evm.types import (
    EIP3009,
    PERMIT,
    PERMIT2,
    PERMIT2_WITNESS,
    SCHEME_EXACT,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)
from x402_evm.utils import same_address


class SchemeHandlers(NamedTuple):
    verify: Callable[[SchemeContext, Any, PaymentRequirements], Awaitable[VerifyResponse]]
    settle: Callable[[SchemeContext, Any, PaymentRequirements], Awaitable[SettleResponse]]


# One verifier / settlement pair per authorization type
SCHEME_HANDLERS: dict[str, SchemeHandlers] = {
    PERMIT: SchemeHandlers(verify_permit, settle_permit),
    EIP3009: SchemeHandlers(verify_eip3009, settle_eip3009),
    PERMIT2: SchemeHandlers(verify_permit2, settle_permit2),
    PERMIT2_WITNESS: SchemeHandlers(verify_permit2_witness, settle_permit2_witness),
}

# Payment type a requirement may pin -> authorization types that satisfy it
ACCEPTED_AUTHORIZATIONS: dict[str, frozenset[str]] = {
    PERMIT: frozenset({PERMIT}),
    EIP3009: frozenset({EIP3009}),
    PERMIT2: frozenset({PERMIT2, PERMIT2_WITNESS}),
}


class ExactEvmFacilitatorMechanism(FacilitatorMechanism):
    """
    Facilitator mechanism for the exact scheme on EVM chains.

    Supports EIP-2612 permit, EIP-3009 transferWithAuthorization and Permit2
    (plain and witness) authorizations. Verification only reads chain state;
    settlement re-verifies and then submits exactly one transaction.
    """

    def __init__(
        self,
        signer: FacilitatorSigner,
        detectors: dict[str, TokenDetector] | None = None,
        permit2_address: str = NetworkConfig.PERMIT2_ADDRESS,
        receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT,
    ) -> None:
        self._signer = signer
        self._detectors = dict(detectors or {})
        self._permit2_address = permit2_address
        self._receipt_timeout = receipt_timeout
        self._logger = logging.getLogger(self.__class__.__name__)

    def scheme(self) -> str:
        return SCHEME_EXACT

    def add_detector(self, detector: TokenDetector) -> None:
        self._detectors[detector.network] = detector

    def validate_requirements(self, requirements: PaymentRequirements) -> list[str]:
        problems = []
        try:
            NetworkConfig.get_chain_id(requirements.network)
        except UnsupportedNetworkError as e:
            problems.append(str(e))

        # permitTransferFrom authenticates the spender against msg.sender
        facilitator_address = self._signer.get_address()
        if requirements.payment_type == PERMIT2 and not same_address(
            requirements.pay_to, facilitator_address
        ):
            problems.append(
                f"payTo {requirements.pay_to} must be the facilitator address "
                f"{facilitator_address} for permit2 payments"
            )
        return problems

    def _context(self, network: str) -> SchemeContext:
        return SchemeContext(
            signer=self._signer,
            permit2_address=self._permit2_address,
            detector=self._detectors.get(network),
            receipt_timeout=self._receipt_timeout,
        )

    def _check_discriminator(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> str | None:
        authorization_type = payload.payload.authorization_type
        if payload.scheme != SCHEME_EXACT or requirements.scheme != SCHEME_EXACT:
            return reasons.UNSUPPORTED_SCHEME
        if authorization_type not in SCHEME_HANDLERS:
            return reasons.UNSUPPORTED_SCHEME
        if requirements.payment_type is not None and authorization_type not in (
            ACCEPTED_AUTHORIZATIONS[requirements.payment_type]
        ):
            return reasons.UNSUPPORTED_SCHEME
        if payload.network != requirements.network:
            return reasons.SCHEME_NETWORK_MISMATCH
        return None

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        authorization_type = payload.payload.authorization_type
        self._logger.info(
            f"[VERIFY] {authorization_type} payment from {payload.payer} "
            f"on {requirements.network}, asset={requirements.asset}"
        )

        error = self._check_discriminator(payload, requirements)
        if error:
            self._logger.info(f"[VERIFY] Rejected: {error}")
            return invalid(error, payload.payer)

        handlers = SCHEME_HANDLERS[authorization_type]
        try:
            result = await handlers.verify(
                self._context(requirements.network), payload.payload, requirements
            )
        except (UnsupportedNetworkError, ChainReadError) as e:
            self._logger.warning(f"[VERIFY] Chain unavailable for {requirements.network}: {e}")
            return invalid(reasons.INVALID_NETWORK, payload.payer)

        if result.is_valid:
            self._logger.info(f"[VERIFY] Valid {authorization_type} payment from {result.payer}")
        else:
            self._logger.info(f"[VERIFY] Rejected: {result.invalid_reason}")
        return result

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleResponse:
        # Chain state may have changed since the caller's verify
        verify_result = await self.verify(payload, requirements)
        if not verify_result.is_valid:
            return SettleResponse(
                success=False,
                errorReason=verify_result.invalid_reason,
                network=requirements.network,
                payer=verify_result.payer,
            )

        handlers = SCHEME_HANDLERS[payload.payload.authorization_type]
        return await handlers.settle(
            self._context(requirements.network), payload.payload, requirements
        )
