"""
X402Facilitator - Core payment processor for x402 protocol
"""

import logging

from x402_evm.mechanisms._base.facilitator import FacilitatorMechanism
from x402_evm.reasons import INVALID_NETWORK, UNSUPPORTED_SCHEME
from x402_evm.types import (
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)


class X402Facilitator:
    """
    Core payment processor for x402 protocol.

    Manages payment mechanisms and coordinates verification/settlement.
    """

    def __init__(self) -> None:
        self._mechanisms: dict[str, dict[str, FacilitatorMechanism]] = {}

    def register(
        self,
        networks: list[str],
        mechanism: FacilitatorMechanism,
    ) -> "X402Facilitator":
        """
        Register a payment mechanism for multiple networks.

        Args:
            networks: List of network identifiers
            mechanism: Facilitator mechanism instance

        Returns:
            self for method chaining
        """
        scheme = mechanism.scheme()
        for network in networks:
            self._mechanisms.setdefault(network, {})[scheme] = mechanism
        return self

    def supported(self) -> SupportedResponse:
        """Return supported network/scheme combinations."""
        kinds = [
            SupportedKind(x402Version=X402_VERSION, scheme=scheme, network=network)
            for network, schemes in self._mechanisms.items()
            for scheme in schemes
        ]
        return SupportedResponse(kinds=kinds)

    def _lookup(self, requirements: PaymentRequirements) -> FacilitatorMechanism | str:
        """Find the mechanism for a requirement, or the reason there is none"""
        network_mechanisms = self._mechanisms.get(requirements.network)
        if network_mechanisms is None:
            return INVALID_NETWORK
        mechanism = network_mechanisms.get(requirements.scheme)
        if mechanism is None:
            return UNSUPPORTED_SCHEME
        return mechanism

    def validate_requirements(self, requirements: PaymentRequirements) -> list[str]:
        """Report configuration problems that would make *requirements* unpayable"""
        mechanism = self._lookup(requirements)
        if isinstance(mechanism, str):
            return [
                f"No {requirements.scheme} mechanism registered for network "
                f"{requirements.network} ({mechanism})"
            ]
        return mechanism.validate_requirements(requirements)

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """
        Verify payment signature and validity.

        Args:
            payload: Payment payload from client
            requirements: Payment requirements

        Returns:
            VerifyResponse
        """
        mechanism = self._lookup(requirements)
        if isinstance(mechanism, str):
            logger.info(
                f"No mechanism for {requirements.network}/{requirements.scheme}: {mechanism}"
            )
            return VerifyResponse(isValid=False, invalidReason=mechanism, payer=payload.payer)
        return await mechanism.verify(payload, requirements)

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleResponse:
        """
        Execute payment settlement.

        Args:
            payload: Payment payload from client
            requirements: Payment requirements

        Returns:
            SettleResponse with tx_hash
        """
        mechanism = self._lookup(requirements)
        if isinstance(mechanism, str):
            return SettleResponse(
                success=False,
                errorReason=mechanism,
                network=requirements.network,
                payer=payload.payer,
            )
        return await mechanism.settle(payload, requirements)
