"""
Facilitator mechanism base interface
"""

from abc import ABC, abstractmethod

from x402_evm.types import (
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)


class FacilitatorMechanism(ABC):
    """
    Abstract base class for facilitator payment mechanisms.

    Responsible for verifying signatures and executing settlements.
    """

    @abstractmethod
    def scheme(self) -> str:
        """Get the payment scheme name"""
        pass

    @abstractmethod
    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """
        Verify payment signature (without executing on-chain transaction).

        Args:
            payload: Payment payload from client
            requirements: Payment requirements

        Returns:
            VerifyResponse
        """
        pass

    @abstractmethod
    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleResponse:
        """
        Execute payment settlement (on-chain transaction).

        Args:
            payload: Payment payload from client
            requirements: Payment requirements

        Returns:
            SettleResponse with tx_hash
        """
        pass

    def validate_requirements(self, requirements: PaymentRequirements) -> list[str]:
        """
        Check that this mechanism can settle payments made against *requirements*.

        Returns:
            Human-readable configuration problems, empty if none
        """
        return []
