"""
X402Server - parse -> verify -> settle pipeline for resource servers
"""

import logging
from typing import Any

from pydantic import ValidationError

from x402_evm.encoding import decode_payment_payload
from x402_evm.exceptions import ChainReadError, ConfigurationError, PaymentHeaderError
from x402_evm.facilitator.x402_facilitator import X402Facilitator
from x402_evm.reasons import INVALID_PAYMENT_HEADER, MISSING_PAYMENT_HEADER, SETTLEMENT_REASONS
from x402_evm.tokens.detector import TokenDetector
from x402_evm.tokens.metadata import resolve_token_domain
from x402_evm.types import (
    EIP3009,
    PERMIT,
    SCHEME_EXACT,
    X402_VERSION,
    ParsedPayment,
    PaymentFailure,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    PaymentRequirementsExtra,
    ProcessResult,
    SettleResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

AUTO = "auto"


class X402Server:
    """
    Core payment server for x402 protocol.

    Builds payment requirements and runs each request's payment header
    through parse, verify and settle. Every failure comes back as a
    PaymentFailure that also holds the original requirements.
    """

    def __init__(
        self,
        facilitator: X402Facilitator,
        detectors: dict[str, TokenDetector] | None = None,
        relayer: str | None = None,
    ) -> None:
        self._facilitator = facilitator
        self._detectors = dict(detectors or {})
        self._relayer = relayer

    @property
    def facilitator(self) -> X402Facilitator:
        return self._facilitator

    def add_detector(self, network: str, detector: TokenDetector) -> "X402Server":
        """Use *detector* for payment type recommendation on *network*.

        Returns:
            self for method chaining
        """
        self._detectors[network] = detector
        return self

    async def create_requirements(
        self,
        asset: str,
        amount: int | str,
        pay_to: str,
        network: str,
        payment_type: str | None = None,
        resource: str = "",
        description: str = "",
        mime_type: str = "application/json",
        max_timeout_seconds: int = 3600,
        extra: dict[str, Any] | None = None,
    ) -> PaymentRequirements:
        """Build payment requirements for a resource.

        Args:
            asset: Token contract address
            amount: Amount in the token's base units
            pay_to: Recipient (the settlement contract for permit)
            network: Network identifier
            payment_type: "permit", "eip3009", "permit2", or None / "auto" to
                use the detector's recommendation for *asset*
            extra: Additional ``extra`` fields; ``name``/``version`` given here
                are never overridden

        Raises:
            ConfigurationError: If the payment type cannot be determined
        """
        detector = self._detectors.get(network)
        if payment_type is None or payment_type == AUTO:
            if detector is None:
                raise ConfigurationError(f"No token detector registered for network: {network}")
            capabilities = await detector.detect(asset)
            payment_type = detector.recommend(capabilities)
            if payment_type is None:
                raise ConfigurationError(
                    f"Token {asset} on {network} supports no known authorization scheme"
                )
            logger.info(f"[REQUIREMENTS] Recommended {payment_type} for {asset} on {network}")

        extra_fields = dict(extra or {})
        if self._relayer and "relayer" not in extra_fields:
            extra_fields["relayer"] = self._relayer
        if payment_type in (PERMIT, EIP3009) and detector is not None:
            await self._prefill_token_domain(detector, network, asset, extra_fields)

        return PaymentRequirements(
            scheme=SCHEME_EXACT,
            network=network,
            maxAmountRequired=str(amount),
            resource=resource,
            description=description,
            mimeType=mime_type,
            payTo=pay_to,
            maxTimeoutSeconds=max_timeout_seconds,
            asset=asset,
            paymentType=payment_type,
            extra=PaymentRequirementsExtra(**extra_fields) if extra_fields else None,
        )

    async def _prefill_token_domain(
        self,
        detector: TokenDetector,
        network: str,
        asset: str,
        extra_fields: dict[str, Any],
    ) -> None:
        """Best-effort EIP-712 name/version lookup so verifiers need no chain read"""
        try:
            domain = await resolve_token_domain(
                detector.reader,
                network,
                asset,
                PaymentRequirementsExtra(
                    name=extra_fields.get("name"), version=extra_fields.get("version")
                ),
            )
        except ChainReadError as e:
            logger.warning(f"[REQUIREMENTS] Could not read token domain for {asset}: {e}")
            return
        extra_fields.setdefault("name", domain.name)
        extra_fields.setdefault("version", domain.version)

    def validate_config(self, requirements: list[PaymentRequirements]) -> None:
        """Check that the facilitator can settle payments for every requirement.

        Intended to run once at startup, after the requirements are built.

        Raises:
            ConfigurationError: Listing every problem found
        """
        problems = []
        for item in requirements:
            for problem in self._facilitator.validate_requirements(item):
                logger.error(f"[CONFIG] {item.network} {item.asset}: {problem}")
                problems.append(problem)
        if problems:
            raise ConfigurationError("Invalid payment configuration: " + "; ".join(problems))

    def create_payment_required_response(
        self,
        requirements: list[PaymentRequirements],
        error: str | None = None,
    ) -> PaymentRequired:
        """Create 402 Payment Required response."""
        return PaymentRequired(x402Version=X402_VERSION, accepts=requirements, error=error)

    def parse(
        self,
        header: str | None,
        requirements: PaymentRequirements,
    ) -> ParsedPayment | PaymentFailure:
        """Decode a payment header into a payload bound to *requirements*"""
        if not header or not header.strip():
            return PaymentFailure(
                stage="parse", errorReason=MISSING_PAYMENT_HEADER, requirements=requirements
            )

        try:
            payload = decode_payment_payload(header, PaymentPayload)
        except (PaymentHeaderError, ValidationError) as e:
            logger.info(f"[PARSE] Invalid payment header: {e}")
            return PaymentFailure(
                stage="parse", errorReason=INVALID_PAYMENT_HEADER, requirements=requirements
            )

        if payload.x402_version != X402_VERSION:
            logger.info(f"[PARSE] Unsupported x402Version {payload.x402_version}")
            return PaymentFailure(
                stage="parse", errorReason=INVALID_PAYMENT_HEADER, requirements=requirements
            )

        return ParsedPayment(payload=payload, requirements=requirements)

    async def verify(self, parsed: ParsedPayment) -> VerifyResponse:
        return await self._facilitator.verify(parsed.payload, parsed.requirements)

    async def settle(self, parsed: ParsedPayment) -> SettleResponse:
        return await self._facilitator.settle(parsed.payload, parsed.requirements)

    async def process(
        self,
        header: str | None,
        requirements: PaymentRequirements,
    ) -> ProcessResult:
        """Run one request's payment through parse, verify and settle"""
        parsed = self.parse(header, requirements)
        if isinstance(parsed, PaymentFailure):
            return ProcessResult(success=False, failure=parsed)

        verify_result = await self.verify(parsed)
        if not verify_result.is_valid:
            return ProcessResult(
                success=False,
                payer=verify_result.payer,
                network=requirements.network,
                failure=PaymentFailure(
                    stage="verify",
                    errorReason=verify_result.invalid_reason,
                    requirements=requirements,
                    payer=verify_result.payer,
                ),
            )

        settle_result = await self.settle(parsed)
        if not settle_result.success:
            # Settlement re-verifies first; those rejections belong to verify
            stage = "settle" if settle_result.error_reason in SETTLEMENT_REASONS else "verify"
            return ProcessResult(
                success=False,
                payer=settle_result.payer or verify_result.payer,
                transaction=settle_result.transaction,
                network=requirements.network,
                failure=PaymentFailure(
                    stage=stage,
                    errorReason=settle_result.error_reason,
                    requirements=requirements,
                    payer=settle_result.payer or verify_result.payer,
                    transaction=settle_result.transaction,
                ),
            )

        logger.info(
            f"[PROCESS] Payment from {settle_result.payer} settled in {settle_result.transaction}"
        )
        return ProcessResult(
            success=True,
            payer=settle_result.payer,
            transaction=settle_result.transaction,
            network=settle_result.network or requirements.network,
        )
