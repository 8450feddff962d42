"""
Type definitions for x402 protocol (exact scheme, EVM authorizations)
"""

import re
from typing import Annotated, Any, Literal, Optional, Union

from eth_utils import is_address
from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, model_validator

X402_VERSION = 1
SCHEME_EXACT = "exact"

# Authorization types
PERMIT = "permit"
EIP3009 = "eip3009"
PERMIT2 = "permit2"
PERMIT2_WITNESS = "permit2-witness"

# Payment types a requirement may pin (witness is a permit2 flavour)
PaymentType = Literal["permit", "eip3009", "permit2"]

AuthorizationType = Literal["permit", "eip3009", "permit2", "permit2-witness"]

# Methods the token detector can report
PaymentMethod = Literal["eip3009", "permit", "permit2", "permit2-witness"]

ProcessStage = Literal["parse", "verify", "settle"]

_UINT_RE = re.compile(r"[0-9]+")
_BYTES32_RE = re.compile(r"0x[0-9a-fA-F]{64}")


def _to_uint_string(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("must be a non-negative integer")
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str) or not _UINT_RE.fullmatch(value):
        raise ValueError("must be a non-negative integer string")
    return value


def _check_address(value: str) -> str:
    if not is_address(value):
        raise ValueError(f"invalid EVM address: {value}")
    return value


def _check_bytes32(value: str) -> str:
    if not _BYTES32_RE.fullmatch(value):
        raise ValueError("must be a 0x-prefixed 32-byte hex string")
    return value


UintString = Annotated[str, BeforeValidator(_to_uint_string)]
Address = Annotated[str, AfterValidator(_check_address)]
Bytes32Hex = Annotated[str, AfterValidator(_check_bytes32)]


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------


class PaymentRequirementsExtra(BaseModel):
    """Scheme-specific signing metadata in payment requirements"""

    name: Optional[str] = None
    version: Optional[str] = None
    relayer: Optional[str] = None

    class Config:
        populate_by_name = True
        frozen = True
        extra = "allow"


class PaymentRequirements(BaseModel):
    """Payment requirements from server"""

    scheme: str = SCHEME_EXACT
    network: str
    max_amount_required: UintString = Field(alias="maxAmountRequired")
    resource: str
    description: str = ""
    mime_type: str = Field("application/json", alias="mimeType")
    pay_to: Address = Field(alias="payTo")
    max_timeout_seconds: int = Field(3600, alias="maxTimeoutSeconds")
    asset: Address
    payment_type: Optional[PaymentType] = Field(None, alias="paymentType")
    output_schema: Optional[dict[str, Any]] = Field(None, alias="outputSchema")
    extra: Optional[PaymentRequirementsExtra] = None

    class Config:
        populate_by_name = True
        frozen = True


class PaymentRequired(BaseModel):
    """Payment required response (402)"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    accepts: list[PaymentRequirements]
    error: Optional[str] = None

    class Config:
        populate_by_name = True


# ---------------------------------------------------------------------------
# Authorizations
# ---------------------------------------------------------------------------


class PermitAuthorization(BaseModel):
    """EIP-2612 permit fields"""

    owner: Address
    spender: Address
    value: UintString
    nonce: UintString
    deadline: UintString


class Eip3009Authorization(BaseModel):
    """EIP-3009 transferWithAuthorization fields"""

    from_address: Address = Field(alias="from")
    to: Address
    value: UintString
    valid_after: UintString = Field(alias="validAfter")
    valid_before: UintString = Field(alias="validBefore")
    nonce: Bytes32Hex

    class Config:
        populate_by_name = True


class Permit2Authorization(BaseModel):
    """Permit2 SignatureTransfer fields"""

    owner: Address
    spender: Address
    token: Address
    amount: UintString
    nonce: UintString
    deadline: UintString


class Permit2WitnessAuthorization(Permit2Authorization):
    """Permit2 fields plus the witness-bound recipient"""

    to: Address


class PermitPayload(BaseModel):
    authorization_type: Literal["permit"] = Field(alias="authorizationType")
    signature: str
    authorization: PermitAuthorization

    class Config:
        populate_by_name = True


class Eip3009Payload(BaseModel):
    authorization_type: Literal["eip3009"] = Field(alias="authorizationType")
    signature: str
    authorization: Eip3009Authorization

    class Config:
        populate_by_name = True


class Permit2Payload(BaseModel):
    authorization_type: Literal["permit2"] = Field(alias="authorizationType")
    signature: str
    authorization: Permit2Authorization

    class Config:
        populate_by_name = True


class Permit2WitnessPayload(BaseModel):
    authorization_type: Literal["permit2-witness"] = Field(alias="authorizationType")
    signature: str
    authorization: Permit2WitnessAuthorization

    class Config:
        populate_by_name = True


ExactEvmPayload = Annotated[
    Union[PermitPayload, Eip3009Payload, Permit2Payload, Permit2WitnessPayload],
    Field(discriminator="authorization_type"),
]


class PaymentPayload(BaseModel):
    """Payment payload sent by client in the X-PAYMENT header"""

    x402_version: int = Field(alias="x402Version")
    scheme: str
    network: str
    payload: ExactEvmPayload

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _detect_permit2_witness(cls, data: Any) -> Any:
        """Treat a permit2 payload carrying a recipient as the witness variant.

        Clients send ``authorizationType: "permit2"`` with either a flat
        ``to`` or a nested ``witness: {to}`` in the authorization.
        """
        if not isinstance(data, dict):
            return data
        inner = data.get("payload")
        if not isinstance(inner, dict) or inner.get("authorizationType") != PERMIT2:
            return data
        auth = inner.get("authorization")
        if not isinstance(auth, dict):
            return data

        to = auth.get("to")
        witness = auth.get("witness")
        if to is None and isinstance(witness, dict):
            to = witness.get("to")
        if to is None:
            return data

        auth = {k: v for k, v in auth.items() if k != "witness"}
        auth["to"] = to
        return {
            **data,
            "payload": {**inner, "authorizationType": PERMIT2_WITNESS, "authorization": auth},
        }

    @property
    def payer(self) -> str:
        """Address whose funds the authorization moves"""
        auth = self.payload.authorization
        if isinstance(auth, Eip3009Authorization):
            return auth.from_address
        return auth.owner


# ---------------------------------------------------------------------------
# Facilitator responses
# ---------------------------------------------------------------------------


class VerifyResponse(BaseModel):
    """Verification result"""

    is_valid: bool = Field(alias="isValid")
    invalid_reason: Optional[str] = Field(None, alias="invalidReason")
    payer: Optional[str] = None

    class Config:
        populate_by_name = True


class SettleResponse(BaseModel):
    """Settlement result"""

    success: bool
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    error_reason: Optional[str] = Field(None, alias="errorReason")

    class Config:
        populate_by_name = True


class SupportedKind(BaseModel):
    """Supported payment kind"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    scheme: str
    network: str

    class Config:
        populate_by_name = True


class SupportedResponse(BaseModel):
    """Supported response from facilitator"""

    kinds: list[SupportedKind]


# ---------------------------------------------------------------------------
# Token capabilities
# ---------------------------------------------------------------------------


class TokenCapabilityDetails(BaseModel):
    """Raw detection flags"""

    has_eip3009: bool = Field(alias="hasEIP3009")
    has_permit: bool = Field(alias="hasPermit")
    has_permit2_approval: bool = Field(alias="hasPermit2Approval")
    eip3009_selector: Optional[str] = Field(None, alias="eip3009Selector")
    implementation: Optional[str] = None
    complete: bool = True

    class Config:
        populate_by_name = True
        frozen = True


class TokenCapabilities(BaseModel):
    """Authorization schemes a token contract supports"""

    address: str
    supported_methods: list[PaymentMethod] = Field(alias="supportedMethods")
    details: TokenCapabilityDetails

    class Config:
        populate_by_name = True
        frozen = True

    def supports(self, method: str) -> bool:
        return method in self.supported_methods


# ---------------------------------------------------------------------------
# Orchestrator results
# ---------------------------------------------------------------------------


class ParsedPayment(BaseModel):
    """A decoded payment header paired with the requirement it answers"""

    payload: PaymentPayload
    requirements: PaymentRequirements


class PaymentFailure(BaseModel):
    """Terminal failure of the parse / verify / settle pipeline"""

    stage: ProcessStage
    error_reason: str = Field(alias="errorReason")
    requirements: PaymentRequirements
    payer: Optional[str] = None
    transaction: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_payment_required(self) -> PaymentRequired:
        """Re-present the original requirement alongside the failure reason"""
        return PaymentRequired(
            x402Version=X402_VERSION,
            accepts=[self.requirements],
            error=self.error_reason,
        )


class ProcessResult(BaseModel):
    """Outcome of one request through the payment pipeline"""

    success: bool
    payer: Optional[str] = None
    transaction: Optional[str] = None
    network: Optional[str] = None
    failure: Optional[PaymentFailure] = None
