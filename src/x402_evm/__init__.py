"""
x402-evm - x402 payment verification and settlement for EVM chains

Verifies EIP-2612 permit, EIP-3009 and Permit2 authorizations, settles them
on chain, and detects which of these schemes a token supports.
"""

__version__ = "0.1.0"

from x402_evm.exceptions import (
    BroadcastError,
    ChainReadError,
    ConfigurationError,
    ContractCallReverted,
    PaymentHeaderError,
    SettlementError,
    SignatureError,
    SignatureVerificationError,
    TransactionError,
    TransactionFailedError,
    TransactionTimeoutError,
    UnknownTokenError,
    UnsupportedNetworkError,
    X402Error,
)
from x402_evm.facilitator import X402Facilitator
from x402_evm.mechanisms import ExactEvmFacilitatorMechanism
from x402_evm.server import X402Server
from x402_evm.tokens import TokenDetector, TokenInfo, TokenRegistry
from x402_evm.types import (
    PaymentFailure,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    ProcessResult,
    SettleResponse,
    TokenCapabilities,
    VerifyResponse,
)

__all__ = [
    "__version__",
    # Types
    "PaymentPayload",
    "PaymentRequirements",
    "PaymentRequired",
    "VerifyResponse",
    "SettleResponse",
    "TokenCapabilities",
    "PaymentFailure",
    "ProcessResult",
    # Components
    "X402Facilitator",
    "X402Server",
    "ExactEvmFacilitatorMechanism",
    "TokenDetector",
    # Exceptions
    "X402Error",
    "SignatureError",
    "SignatureVerificationError",
    "PaymentHeaderError",
    "ChainReadError",
    "ContractCallReverted",
    "SettlementError",
    "BroadcastError",
    "TransactionError",
    "TransactionFailedError",
    "TransactionTimeoutError",
    "ConfigurationError",
    "UnsupportedNetworkError",
    "UnknownTokenError",
    # Token registry
    "TokenInfo",
    "TokenRegistry",
]
