"""
Reason codes reported in VerifyResponse.invalidReason / SettleResponse.errorReason.

The set is closed: every failure surfaced by the core is one of these values.
"""

# Parse
MISSING_PAYMENT_HEADER = "missing_payment_header"
INVALID_PAYMENT_HEADER = "invalid_payment_header"

# Verify, scheme-agnostic
UNSUPPORTED_SCHEME = "unsupported_scheme"
INVALID_NETWORK = "invalid_network"
SCHEME_NETWORK_MISMATCH = "scheme_network_mismatch"

# Verify, scheme-specific
INVALID_SPENDER_ADDRESS = "invalid_spender_address"
INVALID_RECIPIENT_ADDRESS = "invalid_recipient_address"
WITNESS_RECIPIENT_MISMATCH = "witness_recipient_mismatch"
TOKEN_MISMATCH = "token_mismatch"
INVALID_EXACT_PAYLOAD_VALUE = "invalid_exact_payload_value"
INSUFFICIENT_FUNDS = "insufficient_funds"
PERMIT2_NOT_APPROVED = "permit2_not_approved"

# Settle
BROADCAST_FAILED = "broadcast_failed"
TRANSACTION_FAILED = "transaction_failed"

# Reasons only the settlement transaction itself can produce
SETTLEMENT_REASONS = frozenset({BROADCAST_FAILED, TRANSACTION_FAILED})


def _code(authorization_type: str) -> str:
    return authorization_type.replace("-", "_")


def invalid_signature(authorization_type: str) -> str:
    """e.g. ``invalid_permit_signature``, ``invalid_permit2_witness_signature``"""
    return f"invalid_{_code(authorization_type)}_signature"


def expired(authorization_type: str) -> str:
    """e.g. ``permit_expired``, ``eip3009_expired``"""
    return f"{_code(authorization_type)}_expired"


def not_yet_valid(authorization_type: str) -> str:
    return f"{_code(authorization_type)}_not_yet_valid"
