"""
x402 custom exception hierarchy
"""


class X402Error(Exception):
    """x402 base exception"""

    pass


class SignatureError(X402Error):
    """Signature-related error"""

    pass


class SignatureVerificationError(SignatureError):
    """Signature could not be decoded or recovered"""

    pass


class PaymentHeaderError(X402Error):
    """Payment header could not be decoded into a payload"""

    pass


class ChainReadError(X402Error):
    """A read-only chain call failed (RPC unreachable, bad response, ...)"""

    pass


class ContractCallReverted(ChainReadError):
    """A read-only contract call reverted"""

    pass


class SettlementError(X402Error):
    """Settlement-related error"""

    pass


class BroadcastError(SettlementError):
    """Transaction could not be submitted to the network"""

    pass


class TransactionError(X402Error):
    """Transaction-related error"""

    pass


class TransactionTimeoutError(TransactionError):
    """Transaction was not mined before the timeout"""

    pass


class TransactionFailedError(TransactionError):
    """Transaction execution failed (reverted)"""

    pass


class ReceiptUnavailableError(TransactionError):
    """Receipt of a broadcast transaction could not be fetched"""

    pass


class ConfigurationError(X402Error):
    """Configuration-related error"""

    pass


class UnsupportedNetworkError(ConfigurationError):
    """Unsupported network"""

    pass


class UnknownTokenError(ConfigurationError):
    """Unknown token"""

    pass
