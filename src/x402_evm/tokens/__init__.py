"""
Token registry, metadata lookup and capability detection
"""

from x402_evm.tokens.detector import (
    TokenDetector,
    get_recommended_payment_method,
    scan_bytecode,
)
from x402_evm.tokens.metadata import (
    TokenDomain,
    get_token_info,
    resolve_token_domain,
)
from x402_evm.tokens.registry import TokenInfo, TokenRegistry

__all__ = [
    "TokenDetector",
    "get_recommended_payment_method",
    "scan_bytecode",
    "TokenDomain",
    "get_token_info",
    "resolve_token_domain",
    "TokenInfo",
    "TokenRegistry",
]
