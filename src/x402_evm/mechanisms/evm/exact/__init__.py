"""
Exact payment scheme for EVM chains.
"""

from x402_evm.mechanisms.evm.exact.common import SchemeContext
from x402_evm.mechanisms.evm.exact.facilitator import (
    SCHEME_HANDLERS,
    ExactEvmFacilitatorMechanism,
)

__all__ = ["ExactEvmFacilitatorMechanism", "SCHEME_HANDLERS", "SchemeContext"]
