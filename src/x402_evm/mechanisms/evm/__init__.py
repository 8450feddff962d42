"""
EVM mechanisms
"""

from x402_evm.mechanisms.evm.exact import ExactEvmFacilitatorMechanism

__all__ = ["ExactEvmFacilitatorMechanism"]
