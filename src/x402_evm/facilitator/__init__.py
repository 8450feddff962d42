"""
x402 Facilitator SDK
"""

from x402_evm.facilitator.x402_facilitator import X402Facilitator

__all__ = ["X402Facilitator"]
