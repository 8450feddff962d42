"""
Base mechanism interfaces (ABCs).
"""

from x402_evm.mechanisms._base.facilitator import FacilitatorMechanism

__all__ = ["FacilitatorMechanism"]
