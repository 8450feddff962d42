"""
x402 Mechanisms - Payment mechanisms for EVM chains

Structure:
    _base/              - ABC interfaces (FacilitatorMechanism)
    evm/
        exact/          - exact scheme
            permit.py   - EIP-2612 permit -> settleWithPermit
            eip3009.py  - EIP-3009 transferWithAuthorization
            permit2.py  - Permit2 SignatureTransfer (plain and witness)
"""

from x402_evm.mechanisms import evm
from x402_evm.mechanisms._base import FacilitatorMechanism
from x402_evm.mechanisms.evm import ExactEvmFacilitatorMechanism

__all__ = ["FacilitatorMechanism", "ExactEvmFacilitatorMechanism", "evm"]
