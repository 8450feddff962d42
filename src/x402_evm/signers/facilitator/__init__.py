"""
Facilitator Signers
"""

from x402_evm.signers.facilitator.base import ChainReader, FacilitatorSigner
from x402_evm.signers.facilitator.evm_signer import EvmChainReader, EvmFacilitatorSigner

__all__ = ["ChainReader", "FacilitatorSigner", "EvmChainReader", "EvmFacilitatorSigner"]
