"""
Chain collaborator interfaces used by the facilitator
"""

from abc import ABC, abstractmethod
from typing import Any

from eth_account import Account
from eth_account.messages import encode_typed_data

from x402_evm.abi import eip712_domain_type
from x402_evm.exceptions import SignatureVerificationError
from x402_evm.utils import signature_to_bytes


class ChainReader(ABC):
    """
    Read-only view of an EVM chain.

    Implementations raise ChainReadError when a read cannot be completed and
    ContractCallReverted when a read-only contract call reverts.
    """

    @abstractmethod
    async def get_code(self, address: str, network: str) -> bytes:
        """Get deployed bytecode at address (empty bytes for an EOA)"""
        pass

    @abstractmethod
    async def get_storage_at(self, address: str, slot: int, network: str) -> bytes:
        """Read a 32-byte storage word"""
        pass

    @abstractmethod
    async def read_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        network: str,
    ) -> Any:
        """
        Call a view function.

        Args:
            contract_address: Contract address
            abi: Contract ABI
            method: Method name
            args: Method arguments
            network: Network identifier (e.g. "eip155:8453")

        Returns:
            Decoded return value (a tuple for multi-value returns)
        """
        pass

    def recover_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        primary_type: str,
        message: dict[str, Any],
        signature: str,
    ) -> str:
        """
        Recover the signer of an EIP-712 typed data signature.

        The EIP712Domain type is derived from the keys present in *domain*.

        Returns:
            Checksummed signer address

        Raises:
            SignatureVerificationError: If the signature cannot be decoded
                or recovery fails
        """
        sig_bytes = signature_to_bytes(signature)
        typed_data = {
            "types": {"EIP712Domain": eip712_domain_type(domain), **types},
            "primaryType": primary_type,
            "domain": domain,
            "message": message,
        }
        try:
            signable = encode_typed_data(full_message=typed_data)
            return Account.recover_message(signable, signature=sig_bytes)
        except Exception as e:
            raise SignatureVerificationError(f"Typed data recovery failed: {e}") from e


class FacilitatorSigner(ChainReader):
    """
    Abstract base class for facilitator signers.

    Responsible for submitting settlement transactions and tracking them to
    inclusion.
    """

    @abstractmethod
    def get_address(self) -> str:
        """Get the facilitator's account address"""
        pass

    @abstractmethod
    async def write_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        network: str,
    ) -> str:
        """
        Execute a contract write transaction.

        Returns:
            Transaction hash

        Raises:
            TransactionFailedError: If the call reverts before inclusion
            BroadcastError: If the transaction could not be submitted
        """
        pass

    @abstractmethod
    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: int = 120,
        network: str = "",
    ) -> dict[str, Any]:
        """
        Wait for transaction confirmation.

        Returns:
            ``{"hash", "blockNumber", "status": "confirmed" | "failed"}``

        Raises:
            TransactionTimeoutError: If no receipt arrives within *timeout*
            ReceiptUnavailableError: If the receipt cannot be fetched
        """
        pass
