"""
EvmFacilitatorSigner - EVM chain reader and facilitator signer using web3.py
"""

import logging
from typing import Any, Mapping

from eth_account import Account
from eth_utils import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware

from x402_evm.config import NetworkConfig
from x402_evm.exceptions import (
    BroadcastError,
    ChainReadError,
    ContractCallReverted,
    ReceiptUnavailableError,
    TransactionFailedError,
    TransactionTimeoutError,
    UnsupportedNetworkError,
)
from x402_evm.signers.facilitator.base import ChainReader, FacilitatorSigner

logger = logging.getLogger(__name__)


class EvmChainReader(ChainReader):
    """Read-only chain access over JSON-RPC, one AsyncWeb3 client per network"""

    def __init__(self, rpc_urls: Mapping[str, str] | None = None) -> None:
        self._rpc_urls = dict(rpc_urls or {})
        self._async_web3_clients: dict[str, AsyncWeb3] = {}

    def _resolve_provider_uri(self, network: str) -> str:
        uri = self._rpc_urls.get(network) or NetworkConfig.get_rpc_url(network)
        if not uri:
            raise UnsupportedNetworkError(f"No RPC URL configured for network: {network}")
        return uri

    def _ensure_async_web3_client(self, network: str) -> AsyncWeb3:
        """Lazy initialize async web3 client for the given network."""
        if network not in self._async_web3_clients:
            provider_uri = self._resolve_provider_uri(network)
            w3 = AsyncWeb3(AsyncHTTPProvider(provider_uri))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._async_web3_clients[network] = w3
            logger.debug(f"Created web3 client for {network} at {provider_uri}")

        return self._async_web3_clients[network]

    async def get_code(self, address: str, network: str) -> bytes:
        try:
            w3 = self._ensure_async_web3_client(network)
            code = await w3.eth.get_code(to_checksum_address(address))
        except Exception as e:
            raise ChainReadError(f"eth_getCode failed for {address} on {network}: {e}") from e
        return bytes(code)

    async def get_storage_at(self, address: str, slot: int, network: str) -> bytes:
        try:
            w3 = self._ensure_async_web3_client(network)
            word = await w3.eth.get_storage_at(to_checksum_address(address), slot)
        except Exception as e:
            raise ChainReadError(
                f"eth_getStorageAt failed for {address} slot {hex(slot)} on {network}: {e}"
            ) from e
        return bytes(word)

    async def read_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        network: str,
    ) -> Any:
        try:
            w3 = self._ensure_async_web3_client(network)
            contract = w3.eth.contract(address=to_checksum_address(contract_address), abi=abi)
            return await getattr(contract.functions, method)(*args).call()
        except ContractLogicError as e:
            raise ContractCallReverted(f"{method}() reverted on {contract_address}: {e}") from e
        except Exception as e:
            raise ChainReadError(f"{method}() failed on {contract_address}: {e}") from e


class EvmFacilitatorSigner(EvmChainReader, FacilitatorSigner):
    """EVM facilitator signer implementation using web3.py"""

    def __init__(self, private_key: str, rpc_urls: Mapping[str, str] | None = None) -> None:
        super().__init__(rpc_urls)
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        self._private_key = private_key
        self._address = Account.from_key(private_key).address
        logger.debug(f"EvmFacilitatorSigner initialized: {self._address}")

    @classmethod
    def from_private_key(
        cls, private_key: str, rpc_urls: Mapping[str, str] | None = None
    ) -> "EvmFacilitatorSigner":
        """Create signer from private key"""
        return cls(private_key, rpc_urls)

    def get_address(self) -> str:
        return self._address

    async def write_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        network: str,
    ) -> str:
        """Build, sign and submit a contract transaction (async)."""
        try:
            w3 = self._ensure_async_web3_client(network)
            contract = w3.eth.contract(address=to_checksum_address(contract_address), abi=abi)
            func = getattr(contract.functions, method)
        except Exception as e:
            logger.error(f"No client for {method}() on {network}: {e}")
            raise BroadcastError(f"Cannot submit {method}() on {network}: {e}") from e

        try:
            # Gas estimation simulates the call, so a revert surfaces here
            tx = await func(*args).build_transaction(
                {
                    "from": self._address,
                    "nonce": await w3.eth.get_transaction_count(self._address, "pending"),
                    "chainId": await w3.eth.chain_id,
                }
            )
        except ContractLogicError as e:
            logger.warning(f"{method}() reverted in simulation on {contract_address}: {e}")
            raise TransactionFailedError(f"{method}() reverted: {e}") from e
        except Exception as e:
            logger.error(f"Failed to build {method}() transaction: {e}", exc_info=True)
            raise BroadcastError(f"Failed to build {method}() transaction: {e}") from e

        try:
            signed_tx = w3.eth.account.sign_transaction(tx, private_key=self._private_key)
            tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            logger.error(f"Failed to broadcast {method}() transaction: {e}", exc_info=True)
            raise BroadcastError(f"Failed to broadcast {method}() transaction: {e}") from e

        return w3.to_hex(tx_hash)

    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: int = 120,
        network: str = "",
    ) -> dict[str, Any]:
        """Wait for EVM transaction confirmation"""
        try:
            w3 = self._ensure_async_web3_client(network)
            receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise TransactionTimeoutError(f"Transaction {tx_hash} not mined after {timeout}s") from e
        except Exception as e:
            logger.error(f"Receipt polling for {tx_hash} failed: {e}")
            raise ReceiptUnavailableError(f"Receipt for {tx_hash} unavailable: {e}") from e

        return {
            "hash": tx_hash,
            "blockNumber": str(receipt["blockNumber"]),
            "status": "confirmed" if receipt["status"] == 1 else "failed",
            "receipt": receipt,
        }
