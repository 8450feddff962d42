"""
X402 Network Configuration
Centralized configuration for contract addresses and network settings
"""

import os
from typing import Dict

from x402_evm.exceptions import UnsupportedNetworkError


class NetworkConfig:
    """Network configuration for contract addresses and chain IDs"""

    # EVM Networks
    EVM_MAINNET = "eip155:1"
    EVM_SEPOLIA = "eip155:11155111"
    BASE_MAINNET = "eip155:8453"
    BASE_SEPOLIA = "eip155:84532"
    BSC_MAINNET = "eip155:56"
    BSC_TESTNET = "eip155:97"

    # Legacy x402 v1 network names
    CHAIN_IDS: Dict[str, int] = {
        "ethereum": 1,
        "goerli": 5,
        "sepolia": 11155111,
        "base": 8453,
        "base-sepolia": 84532,
        "bsc": 56,
        "bsc-testnet": 97,
        "polygon": 137,
        "polygon-amoy": 80002,
        "arbitrum": 42161,
        "arbitrum-sepolia": 421614,
        "optimism": 10,
        "optimism-sepolia": 11155420,
        "avalanche": 43114,
        "avalanche-fuji": 43113,
    }

    # Uniswap Permit2, same address on every chain
    PERMIT2_ADDRESS = "0x000000000022D473030F116dDEE9F6B43aC78BA3"

    # Default RPC URLs keyed by chain ID
    RPC_URLS: Dict[int, str] = {
        1: "https://eth.llamarpc.com",
        11155111: "https://rpc.sepolia.org",
        8453: "https://mainnet.base.org",
        84532: "https://sepolia.base.org",
        56: "https://bsc-dataseed.binance.org/",
        97: "https://data-seed-prebsc-1-s1.binance.org:8545/",
        137: "https://polygon-rpc.com",
        42161: "https://arb1.arbitrum.io/rpc",
        10: "https://mainnet.optimism.io",
    }

    RPC_URL_ENV_PREFIX = "X402_RPC_URL_"

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        """Get chain ID for network

        Args:
            network: Network identifier (e.g., "eip155:8453", "base-sepolia")

        Returns:
            Chain ID as integer

        Raises:
            UnsupportedNetworkError: If network is not supported
        """
        # CAIP-2 identifiers encode the chain ID directly
        if network.startswith("eip155:"):
            try:
                chain_id = int(network.split(":", 1)[1])
            except (ValueError, IndexError):
                raise UnsupportedNetworkError(f"Invalid EVM network: {network}")
            if chain_id <= 0:
                raise UnsupportedNetworkError(f"Invalid EVM network: {network}")
            return chain_id

        chain_id = cls.CHAIN_IDS.get(network)
        if chain_id is None:
            raise UnsupportedNetworkError(f"Unsupported network: {network}")
        return chain_id

    @classmethod
    def is_supported(cls, network: str) -> bool:
        try:
            cls.get_chain_id(network)
        except UnsupportedNetworkError:
            return False
        return True

    @classmethod
    def get_rpc_url(cls, network: str) -> str | None:
        """Get RPC URL for a network.

        ``X402_RPC_URL_<chainId>`` in the environment takes precedence over
        the built-in defaults.

        Args:
            network: Network identifier (e.g., "eip155:97") or direct URL

        Returns:
            RPC URL string, or None if not configured
        """
        if network.startswith(("http://", "https://", "ws://", "wss://")):
            return network
        chain_id = cls.get_chain_id(network)
        override = os.getenv(f"{cls.RPC_URL_ENV_PREFIX}{chain_id}")
        if override:
            return override
        return cls.RPC_URLS.get(chain_id)

    @classmethod
    def get_permit2_address(cls, network: str) -> str:
        """Get the Permit2 contract address (identical on every EVM chain)"""
        return cls.PERMIT2_ADDRESS
