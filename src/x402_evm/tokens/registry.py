"""
Token registry - known token metadata for EVM networks
"""

from dataclasses import dataclass

from x402_evm.exceptions import UnknownTokenError
from x402_evm.utils import same_address


@dataclass
class TokenInfo:
    """Token information.

    ``name`` and ``version`` are the token's EIP-712 domain values, which are
    not always the ERC-20 display name.
    """

    address: str
    decimals: int
    name: str
    symbol: str
    version: str = "1"


class TokenRegistry:
    """Token registry"""

    _tokens: dict[str, dict[str, TokenInfo]] = {
        # Ethereum Mainnet (eip155:1)
        "eip155:1": {
            "USDC": TokenInfo(
                address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
                version="2",
            ),
        },
        # Sepolia (eip155:11155111)
        "eip155:11155111": {
            "USDC": TokenInfo(
                address="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
                decimals=6,
                name="USDC",
                symbol="USDC",
                version="2",
            ),
        },
        # Base Mainnet (eip155:8453)
        "eip155:8453": {
            "USDC": TokenInfo(
                address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
                version="2",
            ),
        },
        # Base Sepolia (eip155:84532)
        "eip155:84532": {
            "USDC": TokenInfo(
                address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
                decimals=6,
                name="USDC",
                symbol="USDC",
                version="2",
            ),
        },
        # BSC Testnet (eip155:97)
        "eip155:97": {
            "USDT": TokenInfo(
                address="0x337610d27c682E347C9cD60BD4b3b107C9d34dDd",
                decimals=18,
                name="Tether USD",
                symbol="USDT",
            ),
            "USDC": TokenInfo(
                address="0x64544969ed7EBf5f083679233325356EbE738930",
                decimals=18,
                name="USD Coin",
                symbol="USDC",
            ),
        },
        # BSC Mainnet (eip155:56)
        "eip155:56": {
            "USDC": TokenInfo(
                address="0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
                decimals=18,
                name="USD Coin",
                symbol="USDC",
            ),
            "USDT": TokenInfo(
                address="0x55d398326f99059fF775485246999027B3197955",
                decimals=18,
                name="Tether USD",
                symbol="USDT",
            ),
        },
    }

    @classmethod
    def register_token(cls, network: str, token: TokenInfo) -> None:
        """Register a custom token for specified network

        Args:
            network: Network identifier (e.g. "eip155:8453")
            token: TokenInfo to register
        """
        if network not in cls._tokens:
            cls._tokens[network] = {}
        cls._tokens[network][token.symbol.upper()] = token

    @classmethod
    def get_token(cls, network: str, symbol: str) -> TokenInfo:
        """Get token information for specified network and symbol

        Raises:
            UnknownTokenError: If token does not exist
        """
        tokens = cls._tokens.get(network, {})
        token = tokens.get(symbol.upper())
        if token is None:
            raise UnknownTokenError(f"Unknown token {symbol} on network {network}")
        return token

    @classmethod
    def find_by_address(cls, network: str, address: str) -> TokenInfo | None:
        """Find token information by address (case-insensitive)"""
        for info in cls._tokens.get(network, {}).values():
            if same_address(info.address, address):
                return info
        return None

    @classmethod
    def get_network_tokens(cls, network: str) -> dict[str, TokenInfo]:
        """Get all tokens for specified network"""
        return cls._tokens.get(network, {})
