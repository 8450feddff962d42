"""
Token EIP-712 domain metadata lookup
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from x402_evm.abi import ERC20_ABI
from x402_evm.exceptions import ChainReadError
from x402_evm.signers.facilitator.base import ChainReader
from x402_evm.tokens.registry import TokenRegistry
from x402_evm.types import PaymentRequirementsExtra

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_VERSION = "1"


@dataclass(frozen=True)
class TokenDomain:
    """Name and version a token signs its EIP-712 messages with"""

    name: str
    version: str


VersionStep = Callable[[ChainReader, str, str], Awaitable[Optional[str]]]


async def _version_from_eip712_domain(reader: ChainReader, network: str, token: str) -> str | None:
    # EIP-5267: (fields, name, version, chainId, verifyingContract, salt, extensions)
    result = await reader.read_contract(token, ERC20_ABI, "eip712Domain", [], network)
    return result[2] or None


async def _version_from_version_getter(reader: ChainReader, network: str, token: str) -> str | None:
    return await reader.read_contract(token, ERC20_ABI, "version", [], network) or None


VERSION_STEPS: list[VersionStep] = [
    _version_from_eip712_domain,
    _version_from_version_getter,
]


async def read_token_name(reader: ChainReader, network: str, token: str) -> str:
    """Read ``name()``; raises ChainReadError if the token has none"""
    return await reader.read_contract(token, ERC20_ABI, "name", [], network)


async def read_token_version(reader: ChainReader, network: str, token: str) -> str:
    """Resolve the token's EIP-712 version.

    Tries each step in VERSION_STEPS in order and falls back to "1" when none
    of them yields a value.
    """
    for step in VERSION_STEPS:
        try:
            version = await step(reader, network, token)
        except ChainReadError as e:
            logger.debug(f"[METADATA] {step.__name__} unavailable for {token}: {e}")
            continue
        if version:
            return version
    logger.info(f"[METADATA] Using default version {DEFAULT_TOKEN_VERSION!r} for token {token}")
    return DEFAULT_TOKEN_VERSION


async def get_token_info(reader: ChainReader, network: str, token: str) -> TokenDomain:
    """
    Read a token's EIP-712 name and version from the chain.

    Raises:
        ChainReadError: If ``name()`` cannot be read
    """
    name = await read_token_name(reader, network, token)
    version = await read_token_version(reader, network, token)
    return TokenDomain(name=name, version=version)


async def resolve_token_domain(
    reader: ChainReader,
    network: str,
    asset: str,
    extra: PaymentRequirementsExtra | None = None,
) -> TokenDomain:
    """
    Resolve the signing domain for *asset*.

    Sources in order: requirement ``extra`` values, the TokenRegistry, then
    on-chain reads. Values from an earlier source are never overridden.

    Raises:
        ChainReadError: If the name must be read on chain and cannot be
    """
    name = extra.name if extra else None
    version = extra.version if extra else None
    if name and version:
        return TokenDomain(name=name, version=version)

    known = TokenRegistry.find_by_address(network, asset)
    if known is not None:
        return TokenDomain(name=name or known.name, version=version or known.version)

    if not name:
        name = await read_token_name(reader, network, asset)
    if not version:
        version = await read_token_version(reader, network, asset)
    return TokenDomain(name=name, version=version)
