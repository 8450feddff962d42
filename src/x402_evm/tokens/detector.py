"""
Token capability detection from deployed bytecode
"""

import asyncio
import logging
from typing import Any, Optional

from x402_evm.abi import (
    EIP1822_PROXIABLE_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    EIP3009_BYTES_SELECTOR,
    EIP3009_VRS_SELECTOR,
    IMPLEMENTATION_ABI,
    PERMIT_SELECTOR,
)
from x402_evm.config import NetworkConfig
from x402_evm.exceptions import ChainReadError, ContractCallReverted
from x402_evm.signers.facilitator.base import ChainReader
from x402_evm.types import (
    EIP3009,
    PERMIT,
    PERMIT2,
    PERMIT2_WITNESS,
    PaymentMethod,
    PaymentType,
    TokenCapabilities,
    TokenCapabilityDetails,
)
from x402_evm.utils import address_from_word, checksum, is_zero_address, normalize_address

# Recommendation order when a requirement does not pin a payment type
RECOMMENDATION_PRIORITY: tuple[PaymentType, ...] = (EIP3009, PERMIT, PERMIT2)


def scan_bytecode(code: bytes) -> tuple[bool, Optional[str]]:
    """Look for permit / transferWithAuthorization selectors in bytecode.

    Returns:
        (has_permit, eip3009_selector) where the selector is the v,r,s form
        when both forms are present
    """
    code_hex = code.hex()
    has_permit = PERMIT_SELECTOR in code_hex
    if EIP3009_VRS_SELECTOR in code_hex:
        return has_permit, EIP3009_VRS_SELECTOR
    if EIP3009_BYTES_SELECTOR in code_hex:
        return has_permit, EIP3009_BYTES_SELECTOR
    return has_permit, None


def get_recommended_payment_method(capabilities: TokenCapabilities) -> PaymentType | None:
    """Pick the preferred payment type for a token (eip3009 > permit > permit2)"""
    methods = set(capabilities.supported_methods)
    if PERMIT2_WITNESS in methods:
        methods.add(PERMIT2)
    for method in RECOMMENDATION_PRIORITY:
        if method in methods:
            return method
    return None


class TokenDetector:
    """
    Detects which authorization schemes a token supports on one network.

    Results are cached per lower-cased address for the lifetime of the
    instance. Concurrent first-time detections of the same address share one
    in-flight task, so they trigger a single set of chain reads. A result
    produced while some chain read failed is returned with
    ``details.complete = False`` and is not cached.
    """

    def __init__(
        self,
        reader: ChainReader,
        network: str,
        permit2_address: str | None = None,
    ) -> None:
        self._reader = reader
        self._network = network
        self._permit2_address = permit2_address or NetworkConfig.get_permit2_address(network)
        self._cache: dict[str, TokenCapabilities] = {}
        self._inflight: dict[str, asyncio.Task[TokenCapabilities]] = {}
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def network(self) -> str:
        return self._network

    @property
    def reader(self) -> ChainReader:
        return self._reader

    async def detect(self, token_address: str) -> TokenCapabilities:
        key = normalize_address(token_address)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        # No await between lookup and insert, so callers cannot race here
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key))
            self._inflight[key] = task
        return await asyncio.shield(task)

    def recommend(self, capabilities: TokenCapabilities) -> PaymentType | None:
        return get_recommended_payment_method(capabilities)

    def clear_cache(self, address: str | None = None) -> None:
        """Drop one cached entry, or all of them.

        Detections already in flight for a cleared address still answer their
        callers but no longer populate the cache.
        """
        if address is None:
            self._cache.clear()
            self._inflight.clear()
        else:
            key = normalize_address(address)
            self._cache.pop(key, None)
            self._inflight.pop(key, None)

    async def _run(self, key: str) -> TokenCapabilities:
        task = asyncio.current_task()
        try:
            capabilities = await self._detect_uncached(key)
            if capabilities.details.complete and self._inflight.get(key) is task:
                self._cache[key] = capabilities
            return capabilities
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

    def _settle(self, label: str, result: Any) -> tuple[Any, bool]:
        """Unwrap one gather() result; chain failures become (None, False)"""
        if isinstance(result, ChainReadError):
            self._logger.warning(f"[DETECT] {label} failed on {self._network}: {result}")
            return None, False
        if isinstance(result, BaseException):
            raise result
        return result, True

    async def _detect_uncached(self, key: str) -> TokenCapabilities:
        self._logger.info(f"[DETECT] Detecting capabilities of {key} on {self._network}")
        token_result, permit2_result = await asyncio.gather(
            self._reader.get_code(key, self._network),
            self._reader.get_code(self._permit2_address, self._network),
            return_exceptions=True,
        )
        token_code, token_ok = self._settle("token getCode", token_result)
        permit2_code, permit2_ok = self._settle("Permit2 getCode", permit2_result)
        complete = token_ok and permit2_ok

        has_permit, eip3009_selector = scan_bytecode(token_code or b"")
        implementation = None

        if token_code and not has_permit and eip3009_selector is None:
            implementation, resolved_ok = await self._resolve_implementation(key)
            complete = complete and resolved_ok
            if implementation is not None:
                try:
                    impl_code = await self._reader.get_code(implementation, self._network)
                except ChainReadError as e:
                    self._logger.warning(f"[DETECT] implementation getCode failed: {e}")
                    impl_code = b""
                    complete = False
                impl_permit, impl_selector = scan_bytecode(impl_code)
                has_permit = has_permit or impl_permit
                eip3009_selector = eip3009_selector or impl_selector

        has_permit2 = bool(permit2_code)

        methods: list[PaymentMethod] = []
        if eip3009_selector is not None:
            methods.append(EIP3009)
        if has_permit:
            methods.append(PERMIT)
        if has_permit2:
            methods.extend([PERMIT2, PERMIT2_WITNESS])

        capabilities = TokenCapabilities(
            address=key,
            supportedMethods=methods,
            details=TokenCapabilityDetails(
                hasEIP3009=eip3009_selector is not None,
                hasPermit=has_permit,
                hasPermit2Approval=has_permit2,
                eip3009Selector=eip3009_selector,
                implementation=implementation,
                complete=complete,
            ),
        )
        self._logger.info(
            f"[DETECT] {key}: methods={methods}, implementation={implementation}, "
            f"complete={complete}"
        )
        return capabilities

    async def _resolve_implementation(self, key: str) -> tuple[str | None, bool]:
        """Resolve a proxy's implementation address.

        Reads the EIP-1967 slot, the EIP-1822 PROXIABLE slot and
        ``implementation()`` in parallel; the first non-zero address in that
        order wins.
        """
        slot_1967, slot_1822, accessor = await asyncio.gather(
            self._reader.get_storage_at(key, EIP1967_IMPLEMENTATION_SLOT, self._network),
            self._reader.get_storage_at(key, EIP1822_PROXIABLE_SLOT, self._network),
            self._reader.read_contract(key, IMPLEMENTATION_ABI, "implementation", [], self._network),
            return_exceptions=True,
        )
        word_1967, ok_1967 = self._settle("EIP-1967 slot read", slot_1967)
        word_1822, ok_1822 = self._settle("EIP-1822 slot read", slot_1822)

        # A contract without implementation() is simply not that kind of proxy
        if isinstance(accessor, ContractCallReverted):
            accessor, ok_accessor = None, True
        else:
            accessor, ok_accessor = self._settle("implementation() call", accessor)

        candidates = [
            address_from_word(word_1967) if word_1967 else None,
            address_from_word(word_1822) if word_1822 else None,
            checksum(accessor) if accessor and not is_zero_address(accessor) else None,
        ]
        implementation = next((c for c in candidates if c is not None), None)
        return implementation, ok_1967 and ok_1822 and ok_accessor
