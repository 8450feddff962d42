"""
Tests for TokenDetector.
"""

import asyncio

import pytest

from conftest import NETWORK, PERMIT2, TOKEN, FakeChain, bytecode
from x402_evm.abi import (
    EIP1822_PROXIABLE_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    EIP3009_BYTES_SELECTOR,
    EIP3009_VRS_SELECTOR,
    PERMIT_SELECTOR,
)
from x402_evm.signers.facilitator import EvmChainReader
from x402_evm.tokens import TokenDetector, get_recommended_payment_method, scan_bytecode
from x402_evm.types import TokenCapabilities

IMPLEMENTATION = "0x" + "c3" * 20
OTHER_IMPLEMENTATION = "0x" + "d4" * 20


def _word(address: str) -> bytes:
    return b"\x00" * 12 + bytes.fromhex(address[2:])


class GatedChain(FakeChain):
    """Holds getCode answers until the gate opens"""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def get_code(self, address: str, network: str) -> bytes:
        code = await super().get_code(address, network)
        await self.gate.wait()
        return code


def _capabilities(*methods: str) -> TokenCapabilities:
    return TokenCapabilities(
        address=TOKEN,
        supportedMethods=list(methods),
        details={"hasEIP3009": False, "hasPermit": False, "hasPermit2Approval": False},
    )


@pytest.fixture
def detector(chain):
    return TokenDetector(chain, NETWORK)


class TestScanBytecode:
    def test_permit(self):
        assert scan_bytecode(bytecode(PERMIT_SELECTOR)) == (True, None)

    def test_prefers_vrs_selector(self):
        code = bytecode(EIP3009_BYTES_SELECTOR, EIP3009_VRS_SELECTOR)
        assert scan_bytecode(code) == (False, EIP3009_VRS_SELECTOR)

    def test_bytes_selector_only(self):
        assert scan_bytecode(bytecode(EIP3009_BYTES_SELECTOR)) == (False, EIP3009_BYTES_SELECTOR)

    def test_empty(self):
        assert scan_bytecode(b"") == (False, None)


class TestDetect:
    @pytest.mark.anyio
    async def test_direct_capabilities_in_priority_order(self, chain, detector):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR, EIP3009_VRS_SELECTOR))
        chain.deploy(PERMIT2, bytecode("30f28b7a"))

        result = await detector.detect(TOKEN)

        assert result.address == TOKEN.lower()
        assert result.supported_methods == ["eip3009", "permit", "permit2", "permit2-witness"]
        assert result.details.has_eip3009 is True
        assert result.details.eip3009_selector == EIP3009_VRS_SELECTOR
        assert result.details.has_permit2_approval is True
        assert result.details.complete is True
        # Direct hit: no proxy resolution
        assert chain.read_count("get_storage_at") == 0

    @pytest.mark.anyio
    async def test_permit2_absent(self, chain, detector):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))

        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["permit"]
        assert result.details.has_permit2_approval is False

    @pytest.mark.anyio
    async def test_permit2_available_for_plain_token(self, chain, detector):
        chain.deploy(TOKEN, bytecode("a9059cbb"))
        chain.deploy(PERMIT2, bytecode("30f28b7a"))

        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["permit2", "permit2-witness"]
        assert detector.recommend(result) == "permit2"

    @pytest.mark.anyio
    async def test_eoa_is_not_resolved_as_proxy(self, chain, detector):
        result = await detector.detect(TOKEN)

        assert result.supported_methods == []
        assert chain.read_count("get_storage_at") == 0
        assert chain.read_count("implementation") == 0

    @pytest.mark.anyio
    async def test_idempotent_and_cached(self, chain, detector):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))

        first = await detector.detect(TOKEN)
        reads = chain.read_count()
        second = await detector.detect(TOKEN.upper().replace("0X", "0x"))

        assert second is first
        assert chain.read_count() == reads

    @pytest.mark.anyio
    async def test_clear_cache(self, chain, detector):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))
        await detector.detect(TOKEN)
        reads = chain.read_count()

        detector.clear_cache(TOKEN)
        await detector.detect(TOKEN)
        assert chain.read_count() > reads

        reads = chain.read_count()
        detector.clear_cache()
        await detector.detect(TOKEN)
        assert chain.read_count() > reads

    @pytest.mark.anyio
    async def test_concurrent_detections_share_one_lookup(self, chain, detector):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))

        results = await asyncio.gather(*(detector.detect(TOKEN) for _ in range(5)))

        assert all(r is results[0] for r in results)
        # One getCode for the token and one for Permit2
        assert chain.read_count("get_code") == 2

    @pytest.mark.anyio
    async def test_separate_instances_do_not_share_cache(self, chain):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))
        await TokenDetector(chain, NETWORK).detect(TOKEN)
        reads = chain.read_count()

        await TokenDetector(chain, NETWORK).detect(TOKEN)
        assert chain.read_count() > reads

    @pytest.mark.anyio
    async def test_clear_during_detection_discards_stale_result(self):
        chain = GatedChain()
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))
        detector = TokenDetector(chain, NETWORK)

        pending = asyncio.ensure_future(detector.detect(TOKEN))
        while chain.read_count("get_code") < 2:
            await asyncio.sleep(0)
        detector.clear_cache(TOKEN)
        chain.deploy(TOKEN, bytecode(EIP3009_VRS_SELECTOR))
        chain.gate.set()

        stale = await pending
        fresh = await detector.detect(TOKEN)

        assert stale.supported_methods == ["permit"]
        assert fresh.supported_methods == ["eip3009"]
        assert await detector.detect(TOKEN) is fresh


class TestProxyResolution:
    @pytest.mark.anyio
    async def test_eip1967_proxy(self, chain, detector):
        chain.deploy(TOKEN, bytecode("5c60da1b"))
        chain.deploy(IMPLEMENTATION, bytecode(EIP3009_VRS_SELECTOR, PERMIT_SELECTOR))
        chain.storage[(TOKEN.lower(), EIP1967_IMPLEMENTATION_SLOT)] = _word(IMPLEMENTATION)

        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["eip3009", "permit"]
        assert result.details.implementation.lower() == IMPLEMENTATION
        assert result.details.complete is True

    @pytest.mark.anyio
    async def test_eip1822_proxy(self, chain, detector):
        chain.deploy(TOKEN, bytecode("5c60da1b"))
        chain.deploy(IMPLEMENTATION, bytecode(PERMIT_SELECTOR))
        chain.storage[(TOKEN.lower(), EIP1822_PROXIABLE_SLOT)] = _word(IMPLEMENTATION)

        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["permit"]

    @pytest.mark.anyio
    async def test_implementation_accessor(self, chain, detector):
        chain.deploy(TOKEN, bytecode("5c60da1b"), implementation=IMPLEMENTATION)
        chain.deploy(IMPLEMENTATION, bytecode(EIP3009_BYTES_SELECTOR))

        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["eip3009"]
        assert result.details.eip3009_selector == EIP3009_BYTES_SELECTOR

    @pytest.mark.anyio
    async def test_eip1967_slot_takes_priority(self, chain, detector):
        chain.deploy(TOKEN, bytecode("5c60da1b"), implementation=OTHER_IMPLEMENTATION)
        chain.deploy(IMPLEMENTATION, bytecode(PERMIT_SELECTOR))
        chain.deploy(OTHER_IMPLEMENTATION, bytecode(EIP3009_VRS_SELECTOR))
        chain.storage[(TOKEN.lower(), EIP1967_IMPLEMENTATION_SLOT)] = _word(IMPLEMENTATION)

        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["permit"]

    @pytest.mark.anyio
    async def test_non_proxy_without_capabilities(self, chain, detector):
        chain.deploy(TOKEN, bytecode("a9059cbb"))

        result = await detector.detect(TOKEN)

        assert result.supported_methods == []
        assert result.details.implementation is None
        # Reverting implementation() does not make the result incomplete
        assert result.details.complete is True


class TestDegradedDetection:
    @pytest.mark.anyio
    async def test_unreachable_token_is_reported_not_raised(self, chain, detector):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))
        chain.deploy(PERMIT2, bytecode("30f28b7a"))
        chain.failing.add(TOKEN.lower())

        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["permit2", "permit2-witness"]
        assert result.details.complete is False

    @pytest.mark.anyio
    async def test_incomplete_result_is_not_cached(self, chain, detector):
        chain.deploy(TOKEN, bytecode(PERMIT_SELECTOR))
        chain.failing.add(TOKEN.lower())
        await detector.detect(TOKEN)

        chain.failing.clear()
        result = await detector.detect(TOKEN)

        assert result.supported_methods == ["permit"]
        assert result.details.complete is True

    @pytest.mark.anyio
    async def test_unreachable_implementation(self, chain, detector):
        chain.deploy(TOKEN, bytecode("5c60da1b"))
        chain.storage[(TOKEN.lower(), EIP1967_IMPLEMENTATION_SLOT)] = _word(IMPLEMENTATION)
        chain.failing.add(IMPLEMENTATION)

        result = await detector.detect(TOKEN)

        assert result.supported_methods == []
        assert result.details.complete is False

    @pytest.mark.anyio
    async def test_network_without_rpc_endpoint(self, monkeypatch):
        monkeypatch.delenv("X402_RPC_URL_5", raising=False)

        result = await TokenDetector(EvmChainReader(), "goerli").detect(TOKEN)

        assert result.supported_methods == []
        assert result.details.complete is False

class TestRecommend:
    def test_eip3009_over_permit(self):
        assert get_recommended_payment_method(_capabilities("eip3009", "permit")) == "eip3009"

    def test_permit_over_permit2(self):
        assert get_recommended_payment_method(_capabilities("permit", "permit2")) == "permit"

    def test_permit2_only(self):
        assert get_recommended_payment_method(_capabilities("permit2")) == "permit2"

    def test_witness_maps_to_permit2(self):
        assert get_recommended_payment_method(_capabilities("permit2-witness")) == "permit2"

    def test_none(self):
        assert get_recommended_payment_method(_capabilities()) is None

    def test_detector_delegates(self):
        detector = TokenDetector(FakeChain(), NETWORK)
        assert detector.recommend(_capabilities("permit", "eip3009")) == "eip3009"
