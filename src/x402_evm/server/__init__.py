"""
x402 Server SDK
"""

from x402_evm.server.x402_server import X402Server

__all__ = ["X402Server"]
