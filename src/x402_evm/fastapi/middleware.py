"""
FastAPI middleware for x402 payment processing
"""

import logging
from functools import wraps
from typing import Any, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from x402_evm.encoding import PAYMENT_RESPONSE_HEADER, encode_payment_payload, get_payment_header
from x402_evm.server import X402Server
from x402_evm.types import PaymentFailure, PaymentRequirements

logger = logging.getLogger(__name__)


class X402Middleware:
    """
    FastAPI middleware for automatic 402 payment handling.

    Usage:
        app = FastAPI()
        server = X402Server(facilitator, detectors={"eip155:8453": detector})
        middleware = X402Middleware(server)

        @app.get("/protected")
        @middleware.protect(
            asset="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            amount="10000",
            pay_to="0x...",
            network="eip155:8453",
        )
        async def protected_endpoint(request: Request):
            return {"data": "secret", "payer": request.state.x402["payer"]}
    """

    def __init__(self, server: X402Server) -> None:
        self._server = server

    def protect(
        self,
        asset: str,
        amount: int | str,
        pay_to: str,
        network: str,
        payment_type: str | None = None,
        resource: str | None = None,
        description: str = "",
        max_timeout_seconds: int = 3600,
    ) -> Callable:
        """
        Decorator to protect endpoints with payment requirements.

        Requirements are built on first use (so the payment type can be
        detected on chain) and reused afterwards. The decorated endpoint must
        take ``request: Request`` as its first parameter.

        Args:
            asset: Token contract address
            amount: Amount in the token's base units
            pay_to: Payment recipient address
            network: Network identifier
            payment_type: Pinned payment type; None detects it from the token
            resource: Resource URL (default: the request URL without its query)
            description: Resource description
            max_timeout_seconds: Payment validity period (seconds)

        Returns:
            Decorated function
        """
        if not asset or not pay_to or not network:
            raise ValueError("asset, pay_to, and network are required")

        requirements_cache: dict[str, PaymentRequirements] = {}

        async def get_requirements(request: Request) -> PaymentRequirements:
            # Query strings do not identify a distinct resource
            url = resource or str(request.url.replace(query="", fragment=""))
            if url not in requirements_cache:
                requirements_cache[url] = await self._server.create_requirements(
                    asset=asset,
                    amount=amount,
                    pay_to=pay_to,
                    network=network,
                    payment_type=payment_type,
                    resource=url,
                    description=description,
                    max_timeout_seconds=max_timeout_seconds,
                )
            return requirements_cache[url]

        def decorator(func: Callable) -> Callable:
            @wraps(func)
            async def wrapper(request: Request, *args: Any, **kwargs: Any) -> Response:
                requirements = await get_requirements(request)
                header = get_payment_header(request.headers)
                result = await self._server.process(header, requirements)

                if not result.success:
                    return self._payment_required(result.failure)

                request.state.x402 = {"payer": result.payer, "txHash": result.transaction}
                payment_response = encode_payment_payload(
                    {
                        "success": True,
                        "transaction": result.transaction,
                        "network": result.network,
                        "payer": result.payer,
                    }
                )

                response = await func(request, *args, **kwargs)
                if not isinstance(response, Response):
                    response = JSONResponse(content=response)
                response.headers[PAYMENT_RESPONSE_HEADER] = payment_response
                return response

            return wrapper

        return decorator

    def _payment_required(self, failure: PaymentFailure) -> JSONResponse:
        """Return 402 with the original requirement and the failure reason"""
        logger.info(f"Payment rejected at {failure.stage}: {failure.error_reason}")
        body = failure.to_payment_required().model_dump(by_alias=True, exclude_none=True)
        return JSONResponse(content=body, status_code=402)


def x402_protected(
    server: X402Server,
    asset: str,
    amount: int | str,
    pay_to: str,
    network: str,
    **kwargs: Any,
) -> Callable:
    """
    Convenience decorator to protect endpoints.

        @app.get("/paid")
        @x402_protected(server, asset="0x...", amount="1000", pay_to="0x...",
                        network="eip155:84532", payment_type="eip3009")
        async def paid(request: Request): ...
    """
    middleware = X402Middleware(server)
    return middleware.protect(
        asset=asset,
        amount=amount,
        pay_to=pay_to,
        network=network,
        **kwargs,
    )
