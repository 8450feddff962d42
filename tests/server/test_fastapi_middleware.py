"""
Tests for the FastAPI payment middleware.
"""

import json

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from conftest import NETWORK, PAY_TO, PAYER, TOKEN, permit_payload
from x402_evm.encoding import PAYMENT_RESPONSE_HEADER, decode_base64, encode_payment_payload
from x402_evm.facilitator import X402Facilitator
from x402_evm.fastapi import X402Middleware, x402_protected
from x402_evm.mechanisms.evm.exact import ExactEvmFacilitatorMechanism
from x402_evm.server import X402Server
from x402_evm.tokens import TokenDetector


@pytest.fixture
def server(token_chain):
    facilitator = X402Facilitator().register([NETWORK], ExactEvmFacilitatorMechanism(token_chain))
    return X402Server(facilitator, detectors={NETWORK: TokenDetector(token_chain, NETWORK)})


@pytest.fixture
def client(server):
    app = FastAPI()
    middleware = X402Middleware(server)

    @app.get("/paid")
    @middleware.protect(asset=TOKEN, amount="1000", pay_to=PAY_TO, network=NETWORK)
    async def paid(request: Request):
        return {"data": "secret", "payer": request.state.x402["payer"]}

    @app.get("/pinned")
    @x402_protected(
        server,
        asset=TOKEN,
        amount="1000",
        pay_to=PAY_TO,
        network=NETWORK,
        payment_type="permit2",
        resource="https://api.example.com/pinned",
    )
    async def pinned(request: Request):
        return {"data": "pinned"}

    return TestClient(app)


def test_missing_payment(client):
    response = client.get("/paid")

    assert response.status_code == 402
    body = response.json()
    assert body["x402Version"] == 1
    assert body["error"] == "missing_payment_header"
    [accepted] = body["accepts"]
    assert accepted["payTo"] == PAY_TO
    assert accepted["asset"] == TOKEN
    assert accepted["maxAmountRequired"] == "1000"
    assert accepted["paymentType"] == "permit"
    assert accepted["resource"] == "http://testserver/paid"
    assert accepted["extra"]["name"] == "Test Token"


def test_query_string_shares_requirements(client, token_chain):
    first = client.get("/paid?page=1")
    reads = token_chain.read_count()
    second = client.get("/paid?page=2")

    assert first.json()["accepts"] == second.json()["accepts"]
    assert first.json()["accepts"][0]["resource"] == "http://testserver/paid"
    assert token_chain.read_count() == reads
    assert token_chain.read_count("name") == 1


def test_paid_request(client, token_chain):
    response = client.get("/paid", headers={"X-PAYMENT": encode_payment_payload(permit_payload())})

    assert response.status_code == 200
    assert response.json() == {"data": "secret", "payer": PAYER}
    settlement = json.loads(decode_base64(response.headers[PAYMENT_RESPONSE_HEADER]))
    assert settlement["success"] is True
    assert settlement["payer"] == PAYER
    assert settlement["network"] == NETWORK
    assert settlement["transaction"].startswith("0x")
    assert len(token_chain.writes) == 1


def test_alternate_header_name(client):
    header = encode_payment_payload(permit_payload())
    response = client.get("/paid", headers={"X-402-Payment": header})
    assert response.status_code == 200


def test_rejected_payment(client, token_chain):
    response = client.get(
        "/paid", headers={"X-PAYMENT": encode_payment_payload(permit_payload(value=1))}
    )

    assert response.status_code == 402
    assert response.json()["error"] == "invalid_exact_payload_value"
    assert PAYMENT_RESPONSE_HEADER not in response.headers
    assert token_chain.writes == []


def test_replayed_payment(client):
    header = {"X-PAYMENT": encode_payment_payload(permit_payload())}

    assert client.get("/paid", headers=header).status_code == 200
    response = client.get("/paid", headers=header)

    assert response.status_code == 402
    assert response.json()["error"] == "transaction_failed"


def test_pinned_payment_type_and_resource(client):
    response = client.get("/pinned")

    assert response.status_code == 402
    [accepted] = response.json()["accepts"]
    assert accepted["paymentType"] == "permit2"
    assert accepted["resource"] == "https://api.example.com/pinned"


def test_protect_requires_destination(server):
    with pytest.raises(ValueError):
        X402Middleware(server).protect(asset=TOKEN, amount="1", pay_to="", network=NETWORK)
