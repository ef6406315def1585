"""HTTP and WebSocket API tests."""

import asyncio
import time

import jwt
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from credbroker.api import WS_REQUEST_NOT_FOUND, create_app


@pytest.fixture
def client(exchange, repository, seed):
    asyncio.run(seed(repository))
    with TestClient(create_app(exchange)) as test_client:
        yield test_client


def test_receive_verify_request(client, sign_token, callback_url):
    response = client.get("/api/verify", params={"token": sign_token()})
    assert response.status_code == 200

    body = response.json()
    assert body["availableConnectors"] == ["demo"]
    verify_request = body["verifyRequest"]
    assert verify_request["requestId"].startswith("verify:")
    assert verify_request["callbackUrl"] == callback_url
    assert verify_request["requestor"]["uuid"] == "org1"
    assert "sharedSecret" not in verify_request["requestor"]


@pytest.mark.parametrize(
    "token_kwargs, error",
    [
        ({"secret": "some-other-organizations-secret!!"}, "invalid_request_token"),
        ({"iat": 0}, "invalid_request_token"),
        ({"iss": "org-unknown"}, "unknown_issuer"),
    ],
)
def test_rejected_tokens_are_unauthorized(client, sign_token, token_kwargs, error):
    response = client.get("/api/verify", params={"token": sign_token(**token_kwargs)})
    assert response.status_code == 401
    assert response.json() == {
        "error": error,
        "message": "Could not authenticate request token",
    }


def test_malformed_token_is_unauthorized(client):
    response = client.get("/api/issue", params={"token": "not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["error"] == "malformed_token"


def test_unsupported_critical_header_is_unauthorized(client, org_secrets, callback_url):
    token = jwt.encode(
        {"iss": "org1", "iat": int(time.time()), "type": "passport", "callbackUrl": callback_url},
        org_secrets["org1"],
        algorithm="HS256",
        headers={"crit": ["foo"], "foo": 1},
    )
    response = client.get("/api/verify", params={"token": token})
    assert response.status_code == 401
    assert response.json()["error"] == "malformed_token"


def test_unknown_credential_type(client, sign_token):
    response = client.get("/api/verify", params={"token": sign_token(type_name="diploma")})
    assert response.status_code == 400
    assert response.json()["error"] == "unknown_credential_type"


def test_verify_endpoints(client, sign_token):
    request_id = client.get("/api/verify", params={"token": sign_token()}).json()[
        "verifyRequest"
    ]["requestId"]

    response = client.get("/api/verify/demo", params={"verifyRequestId": request_id})
    assert response.status_code == 200
    assert response.json()["attributes"] == ["name"]

    response = client.get("/api/verify/missing", params={"verifyRequestId": request_id})
    assert response.status_code == 404
    assert response.json()["error"] == "connector_not_found"

    response = client.get("/api/verify/demo", params={"verifyRequestId": "verify:unknown"})
    assert response.status_code == 404
    assert response.json()["error"] == "request_not_found"

    response = client.post(
        "/api/verify/demo/disclose",
        params={"verifyRequestId": request_id},
        json={"unrelated": "value"},
    )
    assert response.status_code == 422
    assert response.json()["error"] == "connector_failure"

    response = client.post(
        "/api/verify/demo/disclose",
        params={"verifyRequestId": request_id},
        json={"name": "Alice"},
    )
    assert response.status_code == 200
    assert response.json() == {"status": "success"}


def test_issue_endpoints(client, sign_token):
    body = client.get("/api/issue", params={"token": sign_token(data={"name": "Alice"})}).json()
    request_id = body["issueRequest"]["requestId"]
    assert body["issueRequest"]["data"] == {"name": "Alice"}

    response = client.get("/api/issue/demo", params={"issueRequestId": request_id})
    assert response.status_code == 200
    assert response.json()["offer"] == {"name": "Alice"}

    response = client.post(
        "/api/issue/demo/complete", params={"issueRequestId": request_id}, json={"accepted": True}
    )
    assert response.status_code == 200


def test_jwks_verifies_outcome(client, exchange):
    jwks = client.get("/.well-known/jwks.json").json()
    assert jwks["keys"][0]["kid"] == exchange.broker.key_provider.kid


def test_websocket_receives_redirect(client, exchange, sign_token, callback_url):
    request_id = client.get("/api/verify", params={"token": sign_token()}).json()[
        "verifyRequest"
    ]["requestId"]

    with client.websocket_connect(f"/ws/requests/{request_id}") as websocket:
        response = client.post(
            "/api/verify/demo/disclose",
            params={"verifyRequestId": request_id},
            json={"name": "Alice"},
        )
        assert response.status_code == 200

        message = websocket.receive_json()
        assert message["requestId"] == request_id
        assert message["status"] == "success"
        assert message["redirectUrl"].startswith(callback_url)

        outcome = exchange.broker._codec.decode_outcome(message["redirectUrl"][len(callback_url):])
        assert outcome["data"] == {"name": "Alice"}


def test_websocket_unknown_request(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/requests/verify:unknown") as websocket:
            websocket.receive_json()
    assert exc_info.value.code == WS_REQUEST_NOT_FOUND
