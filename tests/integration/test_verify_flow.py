"""End-to-end verify and issue flows through the exchange."""

import logging

import pytest

from credbroker.connectors import ConnectorRegistry, DemoConnector
from credbroker.exceptions import ConnectorError, ConnectorNotFound, RequestNotFound
from credbroker.exchange import CredentialExchange
from credbroker.models import ResponseStatus
from credbroker.notifications import InMemoryNotificationChannel


@pytest.mark.asyncio
async def test_verify_flow_redirects_with_outcome(exchange, repository, channel, codec, seed, sign_token, callback_url):
    await seed(repository, attributes=("name",))

    received = await exchange.receive_verify_request(sign_token(callback_url=callback_url))
    verify_request = received["verifyRequest"]
    assert received["availableConnectors"] == ["demo"]
    request_id = verify_request.request_id
    assert request_id.startswith("verify:")

    session = await channel.register(request_id)

    challenge = await exchange.handle_verify_request("demo", request_id)
    assert challenge["attributes"] == ["name"]

    disclosed = await exchange.handle_verify_disclosure("demo", request_id, {"name": "Alice"})
    assert disclosed == {"name": "Alice"}

    message = await session.receive(timeout=1)
    assert message is not None
    assert message.request_id == request_id
    assert message.status == ResponseStatus.SUCCESS
    assert message.redirect_url.startswith(callback_url)

    outcome = codec.decode_outcome(message.redirect_url[len(callback_url):])
    assert outcome["requestId"] == request_id
    assert outcome["status"] == "success"
    assert outcome["connectorName"] == "demo"
    assert outcome["data"] == {"name": "Alice"}
    await session.close()


@pytest.mark.asyncio
async def test_verify_flow_failure_notifies_session(exchange, repository, channel, codec, seed, sign_token, callback_url):
    await seed(repository, attributes=("name", "birthdate"))
    received = await exchange.receive_verify_request(sign_token())
    request_id = received["verifyRequest"].request_id
    session = await channel.register(request_id)

    with pytest.raises(ConnectorError):
        await exchange.handle_verify_disclosure("demo", request_id, {"name": "Alice"})

    message = await session.receive(timeout=1)
    assert message.status == ResponseStatus.FAILURE
    outcome = codec.decode_outcome(message.redirect_url[len(callback_url):])
    assert outcome["status"] == "failure"
    assert outcome["data"]["error"] == "connector_failure"
    assert "birthdate" in outcome["data"]["message"]


@pytest.mark.asyncio
async def test_issue_flow(exchange, repository, channel, codec, seed, sign_token, callback_url):
    await seed(repository)
    received = await exchange.receive_issue_request(sign_token(data={"name": "Alice"}))
    request_id = received["issueRequest"].request_id
    assert received["availableConnectors"] == ["demo"]
    session = await channel.register(request_id)

    offer = await exchange.handle_issue_request("demo", request_id)
    assert offer["offer"] == {"name": "Alice"}

    await exchange.handle_issue_completion("demo", request_id, {"accepted": True})

    message = await session.receive(timeout=1)
    assert message.status == ResponseStatus.SUCCESS
    outcome = codec.decode_outcome(message.redirect_url[len(callback_url):])
    assert outcome["requestId"] == request_id
    assert outcome["data"] == {"issued": {"name": "Alice"}}


@pytest.mark.asyncio
async def test_flow_lookup_errors(exchange, repository, seed, sign_token):
    await seed(repository)
    received = await exchange.receive_verify_request(sign_token())
    request_id = received["verifyRequest"].request_id

    with pytest.raises(ConnectorNotFound):
        await exchange.handle_verify_request("missing", request_id)
    with pytest.raises(RequestNotFound):
        await exchange.handle_verify_request("demo", "verify:unknown")
    # A verify id does not address an issue request
    with pytest.raises(RequestNotFound):
        await exchange.handle_issue_request("demo", request_id)


@pytest.mark.asyncio
async def test_outcome_without_session_is_dropped(exchange, repository, channel, seed, sign_token):
    await seed(repository)
    received = await exchange.receive_verify_request(sign_token())
    request_id = received["verifyRequest"].request_id

    assert await exchange.handle_verify_disclosure("demo", request_id, {"name": "Alice"}) == {
        "name": "Alice"
    }
    assert channel.session_count(request_id) == 0


class UnreachableChannel(InMemoryNotificationChannel):
    async def publish(self, message):
        raise ConnectionError("redis down")


@pytest.fixture
def unreachable_exchange(broker):
    return CredentialExchange(broker, ConnectorRegistry([DemoConnector()]), UnreachableChannel())


@pytest.mark.asyncio
async def test_disclosure_succeeds_when_push_fails(unreachable_exchange, repository, seed, sign_token, caplog):
    await seed(repository)
    received = await unreachable_exchange.receive_verify_request(sign_token())
    request_id = received["verifyRequest"].request_id

    with caplog.at_level(logging.ERROR, logger="credbroker.exchange"):
        disclosed = await unreachable_exchange.handle_verify_disclosure(
            "demo", request_id, {"name": "Alice"}
        )

    assert disclosed == {"name": "Alice"}
    assert "Failed to push success redirect" in caplog.text


@pytest.mark.asyncio
async def test_connector_error_survives_push_failure(unreachable_exchange, repository, seed, sign_token):
    await seed(repository, attributes=("name", "birthdate"))
    received = await unreachable_exchange.receive_verify_request(sign_token())
    request_id = received["verifyRequest"].request_id

    with pytest.raises(ConnectorError):
        await unreachable_exchange.handle_verify_disclosure("demo", request_id, {"name": "Alice"})
