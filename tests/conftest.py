import time

import jwt
import pytest

from credbroker.broker import RequestBroker
from credbroker.connectors import ConnectorRegistry, DemoConnector
from credbroker.exchange import CredentialExchange
from credbroker.models import CredentialType, Organization
from credbroker.notifications import InMemoryNotificationChannel
from credbroker.persistence import InMemoryBrokerRepository
from credbroker.security import BrokerKeyProvider, TokenCodec

ORG1 = "org1"
ORG2 = "org2"
# HMAC keys of at least 32 bytes
SECRET_1 = "s1-shared-secret-of-organization-one"
SECRET_2 = "s2-shared-secret-of-organization-two"
CALLBACK_URL = "https://example.com/cb?token="


@pytest.fixture
def key_provider():
    return BrokerKeyProvider.generate()


@pytest.fixture
def codec(key_provider):
    return TokenCodec(key_provider)


@pytest.fixture
def repository():
    return InMemoryBrokerRepository()


@pytest.fixture
def broker(repository, codec):
    return RequestBroker(repository, repository, codec)


@pytest.fixture
def channel():
    return InMemoryNotificationChannel()


@pytest.fixture
def exchange(broker, channel):
    return CredentialExchange(broker, ConnectorRegistry([DemoConnector()]), channel)


@pytest.fixture
def sign_token():
    """Return a function minting organization-signed request tokens."""

    def _sign(
        iss=ORG1,
        secret=SECRET_1,
        type_name="passport",
        callback_url=CALLBACK_URL,
        iat=None,
        **claims,
    ):
        payload = {
            "iss": iss,
            "iat": int(time.time()) if iat is None else iat,
            "type": type_name,
            "callbackUrl": callback_url,
        }
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _sign


@pytest.fixture
def seed():
    """Return a coroutine function registering an organization and its types."""

    async def _seed(repo, org_uuid=ORG1, secret=SECRET_1, types=("passport",), attributes=("name",)):
        organization = Organization(uuid=org_uuid, name=org_uuid, shared_secret=secret)
        await repo.add_organization(organization)
        for type_name in types:
            await repo.add_credential_type(
                CredentialType(
                    organization=org_uuid,
                    type=type_name,
                    descriptors={"demo": {"attributes": list(attributes)}},
                )
            )
        return organization

    return _seed


@pytest.fixture
def org_secrets():
    return {ORG1: SECRET_1, ORG2: SECRET_2}


@pytest.fixture
def callback_url():
    return CALLBACK_URL
