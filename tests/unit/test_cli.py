import asyncio
import json

import jwt
from typer.testing import CliRunner

from credbroker.cli import app
from credbroker.persistence import SQLiteBrokerRepository
from credbroker.security import BrokerKeyProvider

SECRET = "s1-shared-secret-of-organization-one"


def test_token_sign_mints_request_token():
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["token", "sign", "org1", SECRET, "passport", "https://example.com/cb?token=", "--data", '{"name": "Alice"}'],
    )
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"

    claims = jwt.decode(result.stdout.strip(), SECRET, algorithms=["HS256"])
    assert claims["iss"] == "org1"
    assert claims["type"] == "passport"
    assert claims["callbackUrl"] == "https://example.com/cb?token="
    assert claims["data"] == {"name": "Alice"}
    assert "iat" in claims


def test_org_and_type_add_persist(tmp_path, monkeypatch):
    db_path = tmp_path / "broker.db"
    monkeypatch.setenv("CREDBROKER_DATABASE_URL", f"sqlite://{db_path}")
    monkeypatch.setenv("CREDBROKER_CONFIG", str(tmp_path / "missing.yaml"))
    runner = CliRunner()

    result = runner.invoke(app, ["org", "add", "Example Bank", "--uuid", "org1", "--secret", SECRET])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "org1" in result.stdout
    assert SECRET in result.stdout

    result = runner.invoke(
        app, ["type", "add", "org1", "passport", "--descriptor", 'demo={"attributes": ["name"]}']
    )
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"

    duplicate = runner.invoke(app, ["org", "add", "Example Bank", "--uuid", "org1"])
    assert duplicate.exit_code == 1

    repo = SQLiteBrokerRepository(db_path)
    organization = asyncio.run(repo.get_organization("org1"))
    assert organization.name == "Example Bank"
    passport = asyncio.run(repo.find_credential_type("org1", "passport"))
    assert passport.descriptor("demo") == {"attributes": ["name"]}
    repo.close()


def test_type_add_rejects_bad_descriptor(tmp_path, monkeypatch):
    monkeypatch.setenv("CREDBROKER_DATABASE_URL", f"sqlite://{tmp_path / 'broker.db'}")
    runner = CliRunner()

    result = runner.invoke(app, ["type", "add", "org1", "passport", "--descriptor", "demo"])
    assert result.exit_code == 1
    assert "protocol=JSON" in result.stdout


def test_keys_generate_and_jwks(tmp_path):
    key_path = tmp_path / "signing.pem"
    runner = CliRunner()

    result = runner.invoke(app, ["keys", "generate", str(key_path)])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert key_path.exists()

    again = runner.invoke(app, ["keys", "generate", str(key_path)])
    assert again.exit_code == 1

    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"signing:\n  key_path: {key_path}\n")
    result = runner.invoke(app, ["keys", "jwks", "--config", str(config_path)])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"

    jwks = json.loads(result.stdout)
    assert jwks["keys"][0]["kid"] == BrokerKeyProvider.from_file(key_path).kid


def test_keys_jwks_requires_key_path(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("signing: {}\n")
    runner = CliRunner()

    result = runner.invoke(app, ["keys", "jwks", "--config", str(config_path)])
    assert result.exit_code == 1
