"""Command line interface for running and administering credbroker."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
import uuid
from pathlib import Path
from typing import List, Optional

import jwt
import typer

from credbroker.config import load_config
from credbroker.models import CredentialType, Organization
from credbroker.persistence import BrokerRepository, InMemoryBrokerRepository, get_repository
from credbroker.security import BrokerKeyProvider

app = typer.Typer(help="CLI for the credbroker request broker")

# Command groups
org_app = typer.Typer(help="Commands for managing organizations")
type_app = typer.Typer(help="Commands for managing credential types")
token_app = typer.Typer(help="Commands for minting request tokens")
keys_app = typer.Typer(help="Commands for managing the broker signing key")

app.add_typer(org_app, name="org")
app.add_typer(type_app, name="type")
app.add_typer(token_app, name="token")
app.add_typer(keys_app, name="keys")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """credbroker CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _admin_repository() -> BrokerRepository:
    repo = get_repository()
    if isinstance(repo, InMemoryBrokerRepository):
        typer.secho(
            "No database configured; changes will not outlive this command",
            fg=typer.colors.YELLOW,
        )
    return repo


@app.command("serve")
def serve(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """
    Run the HTTP and WebSocket API.

    Example:
        credbroker serve --config ./config.yaml --port 8080
    """
    import uvicorn

    from credbroker.api import create_app
    from credbroker.exchange import create_exchange

    config = load_config(config_path)
    application = create_app(create_exchange(config))
    uvicorn.run(
        application,
        host=host or config.server.host,
        port=port or config.server.port,
    )


@org_app.command("add")
def org_add(
    name: str,
    secret: Optional[str] = typer.Option(None, help="Shared secret (generated if omitted)"),
    org_uuid: Optional[str] = typer.Option(None, "--uuid", help="Public id (generated if omitted)"),
) -> None:
    """
    Register an organization and print its public id and shared secret.

    Example:
        credbroker org add "Example Bank"
    """
    organization = Organization(
        uuid=org_uuid or str(uuid.uuid4()),
        name=name,
        shared_secret=secret or secrets.token_urlsafe(32),
    )
    repo = _admin_repository()
    try:
        asyncio.run(repo.add_organization(organization))
    except ValueError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"uuid\t{organization.uuid}")
    typer.echo(f"secret\t{organization.shared_secret.get_secret_value()}")


@type_app.command("add")
def type_add(
    org_uuid: str,
    type_name: str,
    descriptor: List[str] = typer.Option(
        [], help="Protocol descriptor as protocol=JSON, may be repeated"
    ),
) -> None:
    """
    Register a credential type for an organization.

    Example:
        credbroker type add 3f2c... passport --descriptor 'demo={"attributes": ["name"]}'
    """
    descriptors = {}
    for item in descriptor:
        protocol, sep, raw = item.partition("=")
        if not sep:
            typer.secho(f"Descriptor must look like protocol=JSON: {item}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        descriptors[protocol] = json.loads(raw) if raw else {}

    repo = _admin_repository()
    try:
        asyncio.run(
            repo.add_credential_type(
                CredentialType(organization=org_uuid, type=type_name, descriptors=descriptors)
            )
        )
    except ValueError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Registered {type_name} for {org_uuid}")


@token_app.command("sign")
def token_sign(
    org_uuid: str,
    secret: str,
    type_name: str,
    callback_url: str,
    data: Optional[str] = typer.Option(None, help="JSON payload for issue requests"),
) -> None:
    """
    Mint a request token the way a requesting organization would.

    Example:
        credbroker token sign 3f2c... s3cret passport https://example.com/cb?token=
    """
    payload = {
        "iss": org_uuid,
        "iat": int(time.time()),
        "type": type_name,
        "callbackUrl": callback_url,
    }
    if data is not None:
        payload["data"] = json.loads(data)
    typer.echo(jwt.encode(payload, secret, algorithm="HS256"))


@keys_app.command("generate")
def keys_generate(path: Path) -> None:
    """Write a new Ed25519 signing key in PEM format to ``path``."""
    if path.exists():
        typer.secho(f"{path} already exists", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    path.write_bytes(BrokerKeyProvider.generate().private_pem())
    typer.echo(f"Wrote signing key to {path}")


@keys_app.command("jwks")
def keys_jwks(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """Print the public JWKS for the configured signing key."""
    config = load_config(config_path)
    if not config.signing.key_path:
        typer.secho("No signing.key_path configured", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    provider = BrokerKeyProvider.from_config(config.signing)
    typer.echo(json.dumps(provider.jwks(), indent=2))


if __name__ == "__main__":
    app()
