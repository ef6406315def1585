"""A protocol-free connector for demos and integration tests.

Credential types opt in with a ``"demo"`` descriptor listing the attributes to
disclose, e.g. ``{"demo": {"attributes": ["name"]}}``.
"""

from __future__ import annotations

from typing import Any, Dict

from ..exceptions import ConnectorError
from ..models import CredentialType, IssueRequest, RequestKind, VerifyRequest
from .base import ConnectorService


def _attributes(credential_type: CredentialType) -> list[str]:
    descriptor = credential_type.descriptor(DemoConnector.protocol) or {}
    return list(descriptor.get("attributes", []))


class DemoConnector(ConnectorService):
    name = "demo"
    protocol = "demo"
    kinds = frozenset({RequestKind.ISSUE, RequestKind.VERIFY})

    async def handle_verify_credential_request(self, request: VerifyRequest) -> Dict[str, Any]:
        return {
            "requestId": request.request_id,
            "credentialType": request.type.type,
            "attributes": _attributes(request.type),
        }

    async def handle_verify_credential_disclosure(
        self, request: VerifyRequest, body: Any
    ) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise ConnectorError("Disclosure must be a JSON object")
        disclosed = body.get("attributes", body)
        if not isinstance(disclosed, dict):
            raise ConnectorError("Disclosed attributes must be a JSON object")

        requested = _attributes(request.type)
        if not requested:
            return dict(disclosed)
        missing = [name for name in requested if name not in disclosed]
        if missing:
            raise ConnectorError(f"Missing disclosed attributes: {', '.join(missing)}")
        return {name: disclosed[name] for name in requested}

    async def handle_issue_credential_request(self, request: IssueRequest) -> Dict[str, Any]:
        return {
            "requestId": request.request_id,
            "credentialType": request.type.type,
            "offer": request.data,
        }

    async def handle_issue_credential_completion(
        self, request: IssueRequest, body: Any
    ) -> Dict[str, Any]:
        if isinstance(body, dict) and body.get("accepted") is False:
            raise ConnectorError("Credential offer was declined")
        return {"issued": request.data}
