"""HTTP and WebSocket surface of the broker."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Body, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .exceptions import AUTHENTICATION_KINDS, BrokerError, ErrorKind
from .exchange import CredentialExchange
from .models import ResponseStatus

logger = logging.getLogger(__name__)

_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.UNKNOWN_CREDENTIAL_TYPE: 400,
    ErrorKind.REQUEST_NOT_FOUND: 404,
    ErrorKind.CONNECTOR_NOT_FOUND: 404,
    ErrorKind.CONNECTOR_UNSUPPORTED: 400,
    ErrorKind.CONNECTOR_FAILURE: 422,
}

# Close code sent to sockets opened for an unknown request id
WS_REQUEST_NOT_FOUND = 4404


def _error_response(exc: BrokerError) -> JSONResponse:
    if exc.kind in AUTHENTICATION_KINDS:
        # Signature and freshness failures share one public kind.
        kind = exc.kind
        if kind in (ErrorKind.INVALID_SIGNATURE, ErrorKind.EXPIRED):
            kind = ErrorKind.INVALID_REQUEST_TOKEN
        return JSONResponse(
            status_code=401,
            content={"error": kind.value, "message": "Could not authenticate request token"},
        )
    return JSONResponse(
        status_code=_STATUS_CODES.get(exc.kind, 400),
        content={"error": exc.kind.value, "message": str(exc)},
    )


def create_app(exchange: CredentialExchange) -> FastAPI:
    """Build the FastAPI application serving ``exchange``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await exchange.channel.connect()
        try:
            yield
        finally:
            await exchange.channel.disconnect()

    app = FastAPI(title="credbroker", lifespan=lifespan)
    app.state.exchange = exchange

    @app.exception_handler(BrokerError)
    async def broker_error_handler(request: Request, exc: BrokerError) -> JSONResponse:
        return _error_response(exc)

    @app.get("/.well-known/jwks.json")
    async def jwks() -> Dict[str, Any]:
        return exchange.broker.key_provider.jwks()

    # ------------------------------------------------------------------
    # Verify
    @app.get("/api/verify")
    async def receive_verify_request(token: str = Query(...)):
        return await exchange.receive_verify_request(token)

    @app.get("/api/verify/{connector}")
    async def handle_verify_request(
        connector: str, verify_request_id: str = Query(..., alias="verifyRequestId")
    ):
        return await exchange.handle_verify_request(connector, verify_request_id)

    @app.post("/api/verify/{connector}/disclose")
    async def handle_verify_disclosure(
        connector: str,
        verify_request_id: str = Query(..., alias="verifyRequestId"),
        body: Any = Body(None),
    ):
        await exchange.handle_verify_disclosure(connector, verify_request_id, body)
        return {"status": ResponseStatus.SUCCESS.value}

    # ------------------------------------------------------------------
    # Issue
    @app.get("/api/issue")
    async def receive_issue_request(token: str = Query(...)):
        return await exchange.receive_issue_request(token)

    @app.get("/api/issue/{connector}")
    async def handle_issue_request(
        connector: str, issue_request_id: str = Query(..., alias="issueRequestId")
    ):
        return await exchange.handle_issue_request(connector, issue_request_id)

    @app.post("/api/issue/{connector}/complete")
    async def handle_issue_completion(
        connector: str,
        issue_request_id: str = Query(..., alias="issueRequestId"),
        body: Any = Body(None),
    ):
        await exchange.handle_issue_completion(connector, issue_request_id, body)
        return {"status": ResponseStatus.SUCCESS.value}

    # ------------------------------------------------------------------
    # Outcome push
    @app.websocket("/ws/requests/{request_id}")
    async def request_updates(websocket: WebSocket, request_id: str) -> None:
        if await exchange.broker.resolve_by_request_id(request_id) is None:
            await websocket.close(code=WS_REQUEST_NOT_FOUND)
            return

        session = await exchange.channel.register(request_id)
        try:
            await websocket.accept()
            waiter = asyncio.ensure_future(session.receive())
            listener = asyncio.ensure_future(websocket.receive())
            done, pending = await asyncio.wait(
                {waiter, listener}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if waiter in done and waiter.result() is not None:
                await websocket.send_json(waiter.result().to_wire())
                await websocket.close()
            else:
                logger.debug(f"Client left before outcome of {request_id}")
        except WebSocketDisconnect:
            logger.debug(f"WebSocket for {request_id} disconnected")
        finally:
            await session.close()

    return app
