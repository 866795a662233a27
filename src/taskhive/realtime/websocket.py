"""WebSocket endpoint for realtime project rooms.

Each client connects once to /ws?token=JWT (or sends the token as an
`Authorization: Bearer` handshake header). The handler:
1. Authenticates the handshake via the gateway. On failure it accepts the
   transport and closes at once with 4001, without a greeting
2. Accepts and greets the connection (`connected {ok: true}`)
3. Runs two tasks until either side ends:
   - sender: drains the connection's outbox to the socket
   - receiver: feeds client frames (`project:join`, `ping`) to the gateway
4. On exit, removes the connection from every room

One long-lived connection per browser tab, joined to any number of rooms.
"""

import asyncio

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from taskhive.auth.dependencies import bearer_token
from taskhive.config import settings
from taskhive.errors import Unauthenticated
from taskhive.realtime.gateway import Connection, ConnectionGateway

logger = structlog.get_logger()
router = APIRouter()

REJECT_CODE = 4001


@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket):
    gateway: ConnectionGateway = websocket.app.state.gateway

    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token") or bearer_token(
        websocket.headers.get("authorization")
    )
    connection = Connection(websocket.send_text, outbox_size=settings.ws_outbox_size)
    try:
        gateway.authenticate(connection, token)
    except Unauthenticated as e:
        logger.info("realtime.connection_rejected", reason=e.detail)
        # A close before accept reaches uvicorn clients as HTTP 403, not 4001.
        await websocket.accept()
        await websocket.close(code=REJECT_CODE, reason=e.detail)
        return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()

    async def client_listener():
        """Hand every client frame to the gateway."""
        try:
            while True:
                data = await websocket.receive_text()
                gateway.handle_message(connection, data)
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass

    async def sender():
        try:
            await connection.run_sender()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            # Client went away mid-send; the listener will see the disconnect.
            logger.debug("realtime.send_failed", connection_id=connection.id, error=str(e))

    send_task = asyncio.create_task(sender())
    client_task = asyncio.create_task(client_listener())

    try:
        # Wait for either to finish (usually client disconnect)
        await asyncio.wait(
            [send_task, client_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        send_task.cancel()
        client_task.cancel()
        gateway.disconnect(connection)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
