import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from taskhub.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _handshake_token(websocket: WebSocket, token: str | None) -> str | None:
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return websocket.cookies.get(websocket.app.state.settings.cookie_name)


@router.websocket("/ws")
async def events_socket(websocket: WebSocket, token: str | None = None):
    """
    Live event stream.

    The token is checked once, at handshake. Frames sent by the client are
    read and discarded; the socket only exists to receive events.
    """
    state = websocket.app.state
    raw_token = _handshake_token(websocket, token)
    try:
        if not raw_token:
            raise UnauthorizedError("Authentication required")
        user_id = state.tokens.verify_token(raw_token)
    except UnauthorizedError as e:
        logger.info("Rejected socket connection: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = state.connections
    await manager.connect(websocket, user_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("User %s disconnected", user_id)
    finally:
        manager.disconnect(websocket)
