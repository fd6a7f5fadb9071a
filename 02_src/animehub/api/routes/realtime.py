"""WebSocket endpoint for live chat."""

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...app import Application
from ...errors import ValidationError
from ...logging_config import get_logger
from ...models import new_id
from ...realtime.broadcaster import frame
from ..deps import SESSION_USER_KEY

logger = get_logger(__name__)

UNAUTHENTICATED_CLOSE_CODE = 4401


class WebSocketConnection:
    """Adapts a FastAPI WebSocket to the broadcaster's connection interface."""

    def __init__(self, websocket: WebSocket, user_id: str):
        self.id = new_id()
        self.user_id = user_id
        self._websocket = websocket

    async def send_json(self, data: dict) -> None:
        await self._websocket.send_json(data)


def create_realtime_router(app: Application) -> APIRouter:
    """Create realtime router."""
    router = APIRouter(tags=["realtime"])

    @router.websocket("/ws")
    async def chat_socket(websocket: WebSocket) -> None:
        user_id = websocket.session.get(SESSION_USER_KEY)
        if not user_id:
            await websocket.close(code=UNAUTHENTICATED_CLOSE_CODE)
            return

        await websocket.accept()
        connection = WebSocketConnection(websocket, user_id)
        app.broadcaster.connect(connection)

        try:
            while True:
                text = await websocket.receive_text()
                try:
                    raw = json.loads(text)
                except json.JSONDecodeError:
                    await connection.send_json(
                        frame("error", ValidationError("Invalid JSON").to_dict())
                    )
                    continue
                await app.broadcaster.dispatch(connection.id, raw)
        except WebSocketDisconnect:
            logger.debug("Client disconnected", extra={"context": {"user_id": user_id}})
        finally:
            app.broadcaster.disconnect(connection.id)

    return router
