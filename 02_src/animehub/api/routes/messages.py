"""Single-message routes."""

from fastapi import APIRouter, Depends

from ...app import Application
from ...schemas import MessageOut, StatusOut, message_out
from ..deps import current_user_id


def create_messages_router(app: Application) -> APIRouter:
    """Create messages router."""
    router = APIRouter(prefix="/api/messages", tags=["messages"])

    @router.patch("/{message_id}/read", response_model=MessageOut)
    async def mark_read(
        message_id: str, user_id: str = Depends(current_user_id)
    ) -> MessageOut:
        return message_out(await app.messages.mark_read(message_id, user_id))

    @router.delete("/{message_id}", response_model=StatusOut)
    async def delete_message(
        message_id: str, user_id: str = Depends(current_user_id)
    ) -> StatusOut:
        """Delete a message; only its sender may do this."""
        await app.messages.delete(message_id, user_id)
        return StatusOut(message="Message deleted successfully")

    return router
