"""Group chat routes."""

from fastapi import APIRouter, Depends, Query, Request

from ...app import Application
from ...messaging import DEFAULT_PAGE_SIZE
from ...models import ConversationKind, ConversationRef
from ...schemas import (
    GroupChatOut,
    GroupCreateRequest,
    GroupUpdateRequest,
    MessageOut,
    MessagePageOut,
    StatusOut,
    group_out,
    message_page_out,
)
from ..deps import current_user_id
from .conversations import send_to


def create_groups_router(app: Application) -> APIRouter:
    """Create group chat router."""
    router = APIRouter(prefix="/api/groups", tags=["groups"])

    @router.post("", response_model=GroupChatOut, status_code=201)
    async def create_group(
        body: GroupCreateRequest, user_id: str = Depends(current_user_id)
    ) -> GroupChatOut:
        """Create a group; the caller becomes its admin."""
        group = await app.resolver.create_group(user_id, body.name, body.members)
        return group_out(group)

    @router.get("", response_model=list[GroupChatOut])
    async def list_groups(user_id: str = Depends(current_user_id)) -> list[GroupChatOut]:
        return [group_out(g) for g in await app.resolver.list_groups(user_id)]

    @router.get("/{group_id}", response_model=GroupChatOut)
    async def get_group(
        group_id: str, user_id: str = Depends(current_user_id)
    ) -> GroupChatOut:
        return group_out(await app.resolver.get_group(group_id, user_id))

    @router.put("/{group_id}", response_model=GroupChatOut)
    async def update_group(
        group_id: str,
        body: GroupUpdateRequest,
        user_id: str = Depends(current_user_id),
    ) -> GroupChatOut:
        group = await app.resolver.update_group(
            group_id, user_id, name=body.name, member_ids=body.members
        )
        return group_out(group)

    @router.delete("/{group_id}", response_model=StatusOut)
    async def delete_group(
        group_id: str, user_id: str = Depends(current_user_id)
    ) -> StatusOut:
        await app.resolver.delete_group(group_id, user_id)
        return StatusOut(message="Group chat deleted successfully")

    @router.get("/{group_id}/messages", response_model=MessagePageOut)
    async def list_group_messages(
        group_id: str,
        page: int = Query(default=1),
        limit: int = Query(default=DEFAULT_PAGE_SIZE),
        user_id: str = Depends(current_user_id),
    ) -> MessagePageOut:
        result = await app.messages.list(
            ConversationRef(ConversationKind.GROUP, group_id),
            user_id,
            page=page,
            page_size=limit,
        )
        return message_page_out(result)

    @router.post("/{group_id}/messages", response_model=MessageOut, status_code=201)
    async def send_group_message(
        group_id: str,
        request: Request,
        user_id: str = Depends(current_user_id),
    ) -> MessageOut:
        ref = ConversationRef(ConversationKind.GROUP, group_id)
        return await send_to(app, ref, user_id, request)

    return router
