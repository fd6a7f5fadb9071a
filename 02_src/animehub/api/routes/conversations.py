"""Direct conversation and message-history routes."""

import pydantic
from fastapi import APIRouter, Depends, Query, Request

from ...app import Application
from ...errors import ValidationError
from ...messaging import DEFAULT_PAGE_SIZE
from ...models import ConversationKind, ConversationRef, IncomingFile
from ...schemas import (
    ConversationSummaryOut,
    DirectConversationOut,
    MessageOut,
    MessagePageOut,
    SendMessageRequest,
    StartConversationRequest,
    direct_out,
    message_out,
    message_page_out,
    summary_out,
)
from ..deps import current_user_id, read_upload

ATTACHMENT_FIELDS = ("attachment", "image")


async def read_message_body(request: Request) -> tuple[str | None, IncomingFile | None, str | None]:
    """Parse a send-message body: JSON `{content, attachmentUrl}` or multipart."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        attachment = None
        for field_name in ATTACHMENT_FIELDS:
            attachment = await read_upload(form.get(field_name))
            if attachment is not None:
                break
        content = form.get("content")
        return (content if isinstance(content, str) else None), attachment, None

    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON or multipart form data")
    try:
        body = SendMessageRequest.model_validate(payload)
    except pydantic.ValidationError:
        raise ValidationError("Invalid message body")
    return body.content, None, body.attachment_url


async def send_to(
    app: Application, ref: ConversationRef, user_id: str, request: Request
) -> MessageOut:
    content, attachment, attachment_url = await read_message_body(request)
    message = await app.messages.send(
        ref,
        user_id,
        content=content,
        attachment=attachment,
        attachment_url=attachment_url,
    )
    return message_out(message)


def create_conversations_router(app: Application) -> APIRouter:
    """Create conversations router."""
    router = APIRouter(prefix="/api/conversations", tags=["conversations"])

    @router.post("", response_model=DirectConversationOut)
    async def start_conversation(
        body: StartConversationRequest, user_id: str = Depends(current_user_id)
    ) -> DirectConversationOut:
        """Return the direct conversation with another user, creating it if needed."""
        conversation = await app.resolver.get_or_create_direct(user_id, body.other_user_id)
        return direct_out(conversation)

    @router.get("", response_model=list[ConversationSummaryOut])
    async def list_conversations(
        user_id: str = Depends(current_user_id),
    ) -> list[ConversationSummaryOut]:
        summaries = await app.resolver.list_conversations(user_id)
        return [summary_out(s) for s in summaries]

    @router.get("/{conversation_id}/messages", response_model=MessagePageOut)
    async def list_messages(
        conversation_id: str,
        page: int = Query(default=1),
        limit: int = Query(default=DEFAULT_PAGE_SIZE),
        user_id: str = Depends(current_user_id),
    ) -> MessagePageOut:
        result = await app.messages.list(
            ConversationRef(ConversationKind.DIRECT, conversation_id),
            user_id,
            page=page,
            page_size=limit,
        )
        return message_page_out(result)

    @router.post("/{conversation_id}/messages", response_model=MessageOut, status_code=201)
    async def send_message(
        conversation_id: str,
        request: Request,
        user_id: str = Depends(current_user_id),
    ) -> MessageOut:
        ref = ConversationRef(ConversationKind.DIRECT, conversation_id)
        return await send_to(app, ref, user_id, request)

    return router
