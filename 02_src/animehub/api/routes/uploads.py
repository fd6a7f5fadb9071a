"""Chat attachment upload route."""

from fastapi import APIRouter, Depends, File, UploadFile

from ...app import Application
from ...errors import ValidationError
from ...models import UploadCategory
from ...schemas import UploadOut
from ..deps import current_user_id, read_upload


def create_uploads_router(app: Application) -> APIRouter:
    """Create uploads router."""
    router = APIRouter(prefix="/api/uploads", tags=["uploads"])

    @router.post("", response_model=UploadOut, status_code=201)
    async def upload_file(
        file: UploadFile | None = File(default=None),
        user_id: str = Depends(current_user_id),
    ) -> UploadOut:
        """Store a general attachment and return its public URL."""
        incoming = await read_upload(file)
        if incoming is None:
            raise ValidationError("No file uploaded")
        stored = app.file_store.save(UploadCategory.GENERAL, user_id, incoming)
        return UploadOut(url=stored.url)

    return router
