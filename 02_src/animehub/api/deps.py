"""Request helpers shared by the routers."""

from fastapi import Request
from starlette.datastructures import UploadFile

from ..errors import Unauthenticated
from ..models import IncomingFile

SESSION_USER_KEY = "user_id"


def current_user_id(request: Request) -> str:
    """FastAPI dependency: the logged-in user's id, or 401."""
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise Unauthenticated("Not logged in")
    return user_id


def login_session(request: Request, user_id: str) -> None:
    request.session.clear()
    request.session[SESSION_USER_KEY] = user_id


def logout_session(request: Request) -> None:
    request.session.clear()


async def read_upload(upload: object) -> IncomingFile | None:
    """Turn a multipart file field into an IncomingFile (None if absent)."""
    if not isinstance(upload, UploadFile) or not upload.filename:
        return None
    data = await upload.read()
    return IncomingFile(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=data,
    )
