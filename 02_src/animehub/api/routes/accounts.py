"""Account and session routes."""

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile

from ...app import Application
from ...errors import ValidationError
from ...schemas import (
    ChangePasswordRequest,
    LoginRequest,
    ProfileOut,
    RegisterRequest,
    StatusOut,
    UpdateProfileRequest,
    UserOut,
    profile_out,
    user_out,
)
from ..deps import current_user_id, login_session, logout_session, read_upload


def create_accounts_router(app: Application) -> APIRouter:
    """Create account router."""
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/register", response_model=UserOut, status_code=201)
    async def register(body: RegisterRequest, request: Request) -> UserOut:
        """Create an account and log it in."""
        user = await app.accounts.register(body.username, body.email, body.password)
        login_session(request, user.id)
        return user_out(user)

    @router.post("/login", response_model=UserOut)
    async def login(body: LoginRequest, request: Request) -> UserOut:
        user = await app.accounts.authenticate(body.email, body.password)
        login_session(request, user.id)
        return user_out(user)

    @router.post("/logout", response_model=StatusOut)
    async def logout(request: Request) -> StatusOut:
        logout_session(request)
        return StatusOut(message="Logged out")

    @router.get("/me", response_model=UserOut)
    async def me(user_id: str = Depends(current_user_id)) -> UserOut:
        return user_out(await app.accounts.get_user(user_id))

    @router.get("/search", response_model=list[ProfileOut])
    async def search(
        q: str = Query(default=""),
        user_id: str = Depends(current_user_id),
    ) -> list[ProfileOut]:
        """Find other users by username or email."""
        profiles = await app.accounts.search(q, user_id)
        return [profile_out(p) for p in profiles]

    @router.post("/update-profile", response_model=UserOut)
    async def update_profile(
        body: UpdateProfileRequest, user_id: str = Depends(current_user_id)
    ) -> UserOut:
        user = await app.accounts.update_profile(
            user_id, username=body.username, email=body.email
        )
        return user_out(user)

    @router.post("/change-password", response_model=StatusOut)
    async def change_password(
        body: ChangePasswordRequest, user_id: str = Depends(current_user_id)
    ) -> StatusOut:
        await app.accounts.change_password(
            user_id, body.current_password, body.new_password
        )
        return StatusOut(message="Password updated successfully")

    @router.post("/upload-profile-pic", response_model=UserOut)
    async def upload_profile_pic(
        profile_pic: UploadFile | None = File(default=None, alias="profilePic"),
        user_id: str = Depends(current_user_id),
    ) -> UserOut:
        incoming = await read_upload(profile_pic)
        if incoming is None:
            raise ValidationError("No file uploaded")
        return user_out(await app.accounts.set_profile_picture(user_id, incoming))

    @router.delete("/delete-profile-pic", response_model=UserOut)
    async def delete_profile_pic(user_id: str = Depends(current_user_id)) -> UserOut:
        return user_out(await app.accounts.delete_profile_picture(user_id))

    return router
