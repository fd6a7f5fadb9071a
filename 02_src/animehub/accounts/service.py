"""User accounts: registration, credentials and profiles."""

from datetime import datetime, timezone

import aiosqlite
from passlib.context import CryptContext

from ..errors import NotFound, Unauthenticated, ValidationError
from ..logging_config import get_logger
from ..models import IncomingFile, PublicProfile, UploadCategory, User, is_valid_id, new_id
from ..storage import IStorage
from ..uploads import FileStore

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_USERNAME_LENGTH = 30
SEARCH_LIMIT = 20

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


class AccountService:
    """Account operations backed by IStorage."""

    def __init__(self, storage: IStorage, file_store: FileStore):
        self._storage = storage
        self._file_store = file_store

    async def register(self, username: str, email: str, password: str) -> User:
        username = _clean_username(username)
        email = _clean_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        await self._ensure_available(username=username, email=email)

        now = datetime.now(timezone.utc)
        user = User(
            id=new_id(),
            username=username,
            email=email,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        try:
            await self._storage.insert_user(user)
        except aiosqlite.IntegrityError:
            raise ValidationError("Username or email already registered")

        logger.info("User registered", extra={"context": {"user_id": user.id}})
        return user

    async def authenticate(self, email: str, password: str) -> User:
        user = await self._storage.get_user_by_email((email or "").strip().lower())
        if user is None or not verify_password(password or "", user.password_hash):
            logger.info("Failed login attempt")
            raise Unauthenticated("Incorrect email or password")
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self._storage.get_user(user_id) if is_valid_id(user_id) else None
        if user is None:
            raise NotFound("User not found")
        return user

    async def search(self, query: str, requester_id: str) -> list[PublicProfile]:
        query = (query or "").strip()
        if not query:
            return []
        users = await self._storage.search_users(query, exclude_id=requester_id, limit=SEARCH_LIMIT)
        return [user.public_profile() for user in users]

    async def update_profile(
        self, user_id: str, username: str | None = None, email: str | None = None
    ) -> User:
        user = await self.get_user(user_id)

        new_username = _clean_username(username) if username is not None else user.username
        new_email = _clean_email(email) if email is not None else user.email
        await self._ensure_available(
            username=new_username if new_username != user.username else None,
            email=new_email if new_email != user.email else None,
        )

        user.username = new_username
        user.email = new_email
        user.updated_at = datetime.now(timezone.utc)
        try:
            await self._storage.update_user(user)
        except aiosqlite.IntegrityError:
            raise ValidationError("Username or email already registered")
        return user

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self.get_user(user_id)
        if not verify_password(current_password or "", user.password_hash):
            raise ValidationError("Current password is incorrect")
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        user.password_hash = hash_password(new_password)
        user.updated_at = datetime.now(timezone.utc)
        await self._storage.update_user(user)
        logger.info("Password changed", extra={"context": {"user_id": user.id}})

    async def set_profile_picture(self, user_id: str, incoming: IncomingFile) -> User:
        user = await self.get_user(user_id)
        stored = self._file_store.save(UploadCategory.PROFILE_PICTURE, user.id, incoming)

        previous_url = user.profile_picture_url if user.profile_picture else None
        user.profile_picture = stored.filename
        user.updated_at = datetime.now(timezone.utc)
        try:
            await self._storage.update_user(user)
        except Exception:
            self._file_store.delete_url(stored.url)
            raise

        if previous_url:
            self._file_store.delete_url(previous_url)
        return user

    async def delete_profile_picture(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if not user.profile_picture:
            raise NotFound("No profile picture to delete")

        url = user.profile_picture_url
        user.profile_picture = None
        user.updated_at = datetime.now(timezone.utc)
        await self._storage.update_user(user)
        self._file_store.delete_url(url)
        return user

    async def _ensure_available(
        self, username: str | None = None, email: str | None = None
    ) -> None:
        if email and await self._storage.get_user_by_email(email):
            raise ValidationError("Email already registered")
        if username and await self._storage.get_user_by_username(username):
            raise ValidationError("Username already taken")


def _clean_username(username: str | None) -> str:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required")
    if len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters")
    return username


def _clean_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if "@" not in email:
        raise ValidationError("A valid email is required")
    return email
