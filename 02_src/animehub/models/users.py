"""User-related data models."""

from dataclasses import dataclass
from datetime import datetime

from .files import UploadCategory


@dataclass
class PublicProfile:
    """The part of a user that other users may see."""

    id: str
    username: str
    email: str
    profile_picture_url: str | None = None


@dataclass
class User:
    """A registered account."""

    id: str
    username: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    profile_picture: str | None = None  # stored filename
    avatar: str = ""

    @property
    def profile_picture_url(self) -> str | None:
        if self.profile_picture:
            return UploadCategory.PROFILE_PICTURE.url_for(self.profile_picture)
        return self.avatar or None

    def public_profile(self) -> PublicProfile:
        return PublicProfile(
            id=self.id,
            username=self.username,
            email=self.email,
            profile_picture_url=self.profile_picture_url,
        )
