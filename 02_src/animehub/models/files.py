"""Upload descriptors."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..config import UPLOADS_URL_PREFIX

IMAGE_EXTENSIONS = frozenset({"jpeg", "jpg", "png", "gif", "webp"})


class UploadCategory(str, Enum):
    """Upload directories, one per kind of asset."""

    PROFILE_PICTURE = "profile-pics"
    GENERAL = "general"
    REVIEW_IMAGE = "review-images"

    @property
    def url_prefix(self) -> str:
        return f"{UPLOADS_URL_PREFIX}/{self.value}/"

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}{filename}"

    @property
    def max_bytes(self) -> int:
        if self is UploadCategory.GENERAL:
            return 10 * 1024 * 1024
        return 5 * 1024 * 1024

    @property
    def images_only(self) -> bool:
        return self is not UploadCategory.GENERAL


@dataclass
class IncomingFile:
    """A file received from a multipart request, not yet stored."""

    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


@dataclass
class StoredFile:
    """A file written to the uploads tree."""

    category: UploadCategory
    filename: str
    path: Path

    @property
    def url(self) -> str:
        return self.category.url_for(self.filename)
