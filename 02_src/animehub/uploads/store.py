"""Upload storage on the local filesystem."""

import re
import time
from pathlib import Path

from ..config import UPLOADS_URL_PREFIX
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import IncomingFile, StoredFile, UploadCategory
from ..models.files import IMAGE_EXTENSIONS

logger = get_logger(__name__)

_SAFE_EXTENSION = re.compile(r"^\.[a-z0-9]{1,10}$")


class FileStore:
    """Writes uploads under `<root>/<category>/` and serves them as `/uploads/...` URLs."""

    def __init__(self, root: str | Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def ensure_dirs(self) -> None:
        for category in UploadCategory:
            (self._root / category.value).mkdir(parents=True, exist_ok=True)

    def validate(self, category: UploadCategory, incoming: IncomingFile) -> None:
        """Raise ValidationError if the file is not acceptable for the category."""
        if not incoming.data:
            raise ValidationError("Uploaded file is empty")
        if len(incoming.data) > category.max_bytes:
            raise ValidationError("File too large")
        if category.images_only and not _is_image(incoming):
            raise ValidationError("Only image files are allowed!")

    def save(self, category: UploadCategory, owner: str, incoming: IncomingFile) -> StoredFile:
        """Validate and write a file as `{owner}_{epochMillis}{extension}`."""
        self.validate(category, incoming)

        directory = self._root / category.value
        directory.mkdir(parents=True, exist_ok=True)

        extension = incoming.extension if _SAFE_EXTENSION.match(incoming.extension) else ""
        millis = int(time.time() * 1000)
        path = directory / f"{owner}_{millis}{extension}"
        while path.exists():
            millis += 1
            path = directory / f"{owner}_{millis}{extension}"

        path.write_bytes(incoming.data)
        logger.info("Stored upload %s (%d bytes)", path.name, len(incoming.data))
        return StoredFile(category=category, filename=path.name, path=path)

    def path_for_url(self, url: str) -> Path | None:
        """Map an `/uploads/...` URL back to a path inside the uploads root."""
        prefix = f"{UPLOADS_URL_PREFIX}/"
        if not url or not url.startswith(prefix):
            return None

        root = self._root.resolve()
        candidate = (root / url[len(prefix):]).resolve()
        if root not in candidate.parents:
            return None
        return candidate

    def delete_url(self, url: str | None) -> bool:
        """Best-effort removal of an uploaded file. Never raises."""
        if not url:
            return False

        path = self.path_for_url(url)
        if path is None:
            logger.warning("Refusing to delete file outside uploads: %s", url)
            return False

        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Failed to delete upload %s: %s", url, e)
            return False

        logger.info("Deleted upload %s", url)
        return True


def _is_image(incoming: IncomingFile) -> bool:
    extension = incoming.extension.lstrip(".")
    subtype = (incoming.content_type or "").split("/")[-1].lower()
    return extension in IMAGE_EXTENSIONS and subtype in IMAGE_EXTENSIONS
