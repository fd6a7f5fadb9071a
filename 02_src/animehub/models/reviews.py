"""Review data model."""

from dataclasses import dataclass
from datetime import datetime

from .users import PublicProfile


@dataclass
class Review:
    """An anime review written by a user."""

    id: str
    user_id: str
    anime_title: str
    review_text: str
    rating: int
    created_at: datetime
    updated_at: datetime
    anime_image_url: str = ""

    author: PublicProfile | None = None
