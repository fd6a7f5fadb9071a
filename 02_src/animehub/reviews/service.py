"""Anime reviews."""

from datetime import datetime, timezone

from ..errors import Forbidden, NotFound, ValidationError
from ..logging_config import get_logger
from ..models import IncomingFile, Review, UploadCategory, is_valid_id, new_id
from ..storage import IStorage
from ..uploads import FileStore

logger = get_logger(__name__)

IMAGE_OWNER_PREFIX = "review"


def parse_rating(value: object) -> int:
    """Coerce a form value to an integer rating in 1..5."""
    try:
        rating = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Rating must be between 1 and 5")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")
    return rating


def _required(value: str | None, field_name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field_name} is required")
    return value


class ReviewService:
    """Review CRUD with optional cover image."""

    def __init__(self, storage: IStorage, file_store: FileStore):
        self._storage = storage
        self._file_store = file_store

    async def create(
        self,
        user_id: str,
        anime_title: str | None,
        review_text: str | None,
        rating: object,
        image: IncomingFile | None = None,
    ) -> Review:
        title = _required(anime_title, "Anime title")
        text = _required(review_text, "Review text")
        rating_value = parse_rating(rating)

        image_url = ""
        if image is not None:
            image_url = self._file_store.save(
                UploadCategory.REVIEW_IMAGE, IMAGE_OWNER_PREFIX, image
            ).url

        now = datetime.now(timezone.utc)
        review = Review(
            id=new_id(),
            user_id=user_id,
            anime_title=title,
            review_text=text,
            rating=rating_value,
            anime_image_url=image_url,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._storage.insert_review(review)
        except Exception:
            self._file_store.delete_url(image_url)
            raise

        logger.info("Review created", extra={"context": {"review_id": review.id}})
        return await self._with_author(review)

    async def list_all(self) -> list[Review]:
        reviews = await self._storage.list_reviews()
        return await self._with_authors(reviews)

    async def list_for_user(self, user_id: str) -> list[Review]:
        reviews = await self._storage.list_reviews(user_id=user_id)
        return await self._with_authors(reviews)

    async def update(
        self,
        review_id: str,
        user_id: str,
        anime_title: str | None,
        review_text: str | None,
        rating: object,
        image: IncomingFile | None = None,
    ) -> Review:
        review = await self._owned(review_id, user_id, "edit")

        review.anime_title = _required(anime_title, "Anime title")
        review.review_text = _required(review_text, "Review text")
        review.rating = parse_rating(rating)

        previous_url = None
        if image is not None:
            previous_url = review.anime_image_url
            review.anime_image_url = self._file_store.save(
                UploadCategory.REVIEW_IMAGE, IMAGE_OWNER_PREFIX, image
            ).url

        review.updated_at = datetime.now(timezone.utc)
        try:
            await self._storage.update_review(review)
        except Exception:
            if image is not None:
                self._file_store.delete_url(review.anime_image_url)
            raise

        if previous_url:
            self._file_store.delete_url(previous_url)
        return await self._with_author(review)

    async def delete(self, review_id: str, user_id: str) -> None:
        review = await self._owned(review_id, user_id, "delete")
        if review.anime_image_url:
            self._file_store.delete_url(review.anime_image_url)
        await self._storage.delete_review(review.id)
        logger.info("Review deleted", extra={"context": {"review_id": review.id}})

    async def _owned(self, review_id: str, user_id: str, action: str) -> Review:
        review = await self._storage.get_review(review_id) if is_valid_id(review_id) else None
        if review is None:
            raise NotFound("Review not found")
        if review.user_id != user_id:
            raise Forbidden(f"You can only {action} your own reviews")
        return review

    async def _with_author(self, review: Review) -> Review:
        return (await self._with_authors([review]))[0]

    async def _with_authors(self, reviews: list[Review]) -> list[Review]:
        users = await self._storage.get_users([r.user_id for r in reviews])
        for review in reviews:
            author = users.get(review.user_id)
            review.author = author.public_profile() if author else None
        return reviews
