"""Anime review routes."""

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ...app import Application
from ...schemas import ReviewOut, StatusOut, review_out
from ..deps import current_user_id, read_upload


def create_reviews_router(app: Application) -> APIRouter:
    """Create reviews router."""
    router = APIRouter(prefix="/api/reviews", tags=["reviews"])

    @router.post("", response_model=ReviewOut, status_code=201)
    async def create_review(
        anime_title: str = Form(default="", alias="animeTitle"),
        review_text: str = Form(default="", alias="reviewText"),
        rating: str = Form(default=""),
        anime_image: UploadFile | None = File(default=None, alias="animeImage"),
        user_id: str = Depends(current_user_id),
    ) -> ReviewOut:
        review = await app.reviews.create(
            user_id,
            anime_title,
            review_text,
            rating,
            image=await read_upload(anime_image),
        )
        return review_out(review)

    @router.get("", response_model=list[ReviewOut])
    async def list_reviews() -> list[ReviewOut]:
        """All reviews, newest first."""
        return [review_out(r) for r in await app.reviews.list_all()]

    @router.get("/my", response_model=list[ReviewOut])
    async def my_reviews(user_id: str = Depends(current_user_id)) -> list[ReviewOut]:
        return [review_out(r) for r in await app.reviews.list_for_user(user_id)]

    @router.put("/{review_id}", response_model=ReviewOut)
    async def update_review(
        review_id: str,
        anime_title: str = Form(default="", alias="animeTitle"),
        review_text: str = Form(default="", alias="reviewText"),
        rating: str = Form(default=""),
        anime_image: UploadFile | None = File(default=None, alias="animeImage"),
        user_id: str = Depends(current_user_id),
    ) -> ReviewOut:
        review = await app.reviews.update(
            review_id,
            user_id,
            anime_title,
            review_text,
            rating,
            image=await read_upload(anime_image),
        )
        return review_out(review)

    @router.delete("/{review_id}", response_model=StatusOut)
    async def delete_review(
        review_id: str, user_id: str = Depends(current_user_id)
    ) -> StatusOut:
        await app.reviews.delete(review_id, user_id)
        return StatusOut(message="Review deleted successfully")

    return router
