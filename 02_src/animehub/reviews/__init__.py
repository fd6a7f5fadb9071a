"""Reviews module."""

from .service import ReviewService, parse_rating

__all__ = ["ReviewService", "parse_rating"]
