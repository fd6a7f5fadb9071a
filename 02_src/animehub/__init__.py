"""AnimeHub backend: reviews, profiles and realtime chat."""

__version__ = "1.0.0"
