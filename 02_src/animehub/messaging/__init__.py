"""Messaging module."""

from .service import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    IMessageService,
    MessageService,
    clamp_page,
)

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "IMessageService",
    "MessageService",
    "clamp_page",
]
