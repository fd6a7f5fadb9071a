"""Conversation resolver module."""

from .resolver import ConversationResolver, IConversationResolver

__all__ = ["ConversationResolver", "IConversationResolver"]
