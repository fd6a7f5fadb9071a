"""Domain events exchanged through the EventBus."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics."""

    MESSAGE_SENT = "message.sent"
    MESSAGE_READ = "message.read"
    MESSAGE_DELETED = "message.deleted"


@dataclass
class BusMessage:
    """An event published on the EventBus."""

    id: str
    topic: Topic
    payload: dict
    source: str
    timestamp: datetime
