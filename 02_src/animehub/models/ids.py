"""Identifier helpers."""

import uuid


def new_id() -> str:
    """Generate a new document id."""
    return str(uuid.uuid4())


def is_valid_id(value: object) -> bool:
    """Return True if value is a well-formed document id."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False
