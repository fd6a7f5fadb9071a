"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

PASSWORD = "secret123"

# Smallest valid PNG: 1x1 transparent pixel
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from animehub.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    """Create an EventBus with no subscribers."""
    from animehub.event_bus import EventBus

    return EventBus()


@pytest.fixture
def published(event_bus):
    """Record every message-topic event published on the bus."""
    from animehub.models import Topic

    events = []

    async def record(msg):
        events.append(msg)

    for topic in Topic:
        event_bus.subscribe(topic, record)
    return events


@pytest.fixture
def file_store(tmp_path):
    """FileStore rooted in a temporary uploads directory."""
    from animehub.uploads import FileStore

    fs = FileStore(tmp_path / "uploads")
    fs.ensure_dirs()
    return fs


@pytest.fixture
def resolver(storage):
    from animehub.conversations import ConversationResolver

    return ConversationResolver(storage)


@pytest.fixture
def message_service(storage, resolver, event_bus, file_store):
    from animehub.messaging import MessageService

    return MessageService(
        storage=storage,
        resolver=resolver,
        event_bus=event_bus,
        file_store=file_store,
    )


@pytest.fixture
def accounts(storage, file_store):
    from animehub.accounts import AccountService

    return AccountService(storage, file_store)


@pytest.fixture
def reviews(storage, file_store):
    from animehub.reviews import ReviewService

    return ReviewService(storage, file_store)


@pytest_asyncio.fixture
async def alice(accounts):
    return await accounts.register("alice", "alice@example.com", PASSWORD)


@pytest_asyncio.fixture
async def bob(accounts):
    return await accounts.register("bob", "bob@example.com", PASSWORD)


@pytest_asyncio.fixture
async def carol(accounts):
    return await accounts.register("carol", "carol@example.com", PASSWORD)


@pytest_asyncio.fixture
async def direct(resolver, alice, bob):
    """Direct conversation between alice and bob."""
    return await resolver.get_or_create_direct(alice.id, bob.id)


@pytest.fixture
def application(tmp_path):
    """Application wired to in-memory storage and a temporary uploads root."""
    from animehub.app import Application
    from animehub.config import Settings

    settings = Settings(
        database_url=":memory:",
        uploads_dir=str(tmp_path / "public" / "uploads"),
        session_secret="test-secret",
        debug=True,
    )
    return Application(settings=settings)


@pytest.fixture
def client(application):
    """TestClient with the lifespan running."""
    from fastapi.testclient import TestClient

    from animehub.api import create_fastapi_app

    with TestClient(create_fastapi_app(application)) as test_client:
        yield test_client


def register(client, username: str, password: str = PASSWORD) -> dict:
    """Register through the API (this also logs the new user in)."""
    response = client.post(
        "/api/auth/register",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def login(client, username: str, password: str = PASSWORD) -> dict:
    response = client.post(
        "/api/auth/login",
        json={"email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()
