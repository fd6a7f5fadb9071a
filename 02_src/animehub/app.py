"""Application bootstrap and lifecycle management."""

from pathlib import Path

from .accounts import AccountService
from .config import Settings, resolve_db_path, resolve_uploads_dir
from .conversations import ConversationResolver
from .event_bus import EventBus
from .logging_config import get_logger
from .messaging import MessageService
from .realtime import Broadcaster
from .reviews import ReviewService
from .storage import IStorage, Storage
from .uploads import FileStore

logger = get_logger(__name__)


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: Settings | None = None,
        db_path: str | None = None,
        uploads_dir: str | Path | None = None,
    ):
        self.settings = settings or Settings.from_env()
        self._db_path = resolve_db_path(db_path if db_path is not None else self.settings.database_url)
        self._uploads_dir = resolve_uploads_dir(
            uploads_dir if uploads_dir is not None else self.settings.uploads_dir
        )

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._event_bus: EventBus | None = None
        self._file_store: FileStore | None = None
        self._resolver: ConversationResolver | None = None
        self._messages: MessageService | None = None
        self._accounts: AccountService | None = None
        self._reviews: ReviewService | None = None
        self._broadcaster: Broadcaster | None = None

    @property
    def uploads_dir(self) -> Path:
        return self._uploads_dir

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventBus and FileStore (no dependencies)
        self._event_bus = EventBus()
        self._file_store = FileStore(self._uploads_dir)
        self._file_store.ensure_dirs()

        # 3. Conversation rules (Storage)
        self._resolver = ConversationResolver(self._storage)

        # 4. Services (Storage, Resolver, EventBus, FileStore)
        self._messages = MessageService(
            storage=self._storage,
            resolver=self._resolver,
            event_bus=self._event_bus,
            file_store=self._file_store,
        )
        self._accounts = AccountService(self._storage, self._file_store)
        self._reviews = ReviewService(self._storage, self._file_store)

        # 5. Broadcaster (Resolver, MessageService, EventBus)
        self._broadcaster = Broadcaster(
            resolver=self._resolver,
            messages=self._messages,
            event_bus=self._event_bus,
        )
        await self._broadcaster.start()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._broadcaster:
            await self._broadcaster.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Clear all data."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

    def _require(self, component):
        if component is None:
            raise RuntimeError("Application not started")
        return component

    @property
    def storage(self) -> IStorage:
        return self._require(self._storage)

    @property
    def event_bus(self) -> EventBus:
        return self._require(self._event_bus)

    @property
    def file_store(self) -> FileStore:
        return self._require(self._file_store)

    @property
    def resolver(self) -> ConversationResolver:
        return self._require(self._resolver)

    @property
    def messages(self) -> MessageService:
        return self._require(self._messages)

    @property
    def accounts(self) -> AccountService:
        return self._require(self._accounts)

    @property
    def reviews(self) -> ReviewService:
        return self._require(self._reviews)

    @property
    def broadcaster(self) -> Broadcaster:
        return self._require(self._broadcaster)
