# sky/db/mongo.py
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import CollectionInvalid, ConnectionFailure, OperationFailure, PyMongoError
from pymongo.monitoring import (
    CommandFailedEvent,
    CommandListener,
    CommandStartedEvent,
    CommandSucceededEvent,
)

from sky.core.config import Settings, get_settings
from sky.core.errors import (
    CollectionAlreadyExistsError,
    DuplicateCredentialError,
    StorageConnectionError,
    WriteError,
)
from sky.core.run_context import get_run_id, record_command
from sky.models import EXPIRE_AFTER_SECONDS, MetricRecord, time_series_options

logger = logging.getLogger("sky")

# Server error codes
NAMESPACE_EXISTS_CODE = 48
DUPLICATE_KEY_CODE = 11000
USER_ALREADY_EXISTS_CODE = 51003


class MetricsStore(Protocol):
    """Storage operations the bootstrap and ingestion scripts depend on."""

    def create_user(self, username: str, password: str, roles: List[Dict[str, str]]) -> None:
        ...

    def create_time_series_collection(self, name: str) -> None:
        ...

    def insert_many(self, name: str, records: Iterable[MetricRecord]) -> int:
        ...

    def close(self) -> None:
        ...


# ---- Command observability (pymongo monitoring) ----


class CommandTimingListener(CommandListener):
    """
    Records every command's duration into the run metrics and warns on slow ones.
    """

    def __init__(self, slow_command_ms: float = 250.0, log_commands: bool = False):
        self.slow_command_ms = float(slow_command_ms)
        self.log_commands = bool(log_commands)

    def started(self, event: CommandStartedEvent) -> None:
        return

    def succeeded(self, event: CommandSucceededEvent) -> None:
        self._observe(event.command_name, event.duration_micros / 1000.0, failed=False)

    def failed(self, event: CommandFailedEvent) -> None:
        self._observe(event.command_name, event.duration_micros / 1000.0, failed=True)

    def _observe(self, command_name: str, duration_ms: float, failed: bool) -> None:
        record_command(duration_ms, command_name, failed=failed)

        if duration_ms >= self.slow_command_ms:
            if self.log_commands:
                logger.warning(
                    "slow_mongo_command run_id=%s duration_ms=%.2f command=%s",
                    get_run_id(),
                    duration_ms,
                    command_name,
                )
            else:
                logger.warning(
                    "slow_mongo_command run_id=%s duration_ms=%.2f",
                    get_run_id(),
                    duration_ms,
                )


def create_mongo_client(settings: Settings, **overrides: Any) -> MongoClient:
    """
    Client for the configured deployment: secondaryPreferred reads, majority writes.
    """
    options: Dict[str, Any] = {
        "appname": settings.mongo_app_name,
        "readPreference": "secondaryPreferred",
        "w": "majority",
        "serverSelectionTimeoutMS": settings.server_selection_timeout_ms,
        "event_listeners": [
            CommandTimingListener(settings.slow_command_ms, settings.log_commands)
        ],
    }
    options.update(overrides)
    return MongoClient(settings.mongo_uri, **options)


@contextmanager
def _connection_errors(action: str) -> Iterator[None]:
    try:
        yield
    except ConnectionFailure as exc:
        raise StorageConnectionError(f"{action}: cannot reach MongoDB: {exc}") from exc


class MongoMetricsStore:
    """
    MetricsStore backed by one database of a pymongo client.
    """

    def __init__(self, client: MongoClient, database: str):
        self.client = client
        self.database_name = database

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MongoMetricsStore":
        settings = settings or get_settings()
        return cls(create_mongo_client(settings), settings.mongo_database)

    @property
    def db(self) -> Database:
        return self.client[self.database_name]

    def create_user(self, username: str, password: str, roles: List[Dict[str, str]]) -> None:
        with _connection_errors("createUser"):
            try:
                self.db.command("createUser", username, pwd=password, roles=roles)
            except OperationFailure as exc:
                if exc.code in (USER_ALREADY_EXISTS_CODE, DUPLICATE_KEY_CODE):
                    raise DuplicateCredentialError(
                        f"user {username!r} already exists on {self.database_name!r}"
                    ) from exc
                raise
        logger.info("Created user %s on %s", username, self.database_name)

    def create_time_series_collection(self, name: str) -> None:
        with _connection_errors("createCollection"):
            try:
                self.db.create_collection(
                    name,
                    timeseries=time_series_options(),
                    expireAfterSeconds=EXPIRE_AFTER_SECONDS,
                )
            except CollectionInvalid as exc:
                raise CollectionAlreadyExistsError(
                    f"collection {self.database_name}.{name} already exists"
                ) from exc
            except OperationFailure as exc:
                if exc.code == NAMESPACE_EXISTS_CODE:
                    raise CollectionAlreadyExistsError(
                        f"collection {self.database_name}.{name} already exists"
                    ) from exc
                raise
        logger.info(
            "Created time-series collection %s.%s (expireAfterSeconds=%s)",
            self.database_name,
            name,
            EXPIRE_AFTER_SECONDS,
        )

    def insert_many(self, name: str, records: Iterable[MetricRecord]) -> int:
        docs = [r.to_document() for r in records]
        with _connection_errors("insertMany"):
            try:
                result = self.db[name].insert_many(docs, ordered=True)
            except PyMongoError as exc:
                if isinstance(exc, ConnectionFailure):
                    raise
                raise WriteError(f"insert into {self.database_name}.{name} failed: {exc}") from exc
        return len(result.inserted_ids)

    def close(self) -> None:
        self.client.close()
