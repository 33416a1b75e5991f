from functools import lru_cache
from urllib.parse import urlsplit, urlunsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the sky seeding scripts.

    All values come from environment variables or .env.
    Defaults reproduce the fixed local-development target:
    - MongoDB on localhost, database "sky", collection "metrics"
    - app user "user" / "password" with dbOwner on the database
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(
        default="dev",
        description="Deployment environment identifier (dev|staging|prod)",
    )

    # MongoDB target
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string used by both scripts.",
    )
    mongo_database: str = Field(default="sky")
    mongo_collection: str = Field(default="metrics")
    mongo_app_name: str = Field(
        default="sky-seed",
        description="appName reported to the server for these connections.",
    )
    server_selection_timeout_ms: int = Field(
        default=30000,
        description="How long the driver waits for a usable server before failing.",
    )

    # Credential created by the bootstrap script
    mongo_app_user: str = Field(default="user")
    mongo_app_password: str = Field(default="password")

    # Observability knobs
    slow_command_ms: float = Field(
        default=250.0,
        description="Mongo commands at or above this duration are logged as slow.",
    )
    log_commands: bool = Field(
        default=False,
        description="If true, slow-command warnings include the command name.",
    )
    log_level: str = Field(default="INFO")

    def redacted_uri(self) -> str:
        """
        mongo_uri with any user:password stripped, safe to log.
        """
        parts = urlsplit(self.mongo_uri)
        if "@" not in parts.netloc:
            return self.mongo_uri
        host = parts.netloc.rsplit("@", 1)[1]
        return urlunsplit((parts.scheme, "***@" + host, parts.path, parts.query, parts.fragment))

    @property
    def is_prod(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the scripts only parse env once.
    """
    return Settings()
