"""Configuration management for relational import."""

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL

from .exceptions import ConfigurationError


# SQLAlchemy drivers per supported database type
DRIVERS = {
    "postgresql": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
    "sqlite": "sqlite",
}

DEFAULT_PORTS = {
    "postgresql": 5432,
    "mysql": 3306,
}


class DatabaseConfig(BaseSettings):
    """Source database connection configuration."""

    db_type: str = Field(default="postgresql", description="postgresql, mysql or sqlite")
    host: str = Field(default="localhost", description="Database host")
    port: Optional[int] = Field(default=None, description="Database port (dialect default if unset)")
    database: str = Field(default="", description="Database name, or file path for sqlite")
    user: str = Field(default="", description="Database user")
    password: str = Field(default="", description="Database password")
    schema_name: Optional[str] = Field(default=None, description="Schema to introspect")
    url: Optional[str] = Field(default=None, description="Full SQLAlchemy URL, overrides the fields above")

    class Config:
        env_prefix = "DB_"
        env_file = ".env"
        extra = "ignore"

    @property
    def connection_string(self) -> str:
        """Get SQLAlchemy connection string."""
        if self.url:
            return self.url

        db_type = self.db_type.lower()
        if db_type not in DRIVERS:
            raise ConfigurationError(f"Unsupported database type: {self.db_type}")

        if db_type == "sqlite":
            return URL.create(DRIVERS[db_type], database=self.database or None).render_as_string(
                hide_password=False
            )

        return URL.create(
            DRIVERS[db_type],
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=self.port or DEFAULT_PORTS.get(db_type),
            database=self.database or None,
        ).render_as_string(hide_password=False)


class ImportConfig(BaseSettings):
    """Traversal limits for nested record building."""

    max_depth: int = Field(default=3, ge=0, description="Forward expansion bound")
    max_records: int = Field(default=100, ge=1, description="Root rows sampled from the primary table")

    # Reverse (one-to-many) edges fan out, so they are capped harder
    reverse_max_depth: int = Field(default=2, ge=0, description="Depth cap once a reverse edge was followed")
    root_fanout_limit: int = Field(default=100, ge=1, description="Row cap for one-to-many edges of a root row")
    nested_fanout_limit: int = Field(default=10, ge=1, description="Row cap for deeper one-to-many edges")

    follow_reverse: bool = Field(default=False, description="Synthesize one-to-many edges")

    class Config:
        env_prefix = "IMPORT_"
        extra = "ignore"


class AppConfig(BaseSettings):
    """Main application configuration."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    importer: ImportConfig = Field(default_factory=ImportConfig)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    verbose: bool = Field(default=False, description="Verbose output")

    class Config:
        env_prefix = "APP_"
        extra = "ignore"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AppConfig":
        """Load configuration from environment and .env file."""
        if env_file and Path(env_file).exists():
            from dotenv import load_dotenv
            load_dotenv(env_file)

        return cls(
            database=DatabaseConfig(),
            importer=ImportConfig(),
        )

    @classmethod
    def from_args(
        cls,
        db_type: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        schema_name: Optional[str] = None,
        url: Optional[str] = None,
        log_level: Optional[str] = None,
        verbose: bool = False,
        **kwargs
    ) -> "AppConfig":
        """Create configuration from command line arguments."""
        # Only pass arguments that are not None to allow Pydantic to use env vars/defaults
        db_kwargs = {
            key: value
            for key, value in {
                "db_type": db_type,
                "host": host,
                "port": port,
                "database": database,
                "user": user,
                "password": password,
                "schema_name": schema_name,
                "url": url,
            }.items()
            if value is not None
        }
        import_kwargs = {key: value for key, value in kwargs.items() if value is not None}

        app_kwargs = {"verbose": verbose}
        if log_level is not None:
            app_kwargs["log_level"] = log_level

        return cls(
            database=DatabaseConfig(**db_kwargs),
            importer=ImportConfig(**import_kwargs),
            **app_kwargs,
        )
