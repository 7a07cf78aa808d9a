"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Configuration management for BZRED.

This module provides a central location for all configuration settings in BZRED.
Settings are read from a YAML file and can be overridden by environment
variables. The enumeration mappings are plain configuration values handed to
the mapper at construction time; nothing here is process-global.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, ClassVar

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

# Configure logging
logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_ENABLED_MODULES = [
    "issue_tracking",
    "time_tracking",
    "news",
    "documents",
    "files",
    "wiki",
    "repository",
    "boards",
    "calendar",
    "gantt",
]


class BaseConfig(BaseModel):
    """Base configuration class with common functionality."""

    # Class variable to store environment variable prefixes
    ENV_PREFIX: ClassVar[str] = "BZRED_"

    @classmethod
    def get_env_var(cls, key: str, default: Any = None) -> Any:
        """
        Get an environment variable with the class prefix.

        Args:
        ----
            key: Key name without prefix
            default: Default value if environment variable is not found

        Returns:
        -------
            The environment variable value or default

        """
        env_key = f"{cls.ENV_PREFIX}{key.upper()}"
        return os.environ.get(env_key, default)


class LoggingConfig(BaseConfig):
    """Configuration for logging settings."""

    level: str = Field(
        default_factory=lambda: os.environ.get("BZRED_LOG_LEVEL", "INFO"),
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    use_rich: bool = Field(
        default=True,
        description="Whether to use rich for logging formatting",
    )
    log_file: str | None = Field(
        default=None,
        description="Path to the log file (None for console-only logging)",
    )
    json_format: bool = Field(
        default=False,
        description="Whether to use JSON format for logs",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        """Validate that the log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        value = value.upper()
        if value not in valid_levels:
            logger.warning(f"Invalid log level '{value}', defaulting to INFO")
            return "INFO"
        return value

    @classmethod
    def from_env(cls, **overrides) -> "LoggingConfig":
        """Create a logging configuration from environment variables."""
        config = {
            "level": cls.get_env_var("LOG_LEVEL", "INFO"),
            "use_rich": cls.get_env_var("LOG_USE_RICH", "true").lower() == "true",
            "log_file": cls.get_env_var("LOG_FILE", None),
            "json_format": cls.get_env_var("LOG_JSON", "false").lower() == "true",
        }

        # Override with any directly provided values
        config.update(overrides)

        return cls(**config)

    def get_log_level_int(self) -> int:
        """Get the numeric logging level."""
        return getattr(logging, self.level)

    def configure_logging(self, debug: bool = False) -> None:
        """
        Configure logging based on the settings.

        Args:
        ----
            debug: Whether to force debug mode

        """
        from bzred.core.logging import configure_logging as configure_bzred_logging

        configure_bzred_logging(
            level=logging.DEBUG if debug else self.get_log_level_int(),
            log_file=self.log_file,
            json_format=self.json_format,
            use_rich=self.use_rich,
        )


class DatabaseConfig(BaseConfig):
    """Configuration for one database connection (Bugzilla or Redmine)."""

    db_type: str = Field(
        default="mysql",
        description="Database type (mysql, postgresql, sqlite)",
    )
    db_path: str | None = Field(
        default=None,
        description="Path to SQLite database file (for SQLite)",
    )
    host: str | None = Field(
        default=None,
        description="Database host (for MySQL/PostgreSQL)",
    )
    port: int | None = Field(
        default=None,
        description="Database port (for MySQL/PostgreSQL)",
    )
    username: str | None = Field(
        default=None,
        description="Database username (for MySQL/PostgreSQL)",
    )
    password: str | None = Field(
        default=None,
        description="Database password (for MySQL/PostgreSQL)",
    )
    database: str | None = Field(
        default=None,
        description="Database name (for MySQL/PostgreSQL)",
    )
    charset: str = Field(
        default="utf8mb4",
        description="Client character set (for MySQL)",
    )
    connect_timeout: int = Field(
        default=30,
        description="Connection timeout in seconds",
    )
    echo: bool = Field(
        default=False,
        description="Whether to echo SQL statements",
    )

    @model_validator(mode="after")
    def validate_db_config(self):
        """Validate database configuration based on the database type."""
        if self.db_type == "sqlite":
            if not self.db_path:
                raise ValueError("db_path is required for SQLite")
        elif self.db_type in ("mysql", "postgresql"):
            if not all([self.host, self.username, self.database]):
                raise ValueError(
                    f"Host, username, and database name are required for {self.db_type}",
                )
        else:
            raise ValueError(f"Unsupported database type: {self.db_type}")
        return self

    @classmethod
    def env_overrides(cls, role: str) -> dict[str, Any]:
        """
        Collect the environment overrides for one store.

        Args:
        ----
            role: ``SOURCE`` or ``TARGET``; variables are read as
                ``BZRED_<ROLE>_<SETTING>``

        Returns:
        -------
            Only the settings that are present in the environment

        """
        keys = {
            "db_type": "DB_TYPE",
            "db_path": "DB_PATH",
            "host": "HOST",
            "port": "PORT",
            "username": "USER",
            "password": "PASSWORD",
            "database": "DATABASE",
            "charset": "CHARSET",
        }
        overrides = {}
        for field_name, suffix in keys.items():
            value = cls.get_env_var(f"{role}_{suffix}")
            if value is not None:
                overrides[field_name] = int(value) if field_name == "port" else value
        return overrides

    @classmethod
    def from_env(cls, role: str, **overrides) -> "DatabaseConfig":
        """Create a database configuration from environment variables."""
        config = cls.env_overrides(role)

        # Override with any directly provided values
        config.update(overrides)

        return cls(**config)

    def get_connection_string(self) -> str:
        """
        Get the database connection string based on the configuration.

        Returns
        -------
            Database connection string for SQLAlchemy

        """
        password_part = f":{self.password}" if self.password else ""
        if self.db_type == "sqlite":
            return f"sqlite:///{Path(self.db_path)}"
        if self.db_type == "mysql":
            port = self.port or 3306
            return (
                f"mysql+pymysql://{self.username}{password_part}@{self.host}:{port}"
                f"/{self.database}?charset={self.charset}"
            )
        port = self.port or 5432
        return f"postgresql://{self.username}{password_part}@{self.host}:{port}/{self.database}"

    def get_sanitized_connection_string(self) -> str:
        """Get the connection string with the password masked, for logging."""
        return re.sub(r"(://[^:/@]+:)[^@]+(@)", r"\1***\2", self.get_connection_string())


class EnumerationConfig(BaseConfig):
    """Bugzilla to Redmine enumeration mappings."""

    priorities: dict[str, int] = Field(
        ...,
        description="Bugzilla priority -> Redmine issue priority (enumerations.id)",
    )
    trackers: dict[str, int] = Field(
        ...,
        description="Bugzilla severity -> Redmine tracker id",
    )
    statuses: dict[str, int] = Field(
        ...,
        description="Bugzilla bug status -> Redmine issue status id",
    )
    default_tracker_id: int | None = Field(
        default=1,
        description="Tracker used for severities without a mapping (None to disallow)",
    )

    @field_validator("priorities", "statuses")
    @classmethod
    def validate_not_empty(cls, value):
        """Priority and status mappings have no fallback, so they cannot be empty."""
        if not value:
            raise ValueError("mapping must not be empty")
        return value


class LdapConfig(BaseConfig):
    """Configuration for the external login directory."""

    host: str
    port: int = 389
    base: str
    bind_user: str
    bind_pass: str = ""
    email_attr: str = "mail"
    login_attr: str = "sAMAccountName"
    timeout: int = 10


class RelationMapping(BaseModel):
    """Source relation table and the direction it maps to in Redmine."""

    table: str
    from_column: str
    to_column: str
    relation_type: str

    @field_validator("table", "from_column", "to_column")
    @classmethod
    def validate_identifier(cls, value):
        """Table and column names are interpolated into SQL."""
        if not _IDENTIFIER.match(value):
            raise ValueError(f"invalid SQL identifier: {value!r}")
        return value


DEFAULT_RELATIONS = [
    RelationMapping(
        table="dependencies", from_column="dependson", to_column="blocked", relation_type="blocks",
    ),
    RelationMapping(
        table="duplicates", from_column="dupe", to_column="dupe_of", relation_type="duplicates",
    ),
]


class MigrationConfig(BaseConfig):
    """Settings that drive how entities are written into Redmine."""

    default_role_id: int = Field(
        ...,
        description="Redmine role given to project members",
        gt=0,
    )
    default_language: str = Field(
        default="en",
        description="Language tag stored on migrated users and groups",
    )
    default_user_password: str = Field(
        default="",
        description="Password for every migrated local user",
    )
    enabled_modules: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ENABLED_MODULES),
        description="Redmine modules enabled on each migrated project",
    )
    project_tracker_ids: list[int] = Field(
        default_factory=lambda: [1, 2, 3],
        description="Trackers linked to each project and to the URL custom field",
    )
    attachments_dir: Path = Field(
        default=Path("files"),
        description="Redmine files directory receiving attachment payloads",
    )
    auth_source_id: int | None = Field(
        default=None,
        description="Redmine auth source for directory users (None for local users only)",
    )
    time_entry_activity_id: int = Field(
        default=9,
        description="Redmine time entry activity id",
    )
    relations: list[RelationMapping] = Field(
        default_factory=lambda: list(DEFAULT_RELATIONS),
        description="Source relation tables and their Redmine relation types",
    )


class AppConfig(BaseConfig):
    """Main application configuration that aggregates all other configurations."""

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    source: DatabaseConfig = Field(
        ...,
        description="Bugzilla database",
    )
    target: DatabaseConfig = Field(
        ...,
        description="Redmine database",
    )
    enumerations: EnumerationConfig
    migration: MigrationConfig
    ldap: LdapConfig | None = Field(
        default=None,
        description="External login directory (required when auth_source_id is set)",
    )
    debug: bool = Field(
        default=False,
        description="Debug mode flag",
    )

    @model_validator(mode="after")
    def validate_directory(self):
        """Directory users need both an auth source and a directory."""
        if self.migration.auth_source_id is not None and self.ldap is None:
            raise ValueError("ldap settings are required when auth_source_id is set")
        return self

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides) -> "AppConfig":
        """
        Create the application configuration from a YAML settings file.

        Connection and logging settings found in the environment win over
        the file.

        Args:
        ----
            path: Path to the settings file
            **overrides: Top-level sections replacing those of the file

        Returns:
        -------
            The application configuration instance

        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        for role in ("source", "target"):
            section = dict(data.get(role) or {})
            section.update(DatabaseConfig.env_overrides(role.upper()))
            data[role] = section

        logging_section = dict(data.get("logging") or {})
        if LoggingConfig.get_env_var("LOG_LEVEL"):
            logging_section["level"] = LoggingConfig.get_env_var("LOG_LEVEL")
        data["logging"] = logging_section

        if cls.get_env_var("DEBUG", "false").lower() == "true":
            data["debug"] = True

        # Override with any directly provided values
        data.update(overrides)

        return cls(**data)

    def configure_logging(self) -> None:
        """Configure logging based on the settings."""
        self.logging.configure_logging(debug=self.debug)
