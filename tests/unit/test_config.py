"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Unit tests for configuration management module.

These tests verify that the configuration module correctly handles the YAML
settings file, environment variables, validation, and default values.
"""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from bzred.core.config import (
    DEFAULT_RELATIONS,
    AppConfig,
    DatabaseConfig,
    EnumerationConfig,
    LoggingConfig,
    MigrationConfig,
    RelationMapping,
)

SETTINGS = {
    "source": {
        "host": "bugzilla.example.com",
        "username": "bugs",
        "password": "bugs-secret",
        "database": "bugs",
    },
    "target": {
        "host": "redmine.example.com",
        "username": "redmine",
        "password": "redmine-secret",
        "database": "redmine",
    },
    "enumerations": {
        "priorities": {"P1": 7, "P2": 6},
        "trackers": {"enhancement": 2},
        "statuses": {"NEW": 1},
    },
    "migration": {"default_role_id": 3},
}


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(SETTINGS), encoding="utf-8")
    return path


@pytest.mark.unit
class TestLoggingConfig:
    """Tests for the logging configuration."""

    def test_logging_config_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = LoggingConfig()
        assert config.level == "INFO"
        assert config.use_rich is True
        assert config.json_format is False

    def test_logging_config_validation(self):
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            assert LoggingConfig(level=level).level == level

        assert LoggingConfig(level="debug").level == "DEBUG"
        # Invalid log level should default to INFO
        assert LoggingConfig(level="INVALID").level == "INFO"

    def test_get_log_level_int(self):
        assert LoggingConfig(level="DEBUG").get_log_level_int() == logging.DEBUG
        assert LoggingConfig(level="ERROR").get_log_level_int() == logging.ERROR

    def test_from_env(self):
        env = {"BZRED_LOG_LEVEL": "WARNING", "BZRED_LOG_JSON": "true"}
        with patch.dict(os.environ, env, clear=True):
            config = LoggingConfig.from_env()
        assert config.level == "WARNING"
        assert config.json_format is True

    def test_configure_logging_forces_debug(self):
        with patch("bzred.core.logging.configure_logging") as mock_configure:
            LoggingConfig(level="WARNING").configure_logging(debug=True)
        assert mock_configure.call_args.kwargs["level"] == logging.DEBUG


@pytest.mark.unit
class TestDatabaseConfig:
    """Tests for the database configuration."""

    def test_sqlite_connection_string(self):
        config = DatabaseConfig(db_type="sqlite", db_path="/tmp/bugs.db")
        assert config.get_connection_string() == "sqlite:////tmp/bugs.db"

    def test_mysql_connection_string(self):
        config = DatabaseConfig(host="db", username="bugs", password="pw", database="bugs")
        assert config.get_connection_string() == (
            "mysql+pymysql://bugs:pw@db:3306/bugs?charset=utf8mb4"
        )

    def test_postgresql_connection_string(self):
        config = DatabaseConfig(
            db_type="postgresql", host="db", port=6543, username="rm", database="redmine",
        )
        assert config.get_connection_string() == "postgresql://rm@db:6543/redmine"

    def test_sanitized_connection_string(self):
        config = DatabaseConfig(host="db", username="bugs", password="pw", database="bugs")
        sanitized = config.get_sanitized_connection_string()
        assert "pw" not in sanitized
        assert "bugs:***@db" in sanitized

    def test_sqlite_requires_path(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(db_type="sqlite")

    def test_mysql_requires_host(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(username="bugs", database="bugs")

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(db_type="oracle", host="db", username="u", database="d")

    def test_from_env(self):
        env = {
            "BZRED_SOURCE_HOST": "db.internal",
            "BZRED_SOURCE_PORT": "3307",
            "BZRED_SOURCE_USER": "bugs",
            "BZRED_SOURCE_DATABASE": "bugs",
        }
        with patch.dict(os.environ, env, clear=True):
            config = DatabaseConfig.from_env("SOURCE", password="pw")
        assert config.host == "db.internal"
        assert config.port == 3307
        assert config.password == "pw"


@pytest.mark.unit
class TestEnumerationConfig:
    def test_defaults(self):
        config = EnumerationConfig(priorities={"P1": 7}, trackers={}, statuses={"NEW": 1})
        assert config.default_tracker_id == 1

    @pytest.mark.parametrize("field", ["priorities", "statuses"])
    def test_mapping_cannot_be_empty(self, field):
        values = {"priorities": {"P1": 7}, "trackers": {}, "statuses": {"NEW": 1}}
        values[field] = {}
        with pytest.raises(ValidationError):
            EnumerationConfig(**values)


@pytest.mark.unit
class TestMigrationConfig:
    def test_defaults(self):
        config = MigrationConfig(default_role_id=3)
        assert config.default_language == "en"
        assert config.project_tracker_ids == [1, 2, 3]
        assert "issue_tracking" in config.enabled_modules
        assert config.attachments_dir == Path("files")
        assert config.time_entry_activity_id == 9
        assert config.relations == DEFAULT_RELATIONS

    def test_role_must_be_positive(self):
        with pytest.raises(ValidationError):
            MigrationConfig(default_role_id=0)

    def test_default_relations(self):
        blocks, duplicates = DEFAULT_RELATIONS
        assert (blocks.from_column, blocks.to_column, blocks.relation_type) == (
            "dependson", "blocked", "blocks",
        )
        assert (duplicates.from_column, duplicates.to_column) == ("dupe", "dupe_of")

    def test_relation_identifiers_are_checked(self):
        with pytest.raises(ValidationError):
            RelationMapping(
                table="dependencies; DROP TABLE bugs",
                from_column="dependson",
                to_column="blocked",
                relation_type="blocks",
            )


@pytest.mark.unit
class TestAppConfig:
    """Tests for loading the whole settings file."""

    def test_from_yaml(self, settings_file):
        with patch.dict(os.environ, {}, clear=True):
            config = AppConfig.from_yaml(settings_file)

        assert config.source.host == "bugzilla.example.com"
        assert config.target.database == "redmine"
        assert config.enumerations.priorities == {"P1": 7, "P2": 6}
        assert config.migration.default_role_id == 3
        assert config.ldap is None
        assert config.debug is False

    def test_environment_overrides_file(self, settings_file):
        env = {
            "BZRED_TARGET_PASSWORD": "from-env",
            "BZRED_LOG_LEVEL": "ERROR",
            "BZRED_DEBUG": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = AppConfig.from_yaml(settings_file)

        assert config.target.password == "from-env"
        assert config.source.password == "bugs-secret"
        assert config.logging.level == "ERROR"
        assert config.debug is True

    def test_direct_overrides(self, settings_file):
        with patch.dict(os.environ, {}, clear=True):
            config = AppConfig.from_yaml(settings_file, debug=True)
        assert config.debug is True

    def test_auth_source_requires_ldap(self, settings_file):
        migration = {"default_role_id": 3, "auth_source_id": 1}
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError):
                AppConfig.from_yaml(settings_file, migration=migration)

    def test_auth_source_with_ldap(self, settings_file):
        migration = {"default_role_id": 3, "auth_source_id": 1}
        ldap = {"host": "ldap.example.com", "base": "dc=example,dc=com", "bind_user": "reader"}
        with patch.dict(os.environ, {}, clear=True):
            config = AppConfig.from_yaml(settings_file, migration=migration, ldap=ldap)
        assert config.ldap.port == 389
        assert config.ldap.email_attr == "mail"
