"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Error taxonomy for Bugzilla to Redmine migrations.

Every failure is fatal to the run. The exceptions carry structured context
(domain, code, entity id, statement) so callers and tests can inspect them
without parsing messages.
"""

from typing import Any


class MigrationError(Exception):
    """Base class for every error raised by a migration run."""


class UnmappedEnumeration(MigrationError):
    """Raised when a source enumeration code has no target mapping."""

    def __init__(self, domain: str, code: Any, entity_id: Any = None):
        self.domain = domain
        self.code = code
        self.entity_id = entity_id
        where = f"bug {entity_id}: " if entity_id is not None else ""
        super().__init__(f"{where}cannot map {domain} code {code!r}")


class ValidationFailed(MigrationError):
    """Raised by the sanity gate after collecting every violation."""

    def __init__(self, violations):
        self.violations = tuple(violations)
        super().__init__(
            f"{self.count} validation violation(s) found, please fix the settings and re-run",
        )

    @property
    def count(self) -> int:
        return len(self.violations)


class ExternalDirectoryUnavailable(MigrationError):
    """Raised when the external login directory cannot be bound."""

    def __init__(self, host: str, reason: str | None = None):
        self.host = host
        self.reason = reason
        message = f"LDAP bind failed for {host}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StoreIOFailure(MigrationError):
    """Raised when a statement against the source or target store fails."""

    def __init__(self, store: str, statement: str, reason: str | None = None):
        self.store = store
        self.statement = statement
        self.reason = reason
        super().__init__(f"{store}: statement failed: {reason or 'unknown error'}")


class BlobPersistFailure(MigrationError):
    """Raised when an attachment payload cannot be written to disk."""

    def __init__(self, path, reason: str | None = None):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot write attachment file {path}: {reason or 'unknown error'}")


class StreamOrderingViolation(MigrationError):
    """Raised when a grouped row stream is not ordered by its group key."""

    def __init__(self, previous: Any, current: Any, position: int):
        self.previous = previous
        self.current = current
        self.position = position
        super().__init__(
            f"row {position}: group key {current!r} follows {previous!r}, "
            "the source query must be ordered by the group key",
        )
