"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
External login directory used to provision Redmine users.

Bugzilla users with an ``extern_id`` can be created in Redmine as directory
users: their Redmine login is the canonical login found in LDAP by e-mail
address. A user missing from the directory is not an error; the caller then
creates a local user instead.
"""

import logging

from ldap3 import SIMPLE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from bzred.core.config import LdapConfig
from bzred.exceptions import ExternalDirectoryUnavailable

logger = logging.getLogger("bzred.directory")


class LoginDirectory:
    """Interface of a login directory."""

    def open(self) -> None:
        """Establish the directory session."""

    def close(self) -> None:
        """Release the directory session."""

    def resolve_login(self, email: str) -> str | None:
        """Return the canonical login for an e-mail address, or None."""
        raise NotImplementedError


class NullDirectory(LoginDirectory):
    """Directory used when no auth source is configured; knows nobody."""

    def resolve_login(self, email: str) -> str | None:
        return None


class LdapLoginDirectory(LoginDirectory):
    """LDAP directory searched by e-mail attribute with a simple bind."""

    def __init__(self, config: LdapConfig):
        self.config = config
        self._connection: Connection | None = None

    def open(self) -> None:
        """
        Bind to the directory.

        Raises:
            ExternalDirectoryUnavailable: If the bind is refused or the
                server cannot be reached

        """
        server = Server(self.config.host, port=self.config.port, connect_timeout=self.config.timeout)
        connection = Connection(
            server,
            user=self.config.bind_user,
            password=self.config.bind_pass,
            authentication=SIMPLE,
            receive_timeout=self.config.timeout,
        )
        logger.info(f"Binding to LDAP server {self.config.host}:{self.config.port}")
        try:
            bound = connection.bind()
        except LDAPException as e:
            raise ExternalDirectoryUnavailable(self.config.host, str(e)) from e
        if not bound:
            result = connection.result or {}
            raise ExternalDirectoryUnavailable(self.config.host, result.get("description"))
        self._connection = connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.unbind()
            self._connection = None

    def resolve_login(self, email: str) -> str | None:
        if self._connection is None:
            self.open()

        search_filter = f"({self.config.email_attr}={escape_filter_chars(email)})"
        logger.info(f"Searching LDAP for {email}")
        try:
            self._connection.search(
                search_base=self.config.base,
                search_filter=search_filter,
                attributes=[self.config.login_attr],
            )
        except LDAPException as e:
            raise ExternalDirectoryUnavailable(self.config.host, str(e)) from e

        for entry in self._connection.entries:
            login = entry[self.config.login_attr].value
            if isinstance(login, list):
                login = login[0] if login else None
            if login:
                logger.info(f"User {email} found in LDAP as {login}")
                return login
        return None
