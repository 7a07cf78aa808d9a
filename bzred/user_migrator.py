"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Migration of Bugzilla profiles, groups and group memberships.

Profiles become Redmine users (keeping their ids). Bugzilla groups become
Redmine groups, which Redmine stores as ``users`` rows of type ``Group``
with database-assigned ids. Group access to products becomes project
membership: every user of a group is a member of the group's products, the
group itself is a member holding the default role, and each user member
inherits that role from the group.
"""

import hashlib
import logging
import re

from bzred.base_migrator import EntityMigrator
from bzred.core.config import MigrationConfig
from bzred.core.db_manager import SQLStore
from bzred.directory import LoginDirectory, NullDirectory

logger = logging.getLogger("bzred.user_migrator")

USER_STATUS_ACTIVE = 1
USER_STATUS_LOCKED = 3

PLACEHOLDER_NAME = "empty"
MAIL_NOTIFICATION = "only_my_events"
PASSWORD_SALT = ""

# Membership rows carry a fixed creation time, Bugzilla does not record one
MEMBER_CREATED_ON = "2007-01-01 12:00:00"

USER_PREFERENCES = "---\n:comments_sorting: asc\n:no_self_notified: true\n"

_NAME_SEPARATORS = re.compile(r"[ ,]+")

PROFILES_SQL = "SELECT userid, login_name, realname, disabledtext, extern_id FROM profiles"

GROUPS_SQL = "SELECT name FROM `groups`"

MEMBERS_SQL = """
    SELECT DISTINCT user_group_map.user_id, group_control_map.product_id
    FROM group_control_map, user_group_map
    WHERE group_control_map.group_id = user_group_map.group_id
"""

GROUP_PRODUCTS_SQL = """
    SELECT DISTINCT `groups`.name, group_control_map.product_id
    FROM group_control_map, `groups`
    WHERE `groups`.id = group_control_map.group_id
"""

GROUP_ID_SQL = "SELECT id FROM users WHERE lastname = :name AND type = 'Group'"

INHERITED_ROLES_SQL = """
    INSERT INTO member_roles (member_id, role_id, inherited_from)
    SELECT members.id, :role_id, :inherited_from
    FROM members, users
    WHERE members.project_id = :project_id
      AND members.user_id = users.id
      AND users.type = 'User'
"""

GROUP_MEMBERSHIP_SQL = """
    SELECT DISTINCT
        (SELECT members.user_id FROM members WHERE members.id = mr.inherited_from) AS group_id,
        m.user_id
    FROM member_roles mr, members m
    WHERE mr.inherited_from IS NOT NULL
      AND mr.inherited_from <> 0
      AND mr.member_id = m.id
"""


def split_real_name(real_name: str | None) -> tuple[str, str]:
    """
    Split a Bugzilla real name into Redmine first and last names.

    Returns:
        Tuple of (firstname, lastname); missing parts are "empty"

    """
    tokens = [token for token in _NAME_SEPARATORS.split(real_name or "") if token.strip()]
    firstname = tokens[0] if tokens else PLACEHOLDER_NAME
    lastname = tokens[1] if len(tokens) > 1 else PLACEHOLDER_NAME
    return firstname, lastname


def user_status(disabled_text: str | None) -> int:
    """Users with a disabled text are locked."""
    return USER_STATUS_LOCKED if (disabled_text or "").strip() else USER_STATUS_ACTIVE


def hash_password(password: str, salt: str = PASSWORD_SALT) -> str:
    """Return Redmine's ``sha1(salt + sha1(password))`` password hash."""
    inner = hashlib.sha1(password.encode("utf-8")).hexdigest()
    return hashlib.sha1((salt + inner).encode("utf-8")).hexdigest()


class UserMigrator(EntityMigrator):
    """Migrates profiles, groups, memberships and member roles."""

    CLEAR_TABLES = (
        "users",
        "email_addresses",
        "user_preferences",
        "members",
        "member_roles",
        "groups_users",
        "messages",
        "tokens",
        "watchers",
    )

    def __init__(
        self,
        source: SQLStore,
        target: SQLStore,
        config: MigrationConfig,
        directory: LoginDirectory | None = None,
    ):
        super().__init__(source, target, config)
        self.directory = NullDirectory() if directory is None else directory
        self.hashed_password = hash_password(config.default_user_password)
        # Redmine id of each migrated group, by group name
        self.group_ids: dict[str, int] = {}

    def migrate_users(self) -> int:
        count = 0
        for row in self.source.select(PROFILES_SQL):
            user_id = row["userid"]
            email = row["login_name"]
            firstname, lastname = split_real_name(row["realname"])
            values = {
                "id": user_id,
                "login": email,
                "firstname": firstname,
                "lastname": lastname,
                "language": self.config.default_language,
                "mail_notification": MAIL_NOTIFICATION,
                "status": user_status(row["disabledtext"]),
                "type": "User",
            }

            login = self._directory_login(row["extern_id"], email)
            if login is not None:
                values["login"] = login
                values["auth_source_id"] = self.config.auth_source_id
            else:
                values["hashed_password"] = self.hashed_password
                values["salt"] = PASSWORD_SALT

            self.insert("users", values)
            self.insert("user_preferences", {"user_id": user_id, "others": USER_PREFERENCES})
            self.insert(
                "email_addresses",
                {"user_id": user_id, "address": email, "is_default": 1, "notify": 1},
            )
            count += 1
        return count

    def _directory_login(self, extern_id, email: str) -> str | None:
        if extern_id is None or self.config.auth_source_id is None:
            return None
        login = self.directory.resolve_login(email)
        if login is None:
            logger.info(f"{email} not found in directory, creating a local user")
        return login

    def migrate_groups(self) -> int:
        count = 0
        for row in self.source.select(GROUPS_SQL):
            name = row["name"]
            group_id = self.insert(
                "users",
                {
                    "lastname": name,
                    "mail_notification": MAIL_NOTIFICATION,
                    "admin": 1 if name == "admin" else 0,
                    "status": USER_STATUS_ACTIVE,
                    "type": "Group",
                    "language": self.config.default_language,
                },
            )
            if group_id is None:
                group_id = self.target.scalar(GROUP_ID_SQL, {"name": name})
            logger.debug(f"Group {name} created with id {group_id}")
            self.group_ids[name] = group_id
            count += 1
        return count

    def group_id(self, name: str) -> int | None:
        """Return the Redmine id of a migrated group."""
        if name not in self.group_ids:
            self.group_ids[name] = self.target.scalar(GROUP_ID_SQL, {"name": name})
        return self.group_ids[name]

    def migrate_members(self) -> int:
        count = 0
        for row in self.source.select(MEMBERS_SQL):
            self._insert_member(row["user_id"], row["product_id"])
            count += 1
        return count

    def _insert_member(self, user_id: int, project_id: int) -> int | None:
        return self.insert(
            "members",
            {
                "user_id": user_id,
                "project_id": project_id,
                "created_on": MEMBER_CREATED_ON,
                "mail_notification": 0,
            },
        )

    def migrate_member_roles(self) -> int:
        role_id = self.config.default_role_id
        count = 0
        # Materialised, the loop inserts into members
        for row in self.source.select_all(GROUP_PRODUCTS_SQL):
            project_id = row["product_id"]
            group_member_id = self._insert_member(self.group_id(row["name"]), project_id)
            self.insert(
                "member_roles",
                {"member_id": group_member_id, "role_id": role_id, "inherited_from": 0},
            )
            self.target.execute(
                INHERITED_ROLES_SQL,
                {"role_id": role_id, "inherited_from": group_member_id, "project_id": project_id},
            )
            count += 1
        return count

    def migrate_groups_users(self) -> int:
        count = 0
        for row in self.target.select_all(GROUP_MEMBERSHIP_SQL):
            self.insert("groups_users", {"group_id": row["group_id"], "user_id": row["user_id"]})
            count += 1
        return count
