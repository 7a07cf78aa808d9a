"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""Migration of bug attachments: Redmine rows plus payload files."""

import logging

from bzred.base_migrator import EntityMigrator
from bzred.blob_storage import AttachmentStore, disk_filename
from bzred.core.config import MigrationConfig
from bzred.core.db_manager import SQLStore
from bzred.derived_values import coerce_timestamp

logger = logging.getLogger("bzred.attachment_migrator")

ATTACHMENTS_SQL = """
    SELECT a.attach_id, a.bug_id, a.filename, a.mimetype, a.submitter_id,
           a.creation_ts, a.description, ad.thedata
    FROM attachments a, attach_data ad
    WHERE a.attach_id = ad.id
"""


class AttachmentMigrator(EntityMigrator):
    """Migrates attachments and copies their payloads to the files directory."""

    CLEAR_TABLES = ("attachments",)

    def __init__(
        self,
        source: SQLStore,
        target: SQLStore,
        config: MigrationConfig,
        store: AttachmentStore | None = None,
    ):
        super().__init__(source, target, config)
        self.store = AttachmentStore(config.attachments_dir) if store is None else store

    def migrate_attachments(self) -> int:
        self.clear()
        count = 0
        for row in self.source.select(ATTACHMENTS_SQL, stream=True):
            attach_id = row["attach_id"]
            data = bytes(row["thedata"] or b"")
            name = disk_filename(attach_id, row["filename"])
            self.insert(
                "attachments",
                {
                    "id": attach_id,
                    "container_id": row["bug_id"],
                    "container_type": "Issue",
                    "filename": row["filename"],
                    "filesize": len(data),
                    "disk_filename": name,
                    "content_type": row["mimetype"],
                    "digest": "",
                    "downloads": 0,
                    "author_id": row["submitter_id"],
                    "created_on": coerce_timestamp(row["creation_ts"]),
                    "description": row["description"],
                },
            )
            self.store.persist(name, data)
            count += 1
        return count
