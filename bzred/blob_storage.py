"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""Attachment payload storage in the Redmine files directory."""

import logging
import re
from pathlib import Path

from bzred.exceptions import BlobPersistFailure

logger = logging.getLogger("bzred.blob_storage")

PLACEHOLDER_EXTENSION = "dat"

_EXTENSION = re.compile(r"\.(\w+)$")


def file_extension(filename: str | None) -> str:
    """Return the extension of a filename, or the placeholder when it has none."""
    match = _EXTENSION.search(filename or "")
    return match.group(1) if match else PLACEHOLDER_EXTENSION


def disk_filename(attachment_id: int, filename: str | None) -> str:
    """Return the Redmine disk filename of an attachment, e.g. ``a42.png``."""
    return f"a{attachment_id}.{file_extension(filename)}".lower()


class AttachmentStore:
    """Writes attachment payloads below one directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def persist(self, name: str, data: bytes) -> Path:
        """
        Write a payload, replacing any existing file of the same name.

        Args:
            name: Disk filename inside the directory
            data: The payload

        Returns:
            Path of the written file

        Raises:
            BlobPersistFailure: If the file cannot be written

        """
        path = self.directory / name
        logger.info(f"Writing {path}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(bytes(data or b""))
        except OSError as e:
            raise BlobPersistFailure(path, e.strerror or str(e)) from e
        return path
