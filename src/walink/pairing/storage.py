"""Per-session storage directory for backend key material.

This module provides:
- SessionStorage: one directory per pairing session, created fresh
  (destroy-then-create), read back once after linking, removed at the end.

Security features:
- Directory permissions 700
- Session id validation (prevent path traversal)
- Every session gets its own directory; nothing is shared between sessions
"""

import logging
import os
import re
import shutil
from pathlib import Path
from typing import Optional

from walink.errors import StorageError
from walink.logging import short_id
from walink.pairing.session import CREDENTIALS_FILE_NAME, CredentialArtifact

__all__ = [
    "SessionStorage",
    "StorageError",
]

logger = logging.getLogger(__name__)

# Valid session id pattern: alphanumeric, hyphens, underscores
SESSION_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class SessionStorage:
    """Storage directory owned by a single pairing session.

    Attributes:
        root: Parent directory holding all session directories.
        session_id: Owning session.
        path: This session's directory.
    """

    def __init__(self, root: Path | str, session_id: str, prefix: str = "walink-") -> None:
        """Initialize storage handle. Nothing is touched on disk yet.

        Args:
            root: Parent directory (e.g. the system temp dir).
            session_id: Owning session id.
            prefix: Directory name prefix.

        Raises:
            StorageError: If session id is invalid.
        """
        if not SESSION_ID_PATTERN.match(session_id):
            raise StorageError(f"Invalid session ID: {session_id}")

        self.root = Path(root)
        self.session_id = session_id
        self.path = self.root / f"{prefix}{session_id}"

    @property
    def credentials_path(self) -> Path:
        """Path of the credentials file the backend writes."""
        return self.path / CREDENTIALS_FILE_NAME

    def prepare(self) -> Path:
        """Destroy any existing directory, then create it empty.

        Missing directories are fine; this is safe to call repeatedly.

        Returns:
            The prepared directory path.

        Raises:
            StorageError: If the directory cannot be removed or created.
        """
        try:
            self._remove_tree()
            self.path.mkdir(parents=True, exist_ok=True)
            os.chmod(self.path, 0o700)
        except OSError as e:
            raise StorageError(f"Cannot prepare session storage {self.path}: {e}") from e

        logger.debug(f"Session storage ready for {short_id(self.session_id)}")
        return self.path

    def read_credentials(self) -> Optional[CredentialArtifact]:
        """Read the credentials file written by the backend.

        Returns:
            CredentialArtifact, or None if the file does not exist.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        path = self.credentials_path
        if not path.is_file():
            return None
        try:
            payload = path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        return CredentialArtifact(payload=payload)

    def remove(self) -> bool:
        """Remove the session directory.

        Returns:
            True if removed, False if it did not exist.

        Raises:
            StorageError: If removal fails.
        """
        existed = self.path.exists()
        try:
            self._remove_tree()
        except OSError as e:
            raise StorageError(f"Cannot remove session storage {self.path}: {e}") from e
        return existed

    def _remove_tree(self) -> None:
        if self.path.is_symlink() or self.path.is_file():
            self.path.unlink()
        elif self.path.exists():
            shutil.rmtree(self.path)
