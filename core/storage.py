"""
Artifact storage for original images, overlays and report PDFs.
"""

import logging
import re
import time
import uuid
from pathlib import Path
from typing import Optional, Protocol

from core.errors import NotFoundError

logger = logging.getLogger(__name__)


class ImageStorage(Protocol):
    """Anything that can store bytes and hand them back by reference."""

    def put(self, data: bytes, name_hint: str, content_type: Optional[str] = None) -> str:
        ...

    def get(self, ref: str) -> bytes:
        ...


def safe_name(name: str) -> str:
    """Reduce a client supplied file name to [A-Za-z0-9._-]."""
    name = Path(name or "").name
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or "file"


class LocalImageStorage:
    """
    Stores artifacts as files under a root directory.

    References are bare file names; `public_url` turns one into the path
    served by the files router.
    """

    def __init__(self, root_dir: str, url_prefix: str = "/api/files"):
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def put(self, data: bytes, name_hint: str, content_type: Optional[str] = None) -> str:
        """
        Write bytes to a new uniquely named file.

        Args:
            data: File contents
            name_hint: Prefix/name used to build the stored file name
            content_type: MIME type, recorded in the log only

        Returns:
            Reference of the stored artifact
        """
        ref = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe_name(name_hint)}"
        path = self.root_dir / ref
        path.write_bytes(data)
        logger.info(f"Stored {len(data)} bytes as {ref} ({content_type or 'unknown type'})")
        return ref

    def path_for(self, ref: str) -> Path:
        """Resolve a reference to its file, refusing anything outside root."""
        name = Path(ref).name
        if not name or name != ref:
            raise NotFoundError(f"Invalid artifact reference: {ref}")
        path = self.root_dir / name
        if not path.is_file():
            raise NotFoundError(f"Artifact not found: {ref}")
        return path

    def get(self, ref: str) -> bytes:
        return self.path_for(ref).read_bytes()

    def public_url(self, ref: Optional[str]) -> Optional[str]:
        if ref is None:
            return None
        return f"{self.url_prefix}/{ref}"
