"""Storage provider abstraction.

Defines the interface the timeline core uses to persist document bytes.
The core only keeps the metadata a provider returns.
"""
import mimetypes
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union
from uuid import uuid4

from purchase_timeline.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._/-]+")


class StorageError(Exception):
    """Raised when a provider cannot store or delete an object."""
    pass


@dataclass
class StoredObject:
    """What a provider returns after an upload."""
    url: str
    key: str
    size: int
    format: str


def build_key(key_hint: str, mime_type: str) -> str:
    """
    Build a unique object key from a hint such as "timelines/<id>/inspection".

    Args:
        key_hint: Caller supplied prefix
        mime_type: Used to pick a file extension

    Returns:
        Key of the form "<hint>/<random>.<ext>"
    """
    prefix = _UNSAFE_KEY_CHARS.sub("_", key_hint).strip("/") or "documents"
    prefix = "/".join(part for part in prefix.split("/") if part not in ("", ".", ".."))
    extension = mimetypes.guess_extension(mime_type) or ""
    return f"{prefix}/{uuid4().hex}{extension}"


def format_from_mime(mime_type: str) -> str:
    """Short format name for a MIME type, e.g. "pdf" for application/pdf."""
    extension = mimetypes.guess_extension(mime_type)
    if extension:
        return extension.lstrip(".")
    return mime_type.rsplit("/", 1)[-1]


class StorageProvider(ABC):
    """Abstract storage provider for document bytes."""

    name: str = "abstract"

    @abstractmethod
    def upload(self, content: bytes, key_hint: str, mime_type: str) -> StoredObject:
        """
        Persist content.

        Args:
            content: Raw bytes
            key_hint: Prefix for the generated key
            mime_type: MIME type of the content

        Returns:
            StoredObject describing where the bytes went
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove an object. Deleting a missing key is not an error.

        Args:
            key: Key returned by upload
        """
        raise NotImplementedError


class LocalFileStorageProvider(StorageProvider):
    """Local filesystem implementation of StorageProvider."""

    name = "local"

    def __init__(self, root_path: Union[str, Path]):
        """
        Initialize filesystem storage.

        Args:
            root_path: Directory objects are written under
        """
        self.root = Path(root_path)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    def upload(self, content: bytes, key_hint: str, mime_type: str) -> StoredObject:
        key = build_key(key_hint, mime_type)
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Failed to store {key}: {e}") from e

        logger.debug("Stored %d bytes at %s", len(content), path)
        return StoredObject(
            url=path.as_uri(),
            key=key,
            size=len(content),
            format=format_from_mime(mime_type),
        )

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        logger.debug("Deleted %s", path)


class InMemoryStorageProvider(StorageProvider):
    """Keeps objects in a dict. Useful for tests and local experiments."""

    name = "memory"

    def __init__(self, base_url: str = "memory://"):
        self.base_url = base_url
        self.objects: Dict[str, bytes] = {}

    def upload(self, content: bytes, key_hint: str, mime_type: str) -> StoredObject:
        key = build_key(key_hint, mime_type)
        self.objects[key] = content
        return StoredObject(
            url=f"{self.base_url}{key}",
            key=key,
            size=len(content),
            format=format_from_mime(mime_type),
        )

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def get(self, key: str) -> Optional[bytes]:
        return self.objects.get(key)
