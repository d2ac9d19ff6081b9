"""
NFTMint - Content Storage Abstraction

This module defines the content-addressed storage interface used to publish
assets and metadata documents, plus a directory-backed implementation used for
dry runs and local development.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .exceptions import ContentResolutionError, UploadError


LOCAL_CID_PREFIX = "local-"


class StorageType(str, Enum):
    """Content storage backends."""
    LOCAL = "local"
    PINATA = "pinata"


@dataclass
class PublishedAsset:
    """Result of publishing content to storage."""

    content_id: str
    size: Optional[int] = None
    pinned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def uri(self) -> str:
        """ipfs:// URI of the published content."""
        return f"ipfs://{self.content_id}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "content_id": self.content_id,
            "uri": self.uri,
            "size": self.size,
            "pinned_at": self.pinned_at.isoformat()
        }


class ContentStorage(ABC):
    """Abstract base class for content-addressed storage collaborators."""

    @abstractmethod
    def publish_bytes(self, data: bytes, name: Optional[str] = None) -> PublishedAsset:
        """Upload raw bytes and return their content identifier."""
        pass

    @abstractmethod
    def publish_json(self, document: Dict[str, Any], name: Optional[str] = None) -> PublishedAsset:
        """Upload a JSON document and return its content identifier."""
        pass

    @abstractmethod
    def resolve(self, content_id: str) -> bytes:
        """Fetch content by identifier."""
        pass

    @abstractmethod
    def get_storage_type(self) -> StorageType:
        """Get storage type."""
        pass


def canonical_json(document: Dict[str, Any]) -> bytes:
    """Serialise a document deterministically so equal documents hash equally."""
    return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class LocalContentStorage(ContentStorage):
    """Local filesystem storage addressed by SHA-256 of the content."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(__name__)

    def _path_for(self, content_id: str) -> Path:
        if not content_id.startswith(LOCAL_CID_PREFIX):
            raise ContentResolutionError(f"Not a local content identifier: {content_id}")
        digest = content_id[len(LOCAL_CID_PREFIX):]
        if len(digest) != 64 or any(c not in "0123456789abcdef" for c in digest):
            raise ContentResolutionError(f"Malformed local content identifier: {content_id}")
        return self.base_path / digest

    def publish_bytes(self, data: bytes, name: Optional[str] = None) -> PublishedAsset:
        """Store content locally under its hash."""
        content_id = LOCAL_CID_PREFIX + hashlib.sha256(data).hexdigest()
        file_path = self._path_for(content_id)

        try:
            if not file_path.exists():
                temp_path = file_path.with_suffix(".tmp")
                with open(temp_path, "wb") as f:
                    f.write(data)
                temp_path.replace(file_path)
        except OSError as e:
            raise UploadError(f"Failed to write {name or content_id}: {e}")

        self.logger.debug(f"Stored {len(data)} bytes locally as {content_id}")
        return PublishedAsset(content_id=content_id, size=len(data))

    def publish_json(self, document: Dict[str, Any], name: Optional[str] = None) -> PublishedAsset:
        """Store a JSON document locally."""
        return self.publish_bytes(canonical_json(document), name=name)

    def resolve(self, content_id: str) -> bytes:
        """Retrieve content from local storage."""
        file_path = self._path_for(content_id)

        if not file_path.exists():
            raise ContentResolutionError(f"Content not found: {content_id}")

        with open(file_path, "rb") as f:
            return f.read()

    def get_storage_type(self) -> StorageType:
        return StorageType.LOCAL
