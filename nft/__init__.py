"""
NFTMint - Content Publication

This package publishes assets and metadata documents to content-addressed
storage and resolves them back for the gallery.
"""

from .exceptions import (
    ContentError,
    UploadError,
    ContentResolutionError,
    MetadataError
)

from .metadata import (
    MetadataRecord,
    MetadataSchema,
    MetadataValidator,
    compose_metadata,
    to_ipfs_uri
)

from .content import (
    ContentStorage,
    LocalContentStorage,
    PublishedAsset,
    StorageType
)

from .ipfs import (
    ContentPublisher,
    IPFSGateway,
    PinataConfig,
    PinataStorage,
    parse_content_id
)

__all__ = [
    "ContentError",
    "UploadError",
    "ContentResolutionError",
    "MetadataError",

    "MetadataRecord",
    "MetadataSchema",
    "MetadataValidator",
    "compose_metadata",
    "to_ipfs_uri",

    "ContentStorage",
    "LocalContentStorage",
    "PublishedAsset",
    "StorageType",

    "ContentPublisher",
    "IPFSGateway",
    "PinataConfig",
    "PinataStorage",
    "parse_content_id"
]
