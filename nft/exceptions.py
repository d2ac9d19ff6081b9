"""
NFTMint - Content Exceptions

This module defines exceptions raised while publishing or resolving content
on content-addressed storage.
"""

from typing import Optional


class ContentError(Exception):
    """Base exception for content storage errors."""
    pass


class UploadError(ContentError):
    """Raised when the storage collaborator is unreachable or rejects an upload."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ContentResolutionError(ContentError):
    """Raised when content cannot be fetched back from storage or any gateway."""
    pass


class MetadataError(ContentError):
    """Raised when a metadata document is malformed or fails schema validation."""
    pass
