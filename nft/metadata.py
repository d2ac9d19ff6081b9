"""
NFTMint - NFT Metadata Composition

This module composes the metadata document published alongside every minted
asset and validates metadata documents resolved back from storage.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from .exceptions import MetadataError


IPFS_SCHEME = "ipfs://"


class MetadataSchema:
    """JSON Schema definitions for NFT metadata validation."""

    BASE_SCHEMA = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": "NFTMint Token Metadata",
        "type": "object",
        "required": ["name", "image"],
        "properties": {
            "name": {
                "type": "string",
                "minLength": 1,
                "maxLength": 200,
                "description": "Display name of the token"
            },
            "description": {
                "type": "string",
                "maxLength": 5000,
                "description": "Free-form description of the token"
            },
            "image": {
                "type": "string",
                "minLength": 1,
                "description": "Content reference of the asset (ipfs:// URI or URL)"
            }
        },
        "additionalProperties": True
    }


class MetadataValidator:
    """Validates metadata documents against the metadata schema."""

    def __init__(self, schema: Optional[Dict[str, Any]] = None):
        self.schema = schema or MetadataSchema.BASE_SCHEMA
        self._validator = Draft7Validator(self.schema)

    def validate(self, data: Any) -> List[str]:
        """
        Validate a metadata document.

        Args:
            data: Decoded JSON document

        Returns:
            List of error messages, empty if the document is valid
        """
        errors = []
        for error in sorted(self._validator.iter_errors(data), key=lambda e: list(e.path)):
            location = ".".join(str(p) for p in error.path) or "<root>"
            errors.append(f"{location}: {error.message}")
        return errors

    def is_valid(self, data: Any) -> bool:
        """Check whether a metadata document is valid."""
        return not self.validate(data)


@dataclass
class MetadataRecord:
    """Metadata document describing one minted token."""

    name: str
    description: str
    image: str

    # Fields found in resolved documents beyond the three we publish
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for JSON serialization."""
        result = dict(self.properties)
        result.update({
            "name": self.name,
            "description": self.description,
            "image": self.image,
        })
        return result

    def to_json(self, indent: Optional[int] = None) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @property
    def image_content_id(self) -> Optional[str]:
        """Content identifier of the image when it is an ipfs:// reference."""
        if self.image.startswith(IPFS_SCHEME):
            return self.image[len(IPFS_SCHEME):]
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], validate: bool = True) -> 'MetadataRecord':
        """
        Create MetadataRecord from a decoded document.

        Args:
            data: Decoded JSON document
            validate: Check the document against the metadata schema first

        Raises:
            MetadataError: If the document fails validation
        """
        if validate:
            errors = MetadataValidator().validate(data)
            if errors:
                raise MetadataError(f"Invalid metadata document: {'; '.join(errors)}")

        extra = {k: v for k, v in data.items() if k not in ("name", "description", "image")}
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            image=data["image"],
            properties=extra
        )

    @classmethod
    def from_json(cls, payload: bytes) -> 'MetadataRecord':
        """Create MetadataRecord from raw JSON bytes."""
        try:
            data = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as e:
            raise MetadataError(f"Metadata is not valid JSON: {e}")
        return cls.from_dict(data)


def to_ipfs_uri(content_id: str) -> str:
    """Normalise a bare content identifier or ipfs:// URI to ipfs:// form."""
    if content_id.startswith(IPFS_SCHEME):
        return content_id
    return f"{IPFS_SCHEME}{content_id}"


def compose_metadata(name: str, description: str, content_id: str) -> MetadataRecord:
    """
    Compose the metadata document for a published asset.

    Args:
        name: Display name of the token
        description: Token description
        content_id: Content identifier of the published asset

    Returns:
        MetadataRecord whose image points at the asset
    """
    if not name or not name.strip():
        raise ValueError("Metadata name cannot be empty")
    if not content_id:
        raise ValueError("Content identifier cannot be empty")

    return MetadataRecord(
        name=name.strip(),
        description=description or "",
        image=to_ipfs_uri(content_id)
    )
