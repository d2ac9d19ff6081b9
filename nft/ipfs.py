"""
NFTMint - IPFS Publishing and Resolution

This module publishes assets and metadata documents to IPFS through the Pinata
pinning API and resolves content back through public gateways with fallback.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .content import ContentStorage, PublishedAsset, StorageType
from .exceptions import ContentError, ContentResolutionError, MetadataError, UploadError
from .metadata import MetadataRecord


PINATA_API_URL = "https://api.pinata.cloud"

_IPFS_PATH_RE = re.compile(r"/ipfs/([^/?#]+)")


@dataclass
class IPFSGateway:
    """IPFS gateway configuration."""

    name: str
    url: str
    priority: int = 1
    timeout: int = 30

    def construct_url(self, cid: str, path: str = "") -> str:
        """Construct full URL for content."""
        base_url = self.url.rstrip('/')
        if not base_url.endswith('/ipfs'):
            base_url += '/ipfs'

        full_path = f"{base_url}/{cid}"
        if path:
            full_path += f"/{path.lstrip('/')}"

        return full_path


DEFAULT_GATEWAYS = [
    IPFSGateway("Pinata", "https://gateway.pinata.cloud", priority=1),
    IPFSGateway("IPFS.io", "https://ipfs.io", priority=2),
    IPFSGateway("dweb.link", "https://dweb.link", priority=3),
]


@dataclass
class PinataConfig:
    """Pinata client configuration."""

    jwt: Optional[str] = None
    api_url: str = PINATA_API_URL
    gateways: List[IPFSGateway] = field(default_factory=lambda: list(DEFAULT_GATEWAYS))
    upload_timeout: int = 120  # seconds
    max_retries: int = 3
    backoff_factor: float = 1.0

    def __post_init__(self):
        self.gateways.sort(key=lambda g: g.priority)


def parse_content_id(ref: str) -> Optional[str]:
    """
    Extract the content identifier from a content reference.

    Accepts ipfs:// URIs, gateway URLs containing /ipfs/<cid> and bare
    identifiers. Returns None for URLs that do not point into IPFS.
    """
    ref = ref.strip()
    if ref.startswith("ipfs://"):
        cid = ref[len("ipfs://"):]
        if cid.startswith("ipfs/"):
            cid = cid[len("ipfs/"):]
        return cid.split("/", 1)[0] or None

    if ref.startswith(("http://", "https://")):
        match = _IPFS_PATH_RE.search(urlparse(ref).path)
        return match.group(1) if match else None

    return ref or None


class PinataStorage(ContentStorage):
    """IPFS storage backed by the Pinata pinning service."""

    def __init__(self, config: PinataConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self._stats = {
            "uploads": 0,
            "upload_failures": 0,
            "gateway_requests": 0,
            "gateway_failures": 0
        }

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=self.config.max_retries,
                backoff_factor=self.config.backoff_factor,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET", "POST"]
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.jwt}"}

    def _pin(self, endpoint: str, **kwargs) -> PublishedAsset:
        if not self.config.jwt:
            raise UploadError("Pinata JWT is not configured; uploads are unavailable")
        url = f"{self.config.api_url.rstrip('/')}/pinning/{endpoint}"
        try:
            response = self.session.post(
                url,
                headers=self._auth_headers(),
                timeout=self.config.upload_timeout,
                **kwargs
            )
        except requests.exceptions.RequestException as e:
            self._stats["upload_failures"] += 1
            raise UploadError(f"Pinata request failed: {e}")

        if not response.ok:
            self._stats["upload_failures"] += 1
            raise UploadError(
                f"Pinata rejected upload: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code
            )

        try:
            body = response.json()
            cid = body["IpfsHash"]
        except (ValueError, KeyError) as e:
            self._stats["upload_failures"] += 1
            raise UploadError(f"Unexpected Pinata response: {e}")

        self._stats["uploads"] += 1
        self.logger.info(f"Pinned content on IPFS: {cid}")
        return PublishedAsset(content_id=cid, size=body.get("PinSize"))

    def publish_bytes(self, data: bytes, name: Optional[str] = None) -> PublishedAsset:
        """Pin raw bytes through pinFileToIPFS."""
        filename = name or "asset"
        return self._pin(
            "pinFileToIPFS",
            files={"file": (filename, data)},
            data={"pinataMetadata": json.dumps({"name": filename})}
        )

    def publish_json(self, document: Dict[str, Any], name: Optional[str] = None) -> PublishedAsset:
        """Pin a JSON document through pinJSONToIPFS."""
        payload: Dict[str, Any] = {"pinataContent": document}
        if name:
            payload["pinataMetadata"] = {"name": name}
        return self._pin("pinJSONToIPFS", json=payload)

    def resolve(self, content_id: str) -> bytes:
        """Retrieve content via IPFS gateways with fallback."""
        errors = []

        for gateway in self.config.gateways:
            url = gateway.construct_url(content_id)
            try:
                response = self.session.get(url, timeout=gateway.timeout)
                response.raise_for_status()

                self._stats["gateway_requests"] += 1
                self.logger.debug(f"Retrieved {len(response.content)} bytes via {gateway.name}")
                return response.content

            except requests.exceptions.RequestException as e:
                errors.append(f"{gateway.name}: {e}")
                self._stats["gateway_failures"] += 1
                self.logger.warning(f"Gateway {gateway.name} failed for {content_id}: {e}")

        raise ContentResolutionError(f"All IPFS gateways failed for {content_id}: {'; '.join(errors)}")

    def get_storage_type(self) -> StorageType:
        return StorageType.PINATA

    def get_statistics(self) -> Dict[str, Any]:
        """Get storage statistics."""
        return {
            "stats": self._stats.copy(),
            "gateways": [g.name for g in self.config.gateways],
            "api_url": self.config.api_url
        }

    def close(self):
        """Close connections."""
        self.session.close()


class ContentPublisher:
    """
    Publishes assets and metadata documents and resolves them back.

    Holds no state beyond the storage collaborator it wraps.
    """

    def __init__(self, storage: ContentStorage, http_session: Optional[requests.Session] = None,
                 timeout: int = 30):
        self.storage = storage
        self.timeout = timeout
        self._http_session = http_session
        self.logger = logging.getLogger(__name__)

    def publish_asset(self, data: bytes, name: Optional[str] = None) -> PublishedAsset:
        """
        Publish a raw asset.

        Raises:
            UploadError: If storage is unreachable or rejects the upload
        """
        if not data:
            raise UploadError("Refusing to publish an empty asset")
        try:
            return self.storage.publish_bytes(data, name=name)
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Asset upload failed: {e}")

    def publish_metadata(self, record: MetadataRecord, name: Optional[str] = None) -> PublishedAsset:
        """
        Publish a metadata document.

        Raises:
            UploadError: If storage is unreachable or rejects the upload
        """
        try:
            return self.storage.publish_json(record.to_dict(), name=name)
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Metadata upload failed: {e}")

    def resolve(self, ref: str) -> bytes:
        """
        Resolve a content reference to bytes.

        Args:
            ref: Bare content identifier, ipfs:// URI or HTTP(S) URL

        Raises:
            ContentResolutionError: If the content cannot be fetched
        """
        content_id = parse_content_id(ref)
        if content_id is not None:
            try:
                return self.storage.resolve(content_id)
            except ContentError:
                raise
            except Exception as e:
                raise ContentResolutionError(f"Failed to resolve {ref}: {e}")

        # Plain URL outside IPFS: fetch it directly
        if self._http_session is None:
            self._http_session = requests.Session()
        try:
            response = self._http_session.get(ref, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        except requests.exceptions.RequestException as e:
            raise ContentResolutionError(f"Failed to fetch {ref}: {e}")

    def resolve_metadata(self, ref: str) -> MetadataRecord:
        """
        Resolve and validate a metadata document.

        Raises:
            ContentResolutionError: If the document cannot be fetched
            MetadataError: If the document is not valid metadata
        """
        payload = self.resolve(ref)
        try:
            return MetadataRecord.from_json(payload)
        except MetadataError as e:
            self.logger.warning(f"Metadata at {ref} is invalid: {e}")
            raise
