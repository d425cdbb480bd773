"""Result types returned by r2store operations.

These frozen dataclasses are snapshots of remote state at call time. None
of them is cached or refreshed by the library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a single-shot or multipart upload.

    Public URLs are derived from the public base URLs registered on the
    bucket handle. They are present even when the bucket does not actually
    allow public access.

    Attributes:
        object_key: The normalized key the object was stored under.
        uri: Canonical URI, ``{endpoint}/{bucket}/{key}``.
        public_url: The first entry of public_urls, or None.
        public_urls: One URL per registered public base URL.
        etag: Entity tag returned by the service.
        version_id: Version id, if the bucket is versioned.
    """

    object_key: str
    uri: str
    public_url: str | None = None
    public_urls: list[str] = field(default_factory=list)
    etag: str | None = None
    version_id: str | None = None


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata of an object as reported by a head-object request.

    Attributes:
        last_modified: Last modification time.
        content_length: Size in bytes.
        accept_ranges: Value of the Accept-Ranges header (e.g. 'bytes').
        etag: Entity tag.
        content_type: MIME type.
        custom_metadata: User metadata (x-amz-meta-*) without the prefix.
    """

    last_modified: datetime | None
    content_length: int | None
    accept_ranges: str | None
    etag: str | None
    content_type: str | None
    custom_metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectSummary:
    """One entry of an object listing."""

    key: str
    last_modified: datetime | None = None
    etag: str | None = None
    checksum_algorithm: list[str] = field(default_factory=list)
    size: int | None = None
    storage_class: str | None = None


@dataclass(frozen=True)
class ObjectListing:
    """A single page of a list-objects call.

    Attributes:
        objects: Object summaries in key order.
        marker: The marker this page started after.
        next_marker: Marker for the next page, or None when exhausted.
        is_truncated: Whether the service reported more results.
    """

    objects: list[ObjectSummary] = field(default_factory=list)
    marker: str | None = None
    next_marker: str | None = None
    is_truncated: bool = False


@dataclass(frozen=True)
class Tag:
    """A tag attached to a bucket or object."""

    key: str
    value: str

    def to_wire(self) -> dict[str, str]:
        return {"Key": self.key, "Value": self.value}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> Tag:
        return cls(key=data["Key"], value=data["Value"])


@dataclass(frozen=True)
class CORSPolicy:
    """A CORS rule configured on a bucket."""

    allowed_headers: list[str] = field(default_factory=list)
    allowed_methods: list[str] = field(default_factory=list)
    allowed_origins: list[str] = field(default_factory=list)
    expose_headers: list[str] = field(default_factory=list)
    id: str | None = None
    max_age_seconds: int | None = None


@dataclass(frozen=True)
class DefaultEncryption:
    """Server-side encryption applied to new objects by default."""

    algorithm: str | None = None
    kms_key_id: str | None = None


@dataclass(frozen=True)
class EncryptionRule:
    """A server-side encryption rule configured on a bucket."""

    default_encryption: DefaultEncryption
    bucket_key_enabled: bool | None = None


@dataclass(frozen=True)
class Progress:
    """Progress notification emitted during a multipart upload.

    Attributes:
        loaded: Bytes transferred so far. Never decreases.
        total: Total bytes to transfer, or None when the body size is unknown.
        part: Number of the part that just completed.
        key: Destination object key.
        bucket: Destination bucket name.
    """

    loaded: int
    total: int | None
    part: int
    key: str
    bucket: str


@dataclass(frozen=True)
class BucketInfo:
    """A bucket visible to the configured credentials."""

    name: str
    creation_date: datetime | None = None
