"""Bucket handle: the operational surface of r2store.

Each public coroutine issues one S3 request through the shared signed
transport (an aiobotocore client) and maps the response into the result
types in ``r2store.models``. ``upload_stream`` is the only operation that
spans several requests; it hands the transfer to ``ManagedUpload``.

Error handling is chosen per method. Methods decorated with
``swallow_errors`` collapse any transport failure into a fixed default
(``False`` or an empty list). Every other method lets botocore exceptions
propagate unchanged.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from collections.abc import Callable, Iterable
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from r2store import metrics
from r2store.errors import NO_SUCH_TAG_SET, ConfigurationError, InvalidUrlError, error_code
from r2store.models import (
    CORSPolicy,
    DefaultEncryption,
    EncryptionRule,
    ObjectListing,
    ObjectMetadata,
    ObjectSummary,
    Tag,
    UploadResult,
)
from r2store.multipart import MIN_PART_SIZE, ManagedUpload, ProgressListener
from r2store.validation import normalize_key, url_origin, validate_max_keys

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Region reported by R2 buckets that declare no location constraint.
DEFAULT_REGION = "auto"

_TRANSPORT_ERRORS = (BotoCoreError, ClientError)


def swallow_errors(default: Callable[[], Any]):
    """Return ``default()`` instead of raising when the transport fails.

    Only botocore errors are swallowed; programming errors still raise.
    Callers of a decorated method cannot tell "absent" from "query failed".
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self: Bucket, *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(self, *args, **kwargs)
            except _TRANSPORT_ERRORS as e:
                logger.debug(
                    "%s on bucket %s failed, returning default: %s",
                    func.__name__,
                    self.name,
                    error_code(e) or e,
                    extra={"bucket": self.name, "operation": func.__name__},
                )
                return default()

        return wrapper

    return decorator


class Bucket:
    """Handle on one bucket, bound to a StorageClient's transport.

    Handles are cheap and hold no connection of their own. The only mutable
    state is the ordered set of public base URLs, which is append-only.

    Attributes:
        name: The bucket name.
        uri: ``{endpoint origin}/{name}``.
    """

    def __init__(self, transport: Any, name: str, endpoint: str) -> None:
        """Create a handle. No request is made.

        Args:
            transport: The aiobotocore S3 client shared by the StorageClient.
            name: Bucket name.
            endpoint: Endpoint URL; reduced to its origin.

        Raises:
            ConfigurationError: If the endpoint is not an absolute URL.
        """
        try:
            self._endpoint = url_origin(endpoint)
        except InvalidUrlError as e:
            raise ConfigurationError(f"Invalid endpoint URL: {endpoint!r}") from e
        self._transport = transport
        self._name = name
        self._uri = f"{self._endpoint}/{name}"
        self._public_urls: list[str] = []

    def __repr__(self) -> str:
        return f"Bucket(name={self._name!r}, uri={self._uri!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def uri(self) -> str:
        return self._uri

    def get_bucket_name(self) -> str:
        return self._name

    def get_uri(self) -> str:
        return self._uri

    # -- Public URLs ----------------------------------------------------------

    def register_public_base_url(self, url: str | Iterable[str]) -> Bucket:
        """Register one or more public base URLs for this bucket.

        Each URL is reduced to its origin; origins already registered are
        ignored, so ``https://cdn.x/a`` and ``https://cdn.x/b`` register once
        as ``https://cdn.x``. Registering a URL does not change the bucket's
        access permissions on the service.

        Concurrent registration from several threads must be serialized by
        the caller.

        Args:
            url: A URL or an iterable of URLs.

        Returns:
            This handle, for chaining.

        Raises:
            InvalidUrlError: If a URL has no scheme or host.
        """
        if isinstance(url, str):
            origin = url_origin(url)
            if origin not in self._public_urls:
                self._public_urls.append(origin)
        else:
            for item in url:
                self.register_public_base_url(item)
        return self

    def get_public_base_urls(self) -> list[str]:
        return list(self._public_urls)

    def get_object_public_urls(self, object_key: str) -> list[str]:
        """Return ``{base}/{object_key}`` for every registered public base URL.

        The key is used as given. Returns an empty list when no public base
        URL is registered.
        """
        return [f"{base}/{object_key}" for base in self._public_urls]

    async def get_object_signed_url(self, object_key: str, expires_in: int) -> str:
        """Return a presigned GET URL for an object.

        The object's existence is not checked.

        Args:
            object_key: Key of the object.
            expires_in: Validity of the URL in seconds.
        """
        return await self._transport.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._name, "Key": object_key},
            ExpiresIn=expires_in,
        )

    # -- Bucket queries -------------------------------------------------------

    @swallow_errors(lambda: False)
    async def exists(self) -> bool:
        """Check that the bucket exists and is accessible. Never raises."""
        resp = await self._send("head_bucket")
        return _status(resp) == 200

    @swallow_errors(list)
    async def get_cors_policies(self) -> list[CORSPolicy]:
        """Return the bucket's CORS rules.

        Returns an empty list both when no CORS configuration exists and when
        the query fails.
        """
        resp = await self._send("get_bucket_cors")
        return [
            CORSPolicy(
                allowed_headers=rule.get("AllowedHeaders", []),
                allowed_methods=rule.get("AllowedMethods", []),
                allowed_origins=rule.get("AllowedOrigins", []),
                expose_headers=rule.get("ExposeHeaders", []),
                id=rule.get("ID"),
                max_age_seconds=rule.get("MaxAgeSeconds"),
            )
            for rule in resp.get("CORSRules") or []
        ]

    async def get_region(self) -> str:
        """Return the bucket's location constraint, or ``"auto"`` when unset."""
        resp = await self._send("get_bucket_location")
        return resp.get("LocationConstraint") or DEFAULT_REGION

    async def get_encryption(self) -> list[EncryptionRule]:
        """Return the bucket's server-side encryption rules.

        Unlike ``get_cors_policies`` this propagates transport failures.
        """
        resp = await self._send("get_bucket_encryption")
        rules = resp.get("ServerSideEncryptionConfiguration", {}).get("Rules") or []
        result = []
        for rule in rules:
            default = rule.get("ApplyServerSideEncryptionByDefault", {})
            result.append(
                EncryptionRule(
                    default_encryption=DefaultEncryption(
                        algorithm=default.get("SSEAlgorithm"),
                        kms_key_id=default.get("KMSMasterKeyID"),
                    ),
                    bucket_key_enabled=rule.get("BucketKeyEnabled"),
                )
            )
        return result

    # -- Uploads --------------------------------------------------------------

    async def upload(
        self,
        content: Any,
        destination: str,
        custom_metadata: dict[str, str] | None = None,
        mime_type: str | None = None,
    ) -> UploadResult:
        """Upload an object with a single put_object request.

        An existing object at the same key is overwritten. Not suited to very
        large bodies or bodies of unknown size; use ``upload_stream`` for
        those.

        Args:
            content: bytes, str or a binary file-like object.
            destination: Object key. Leading slashes are stripped; inner
                slashes place the object "inside directories".
            custom_metadata: User metadata stored with the object.
            mime_type: Content type (default application/octet-stream).
        """
        key = normalize_key(destination)
        params: dict[str, Any] = {
            "Key": key,
            "Body": content,
            "ContentType": mime_type or DEFAULT_CONTENT_TYPE,
        }
        if custom_metadata:
            params["Metadata"] = custom_metadata

        resp = await self._send("put_object", **params)
        return self._upload_result(key, resp)

    async def upload_file(
        self,
        path: str | os.PathLike[str],
        destination: str | None = None,
        custom_metadata: dict[str, str] | None = None,
        mime_type: str | None = None,
    ) -> UploadResult:
        """Upload a local file; the destination defaults to its base name."""
        with open(path, "rb") as fh:
            return await self.upload(
                fh,
                destination or os.path.basename(os.fspath(path)),
                custom_metadata,
                mime_type,
            )

    async def upload_stream(
        self,
        content: Any,
        destination: str,
        custom_metadata: dict[str, str] | None = None,
        mime_type: str | None = None,
        on_progress: ProgressListener | None = None,
        part_size: int = MIN_PART_SIZE,
    ) -> UploadResult:
        """Upload a body of any size using multipart upload.

        ``content`` may be bytes, str, a binary file-like object (sync or
        async ``read``) or an async iterable of bytes. ``on_progress`` is
        called with a ``Progress`` after each part. Failures propagate; no
        partial result is returned.
        """
        key = normalize_key(destination)
        params: dict[str, Any] = {
            "Bucket": self._name,
            "Key": key,
            "Body": content,
            "ContentType": mime_type or DEFAULT_CONTENT_TYPE,
            "Metadata": custom_metadata or None,
        }
        transfer = ManagedUpload(self._transport, params, part_size=part_size)
        if on_progress is not None:
            transfer.on_progress(on_progress)

        start = time.monotonic()
        try:
            resp = await transfer.done()
        except Exception:
            metrics.record_operation("upload_stream", "error")
            raise
        metrics.record_operation("upload_stream", "success")
        logger.debug(
            "upload_stream bucket=%s key=%s",
            self._name,
            key,
            extra={
                "bucket": self._name,
                "key": key,
                "operation": "upload_stream",
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return self._upload_result(key, resp)

    def _upload_result(self, key: str, resp: dict[str, Any]) -> UploadResult:
        public_urls = self.get_object_public_urls(key)
        return UploadResult(
            object_key=key,
            uri=f"{self._uri}/{key}",
            public_url=public_urls[0] if public_urls else None,
            public_urls=public_urls,
            etag=resp.get("ETag"),
            version_id=resp.get("VersionId"),
        )

    # -- Objects --------------------------------------------------------------

    async def delete_object(self, object_key: str) -> bool:
        """Delete an object. True when the service answers with a 2xx status."""
        resp = await self._send("delete_object", Key=object_key)
        status = _status(resp)
        return status is not None and 200 <= status < 300

    async def head_object(self, object_key: str) -> ObjectMetadata:
        """Fetch an object's metadata. Not-found and other errors propagate."""
        resp = await self._send("head_object", Key=object_key)
        return ObjectMetadata(
            last_modified=resp.get("LastModified"),
            content_length=resp.get("ContentLength"),
            accept_ranges=resp.get("AcceptRanges"),
            etag=resp.get("ETag"),
            content_type=resp.get("ContentType"),
            custom_metadata=resp.get("Metadata") or {},
        )

    async def list_objects(
        self, max_results: int = 1000, marker: str | None = None
    ) -> ObjectListing:
        """Return one page of objects.

        Pass the previous page's ``next_marker`` as ``marker`` to continue.
        ``next_marker`` is None once the listing is exhausted.

        Args:
            max_results: Page size, 1..1000.
            marker: Key to start listing after.
        """
        validate_max_keys(max_results)
        params: dict[str, Any] = {"MaxKeys": max_results}
        if marker:
            params["Marker"] = marker

        resp = await self._send("list_objects", **params)
        objects = [
            ObjectSummary(
                key=item["Key"],
                last_modified=item.get("LastModified"),
                etag=item.get("ETag"),
                checksum_algorithm=item.get("ChecksumAlgorithm", []),
                size=item.get("Size"),
                storage_class=item.get("StorageClass"),
            )
            for item in resp.get("Contents") or []
        ]

        truncated = bool(resp.get("IsTruncated"))
        next_marker = resp.get("NextMarker") or None
        # Without a delimiter S3 omits NextMarker; the last key continues the listing.
        if truncated and next_marker is None and objects:
            next_marker = objects[-1].key
        if not truncated:
            next_marker = None

        return ObjectListing(
            objects=objects,
            marker=resp.get("Marker") or marker,
            next_marker=next_marker,
            is_truncated=truncated,
        )

    async def copy_object(self, source_key: str, destination_key: str) -> dict[str, Any]:
        """Copy an object to another key in this bucket.

        Returns:
            The raw copy_object response (CopyObjectResult, VersionId, ...).
        """
        return await self._send(
            "copy_object",
            Key=normalize_key(destination_key),
            CopySource={"Bucket": self._name, "Key": source_key},
        )

    @swallow_errors(lambda: False)
    async def object_exists(self, object_key: str) -> bool:
        """Check that an object exists and is non-empty. Never raises.

        A zero-byte object is reported as not existing.
        """
        meta = await self.head_object(object_key)
        return bool(meta.content_length)

    # -- Tagging --------------------------------------------------------------

    async def set_bucket_tags(self, tags: Iterable[Tag]) -> None:
        """Replace the bucket's whole tag set with ``tags``."""
        await self._send("put_bucket_tagging", Tagging=_tagging(tags))

    async def get_bucket_tags(self) -> list[Tag]:
        """Return the bucket's tags; empty when no tag set exists."""
        try:
            resp = await self._send("get_bucket_tagging")
        except ClientError as e:
            if error_code(e) == NO_SUCH_TAG_SET:
                return []
            raise
        return [Tag.from_wire(t) for t in resp.get("TagSet") or []]

    async def delete_bucket_tags(self) -> None:
        await self._send("delete_bucket_tagging")

    async def set_object_tags(self, object_key: str, tags: Iterable[Tag]) -> None:
        """Replace an object's whole tag set with ``tags``."""
        await self._send("put_object_tagging", Key=object_key, Tagging=_tagging(tags))

    async def get_object_tags(self, object_key: str) -> list[Tag]:
        """Return an object's tags; empty when no tag set exists."""
        try:
            resp = await self._send("get_object_tagging", Key=object_key)
        except ClientError as e:
            if error_code(e) == NO_SUCH_TAG_SET:
                return []
            raise
        return [Tag.from_wire(t) for t in resp.get("TagSet") or []]

    async def delete_object_tags(self, object_key: str) -> None:
        await self._send("delete_object_tagging", Key=object_key)

    # -- Transport ------------------------------------------------------------

    async def _send(self, operation: str, **params: Any) -> dict[str, Any]:
        """Issue one S3 operation against this bucket and return the response."""
        start = time.monotonic()
        try:
            resp = await getattr(self._transport, operation)(Bucket=self._name, **params)
        except Exception:
            metrics.record_operation(operation, "error")
            raise
        metrics.record_operation(operation, "success")
        logger.debug(
            "%s bucket=%s key=%s",
            operation,
            self._name,
            params.get("Key"),
            extra={
                "bucket": self._name,
                "key": params.get("Key"),
                "operation": operation,
                "status": _status(resp),
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return resp


def _status(resp: dict[str, Any]) -> int | None:
    """Return the HTTP status code recorded in a response's metadata."""
    return resp.get("ResponseMetadata", {}).get("HTTPStatusCode")


def _tagging(tags: Iterable[Tag]) -> dict[str, Any]:
    return {"TagSet": [tag.to_wire() for tag in tags]}
