"""Managed multipart upload for r2store.

``ManagedUpload`` turns a put-object shaped request into a transfer that
works for bodies of any size, including streams whose length is unknown:

    - A body that fits in one part is sent with a single put_object.
    - Anything larger goes through create_multipart_upload, one
      upload_part per chunk, and complete_multipart_upload.
    - On failure or cancellation the multipart upload is aborted so no orphan parts are
      left behind (unless ``leave_parts_on_error`` is set), and the
      original error is re-raised.

Listeners registered with ``on_progress`` receive a ``Progress`` after
every part. ``loaded`` only ever grows.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from r2store import metrics
from r2store.models import Progress

logger = logging.getLogger(__name__)

# S3 minimum part size (all parts except the last): 5 MiB
MIN_PART_SIZE = 5 * 1024 * 1024

ProgressListener = Callable[[Progress], Any]


class ManagedUpload:
    """A single- or multi-part upload driven by one ``done()`` call.

    Attributes:
        params: Put-object parameters (Bucket, Key, Body, ContentType, Metadata).
        part_size: Size of every part except the last.
        leave_parts_on_error: Skip the abort on failure.
        upload_id: Multipart upload id once one has been created.
    """

    def __init__(
        self,
        transport: Any,
        params: dict[str, Any],
        part_size: int = MIN_PART_SIZE,
        leave_parts_on_error: bool = False,
    ) -> None:
        """Prepare an upload. Nothing is sent until ``done()``.

        Args:
            transport: An aiobotocore S3 client.
            params: Put-object shaped parameters. ``Bucket``, ``Key`` and
                ``Body`` are required.
            part_size: Part size in bytes, at least 5 MiB.
            leave_parts_on_error: Keep uploaded parts when the transfer fails.

        Raises:
            ValueError: If part_size is below the S3 minimum.
        """
        if part_size < MIN_PART_SIZE:
            raise ValueError(f"part_size must be at least {MIN_PART_SIZE} bytes, got {part_size}")
        self._transport = transport
        self.params = params
        self.part_size = part_size
        self.leave_parts_on_error = leave_parts_on_error
        self.upload_id: str | None = None
        self._listeners: list[ProgressListener] = []
        self._loaded = 0
        self._total = _body_size(params["Body"])

    def on_progress(self, listener: ProgressListener) -> None:
        """Register a listener called with a ``Progress`` after each part."""
        self._listeners.append(listener)

    async def done(self) -> dict[str, Any]:
        """Run the transfer to completion.

        Returns:
            The put_object response for single-part bodies, otherwise the
            complete_multipart_upload response.
        """
        parts = _iter_parts(self.params["Body"], self.part_size)
        first = await _next_chunk(parts)
        second = await _next_chunk(parts)

        if second is None:
            return await self._put_single(first or b"")

        return await self._put_multipart(first, second, parts)

    async def _put_single(self, data: bytes) -> dict[str, Any]:
        request = self._object_params()
        request["Body"] = data
        resp = await self._transport.put_object(**request)
        await self._advance(len(data), part=1)
        return resp

    async def _put_multipart(
        self, first: bytes, second: bytes, rest: AsyncIterator[bytes]
    ) -> dict[str, Any]:
        bucket = self.params["Bucket"]
        key = self.params["Key"]

        created = await self._transport.create_multipart_upload(**self._object_params())
        self.upload_id = created["UploadId"]
        logger.debug(
            "Started multipart upload %s for %s/%s", self.upload_id, bucket, key
        )

        try:
            manifest = []
            part_number = 0

            async def upload(chunk: bytes) -> None:
                nonlocal part_number
                part_number += 1
                resp = await self._transport.upload_part(
                    Bucket=bucket,
                    Key=key,
                    UploadId=self.upload_id,
                    PartNumber=part_number,
                    Body=chunk,
                )
                manifest.append({"ETag": resp["ETag"], "PartNumber": part_number})
                await self._advance(len(chunk), part=part_number)

            await upload(first)
            await upload(second)
            async for chunk in rest:
                await upload(chunk)

            return await self._transport.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=self.upload_id,
                MultipartUpload={"Parts": manifest},
            )

        except BaseException:
            if not self.leave_parts_on_error:
                try:
                    await self._transport.abort_multipart_upload(
                        Bucket=bucket, Key=key, UploadId=self.upload_id
                    )
                except Exception:
                    logger.warning("Failed to abort multipart upload %s", self.upload_id)
            raise

    def _object_params(self) -> dict[str, Any]:
        """Put-object parameters minus the body, with empty values dropped."""
        return {
            name: value
            for name, value in self.params.items()
            if name != "Body" and value is not None
        }

    async def _advance(self, count: int, part: int) -> None:
        self._loaded += count
        metrics.record_upload_bytes(count)
        progress = Progress(
            loaded=self._loaded,
            total=self._total,
            part=part,
            key=self.params["Key"],
            bucket=self.params["Bucket"],
        )
        for listener in self._listeners:
            result = listener(progress)
            if inspect.isawaitable(result):
                await result


def _body_size(body: Any) -> int | None:
    """Return the number of bytes left in ``body``, or None when unknown."""
    if isinstance(body, str):
        return len(body.encode("utf-8"))
    if isinstance(body, (bytes, bytearray, memoryview)):
        return len(body)
    if hasattr(body, "seek") and hasattr(body, "tell"):
        try:
            if hasattr(body, "seekable") and not body.seekable():
                return None
            pos = body.tell()
            end = body.seek(0, 2)
            body.seek(pos)
            return end - pos
        except (OSError, ValueError):
            return None
    return None


async def _iter_chunks(body: Any, size: int) -> AsyncIterator[bytes]:
    """Yield raw chunks from any supported body type."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    if isinstance(body, (bytes, bytearray, memoryview)):
        view = memoryview(body)
        for offset in range(0, len(view), size):
            yield bytes(view[offset:offset + size])
        return

    if hasattr(body, "read"):
        while True:
            chunk = body.read(size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                break
            yield chunk
        return

    if hasattr(body, "__aiter__"):
        async for chunk in body:
            yield chunk
        return

    for chunk in body:
        yield chunk


async def _iter_parts(body: Any, part_size: int) -> AsyncIterator[bytes]:
    """Re-buffer a body into parts of exactly ``part_size`` (last may be short)."""
    buf = bytearray()
    async for chunk in _iter_chunks(body, part_size):
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        buf.extend(chunk)
        while len(buf) >= part_size:
            yield bytes(buf[:part_size])
            del buf[:part_size]
    if buf:
        yield bytes(buf)


async def _next_chunk(parts: AsyncIterator[bytes]) -> bytes | None:
    return await anext(parts, None)
