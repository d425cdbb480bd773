"""StorageClient: the entry point that hands out Bucket handles.

A StorageClient wraps one signed S3 transport (an aiobotocore client) and
the endpoint it talks to. Every Bucket created from it shares that
transport, so one client means one signing context and one connection pool.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig

from r2store.bucket import Bucket
from r2store.config import ClientConfig
from r2store.errors import ConfigurationError, InvalidUrlError
from r2store.models import BucketInfo
from r2store.validation import url_origin

logger = logging.getLogger(__name__)


class StorageClient:
    """Factory for Bucket handles over a shared signed transport.

    Attributes:
        endpoint: Origin of the S3 API endpoint.
    """

    def __init__(
        self,
        transport: Any,
        endpoint: str,
        public_urls: dict[str, list[str]] | None = None,
    ) -> None:
        """Wrap an existing transport.

        Args:
            transport: An aiobotocore (or compatible) S3 client.
            endpoint: S3 API endpoint URL.
            public_urls: Public base URLs to register on handles, by bucket name.

        Raises:
            ConfigurationError: If the endpoint is not an absolute URL.
        """
        try:
            self.endpoint = url_origin(endpoint)
        except InvalidUrlError as e:
            raise ConfigurationError(f"Invalid endpoint URL: {endpoint!r}") from e
        self._transport = transport
        self._public_urls = dict(public_urls or {})

    @classmethod
    @asynccontextmanager
    async def connect(cls, config: ClientConfig) -> AsyncIterator[StorageClient]:
        """Open an aiobotocore S3 client from ``config`` and yield a StorageClient.

        The transport is closed when the context exits.

        Raises:
            ConfigurationError: If the configured endpoint is missing or invalid.
        """
        endpoint = config.endpoint_url()
        # Validate before opening any connection.
        try:
            url_origin(endpoint)
        except InvalidUrlError as e:
            raise ConfigurationError(f"Invalid endpoint URL: {endpoint!r}") from e

        session = AioSession()
        if config.access_key_id and config.secret_access_key:
            session.set_credentials(config.access_key_id, config.secret_access_key)

        client_kwargs: dict[str, Any] = {
            "region_name": config.region,
            "endpoint_url": endpoint,
            "config": BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": config.addressing_style},
            ),
        }
        async with session.create_client("s3", **client_kwargs) as transport:
            logger.info("Connected to %s (region=%s)", endpoint, config.region)
            yield cls(transport, endpoint, public_urls=config.public_urls)

    @property
    def transport(self) -> Any:
        return self._transport

    def bucket(self, name: str) -> Bucket:
        """Return a handle on bucket ``name``. No request is made."""
        handle = Bucket(self._transport, name, self.endpoint)
        urls = self._public_urls.get(name)
        if urls:
            handle.register_public_base_url(urls)
        return handle

    async def list_buckets(self) -> list[BucketInfo]:
        """List the buckets visible to the configured credentials."""
        resp = await self._transport.list_buckets()
        return [
            BucketInfo(name=b["Name"], creation_date=b.get("CreationDate"))
            for b in resp.get("Buckets") or []
        ]
