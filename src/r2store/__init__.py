"""r2store - async client for Cloudflare R2 and other S3-compatible storage."""

from r2store.bucket import Bucket
from r2store.client import StorageClient
from r2store.config import ClientConfig, load_config
from r2store.errors import ConfigurationError, InvalidUrlError, R2Error
from r2store.models import (
    BucketInfo,
    CORSPolicy,
    DefaultEncryption,
    EncryptionRule,
    ObjectListing,
    ObjectMetadata,
    ObjectSummary,
    Progress,
    Tag,
    UploadResult,
)
from r2store.multipart import ManagedUpload

__all__ = [
    "Bucket",
    "BucketInfo",
    "CORSPolicy",
    "ClientConfig",
    "ConfigurationError",
    "DefaultEncryption",
    "EncryptionRule",
    "InvalidUrlError",
    "ManagedUpload",
    "ObjectListing",
    "ObjectMetadata",
    "ObjectSummary",
    "Progress",
    "R2Error",
    "StorageClient",
    "Tag",
    "UploadResult",
    "load_config",
]
