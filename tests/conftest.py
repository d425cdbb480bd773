"""Shared fixtures for r2store tests.

``FakeS3`` is an in-memory stand-in for the aiobotocore S3 client. It
implements the subset of operations r2store issues, raises botocore
ClientErrors with the codes and statuses a real S3 endpoint returns, and
records every call so tests can assert on request shapes.
"""

import hashlib
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from r2store.bucket import Bucket

ENDPOINT = "https://account123.r2.cloudflarestorage.com"
BUCKET = "test-bucket"


def _error(code: str, status: int, operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


def _ok(status: int = 200, **fields):
    return {"ResponseMetadata": {"HTTPStatusCode": status}, **fields}


def _read_body(body) -> bytes:
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    return body.read()


class FakeS3:
    """In-memory S3 client speaking the aiobotocore call conventions."""

    def __init__(self, buckets=(BUCKET,)) -> None:
        self.buckets: dict[str, dict] = {
            name: {"objects": {}, "tags": None, "cors": None, "location": None}
            for name in buckets
        }
        self.uploads: dict[str, dict] = {}
        self.calls: list[tuple[str, dict]] = []
        self._upload_seq = 0

    def _bucket(self, name: str, operation: str) -> dict:
        if name not in self.buckets:
            raise _error("NoSuchBucket", 404, operation)
        return self.buckets[name]

    def _object(self, bucket: str, key: str, operation: str, code="NoSuchKey") -> dict:
        objects = self._bucket(bucket, operation)["objects"]
        if key not in objects:
            raise _error(code, 404, operation)
        return objects[key]

    def _store(self, bucket, key, data, content_type=None, metadata=None, etag=None):
        self._bucket(bucket, "PutObject")["objects"][key] = {
            "data": data,
            "etag": etag or f'"{hashlib.md5(data).hexdigest()}"',
            "content_type": content_type or "binary/octet-stream",
            "metadata": dict(metadata or {}),
            "last_modified": datetime.now(timezone.utc),
            "tags": None,
        }
        return self.buckets[bucket]["objects"][key]

    # -- Bucket operations ---------------------------------------------------

    async def list_buckets(self):
        self.calls.append(("list_buckets", {}))
        return _ok(Buckets=[{"Name": name} for name in sorted(self.buckets)])

    async def head_bucket(self, Bucket):
        self.calls.append(("head_bucket", {"Bucket": Bucket}))
        if Bucket not in self.buckets:
            raise _error("404", 404, "HeadBucket")
        return _ok()

    async def get_bucket_location(self, Bucket):
        loc = self._bucket(Bucket, "GetBucketLocation")["location"]
        return _ok(LocationConstraint=loc) if loc else _ok()

    async def get_bucket_cors(self, Bucket):
        cors = self._bucket(Bucket, "GetBucketCors")["cors"]
        if cors is None:
            raise _error("NoSuchCORSConfiguration", 404, "GetBucketCors")
        return _ok(CORSRules=cors)

    async def get_bucket_encryption(self, Bucket):
        self._bucket(Bucket, "GetBucketEncryption")
        return _ok(
            ServerSideEncryptionConfiguration={
                "Rules": [
                    {
                        "ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"},
                        "BucketKeyEnabled": False,
                    }
                ]
            }
        )

    async def put_bucket_tagging(self, Bucket, Tagging):
        self._bucket(Bucket, "PutBucketTagging")["tags"] = list(Tagging["TagSet"])
        return _ok(204)

    async def get_bucket_tagging(self, Bucket):
        tags = self._bucket(Bucket, "GetBucketTagging")["tags"]
        if not tags:
            raise _error("NoSuchTagSet", 404, "GetBucketTagging")
        return _ok(TagSet=list(tags))

    async def delete_bucket_tagging(self, Bucket):
        self._bucket(Bucket, "DeleteBucketTagging")["tags"] = None
        return _ok(204)

    # -- Object operations ---------------------------------------------------

    async def put_object(self, Bucket, Key, Body=b"", ContentType=None, Metadata=None):
        self.calls.append(("put_object", {"Bucket": Bucket, "Key": Key}))
        obj = self._store(Bucket, Key, _read_body(Body), ContentType, Metadata)
        return _ok(ETag=obj["etag"])

    async def head_object(self, Bucket, Key):
        obj = self._object(Bucket, Key, "HeadObject", code="404")
        return _ok(
            LastModified=obj["last_modified"],
            ContentLength=len(obj["data"]),
            AcceptRanges="bytes",
            ETag=obj["etag"],
            ContentType=obj["content_type"],
            Metadata=dict(obj["metadata"]),
        )

    async def delete_object(self, Bucket, Key):
        self._bucket(Bucket, "DeleteObject")["objects"].pop(Key, None)
        return _ok(204)

    async def list_objects(self, Bucket, MaxKeys=1000, Marker=None):
        objects = self._bucket(Bucket, "ListObjects")["objects"]
        keys = sorted(k for k in objects if Marker is None or k > Marker)
        page = keys[:MaxKeys]
        contents = [
            {
                "Key": k,
                "LastModified": objects[k]["last_modified"],
                "ETag": objects[k]["etag"],
                "Size": len(objects[k]["data"]),
                "StorageClass": "STANDARD",
            }
            for k in page
        ]
        resp = _ok(IsTruncated=len(keys) > MaxKeys, MaxKeys=MaxKeys)
        if contents:
            resp["Contents"] = contents
        if Marker:
            resp["Marker"] = Marker
        return resp

    async def copy_object(self, Bucket, Key, CopySource):
        src = self._object(CopySource["Bucket"], CopySource["Key"], "CopyObject")
        obj = self._store(Bucket, Key, src["data"], src["content_type"], src["metadata"])
        return _ok(CopyObjectResult={"ETag": obj["etag"], "LastModified": obj["last_modified"]})

    async def put_object_tagging(self, Bucket, Key, Tagging):
        self._object(Bucket, Key, "PutObjectTagging")["tags"] = list(Tagging["TagSet"])
        return _ok()

    async def get_object_tagging(self, Bucket, Key):
        tags = self._object(Bucket, Key, "GetObjectTagging")["tags"]
        if not tags:
            raise _error("NoSuchTagSet", 404, "GetObjectTagging")
        return _ok(TagSet=list(tags))

    async def delete_object_tagging(self, Bucket, Key):
        self._object(Bucket, Key, "DeleteObjectTagging")["tags"] = None
        return _ok(204)

    async def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        return (
            f"{ENDPOINT}/{Params['Bucket']}/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=fake"
        )

    # -- Multipart -----------------------------------------------------------

    async def create_multipart_upload(self, Bucket, Key, ContentType=None, Metadata=None):
        self._bucket(Bucket, "CreateMultipartUpload")
        self._upload_seq += 1
        upload_id = f"upload-{self._upload_seq}"
        self.uploads[upload_id] = {
            "bucket": Bucket,
            "key": Key,
            "content_type": ContentType,
            "metadata": Metadata,
            "parts": {},
        }
        self.calls.append(("create_multipart_upload", {"Bucket": Bucket, "Key": Key}))
        return _ok(Bucket=Bucket, Key=Key, UploadId=upload_id)

    async def upload_part(self, Bucket, Key, UploadId, PartNumber, Body):
        if UploadId not in self.uploads:
            raise _error("NoSuchUpload", 404, "UploadPart")
        data = _read_body(Body)
        etag = f'"{hashlib.md5(data).hexdigest()}"'
        self.uploads[UploadId]["parts"][PartNumber] = (data, etag)
        self.calls.append(("upload_part", {"PartNumber": PartNumber, "Size": len(data)}))
        return _ok(ETag=etag)

    async def complete_multipart_upload(self, Bucket, Key, UploadId, MultipartUpload):
        upload = self.uploads.pop(UploadId, None)
        if upload is None:
            raise _error("NoSuchUpload", 404, "CompleteMultipartUpload")
        numbers = [p["PartNumber"] for p in MultipartUpload["Parts"]]
        data = b"".join(upload["parts"][n][0] for n in numbers)
        digest = hashlib.md5(
            b"".join(bytes.fromhex(upload["parts"][n][1].strip('"')) for n in numbers)
        ).hexdigest()
        etag = f'"{digest}-{len(numbers)}"'
        self._store(Bucket, Key, data, upload["content_type"], upload["metadata"], etag=etag)
        self.calls.append(("complete_multipart_upload", {"UploadId": UploadId}))
        return _ok(Bucket=Bucket, Key=Key, ETag=etag, Location=f"{ENDPOINT}/{Bucket}/{Key}")

    async def abort_multipart_upload(self, Bucket, Key, UploadId):
        self.uploads.pop(UploadId, None)
        self.calls.append(("abort_multipart_upload", {"UploadId": UploadId}))
        return _ok(204)


@pytest.fixture
def fake_s3() -> FakeS3:
    """A fresh in-memory S3 with one empty bucket named 'test-bucket'."""
    return FakeS3()


@pytest.fixture
def bucket(fake_s3) -> Bucket:
    """A Bucket handle bound to the in-memory S3."""
    return Bucket(fake_s3, BUCKET, ENDPOINT)
