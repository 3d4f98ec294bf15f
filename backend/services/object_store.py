"""
Object store gateway for package artifact blobs.

Blobs are opaque bytes keyed by ArtifactIdentity.store_key. Two backends:
GridFS on the service's MongoDB database (default) and S3-compatible buckets.
"""

from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from gridfs import GridFSBucket
from gridfs.errors import NoFile
from pymongo.errors import PyMongoError

import env
from database import get_database_manager
from services.errors import NotFoundError, StoreError


class ObjectStoreGateway(ABC):
    """Uniform get/put of whole blobs. No caching, no retries."""

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """
        Store data under key, fully replacing any previous blob.

        Raises:
            StoreError: On any transport or store-side failure
        """

    @abstractmethod
    def get(self, key: str) -> bytes:
        """
        Fetch the blob stored under key.

        Raises:
            NotFoundError: If nothing is stored under key
            StoreError: On any transport or store-side failure
        """


class GridFSObjectStore(ObjectStoreGateway):
    """Artifact blobs stored as GridFS files named by their key."""

    def __init__(self, bucket: GridFSBucket):
        self._bucket = bucket

    def put(self, key: str, data: bytes) -> None:
        try:
            new_id = self._bucket.upload_from_stream(key, data)
            # Readers resolve the newest revision, so old ones go after the upload lands
            stale = self._bucket.find({"filename": key, "_id": {"$ne": new_id}})
            for grid_out in stale:
                self._bucket.delete(grid_out._id)
        except PyMongoError as e:
            print(f"[object_store] ERROR: GridFS put failed for {key}: {e}")
            raise StoreError(f"Failed to store {key}: {e}") from e

    def get(self, key: str) -> bytes:
        try:
            stream = self._bucket.open_download_stream_by_name(key)
            with stream:
                return stream.read()
        except NoFile as e:
            raise NotFoundError(f"No artifact stored under {key}") from e
        except PyMongoError as e:
            print(f"[object_store] ERROR: GridFS get failed for {key}: {e}")
            raise StoreError(f"Failed to read {key}: {e}") from e


class S3ObjectStore(ObjectStoreGateway):
    """Artifact blobs stored in an S3-compatible bucket."""

    NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        region_name: str = "us-east-1",
        client=None,
    ):
        self.bucket = bucket
        if client is None:
            kwargs = {"region_name": region_name}
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)
        self._client = client

    def put(self, key: str, data: bytes) -> None:
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (BotoCoreError, ClientError) as e:
            print(f"[object_store] ERROR: S3 put failed for s3://{self.bucket}/{key}: {e}")
            raise StoreError(f"Failed to store {key}: {e}") from e

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in self.NOT_FOUND_CODES:
                raise NotFoundError(f"No artifact stored under {key}") from e
            print(f"[object_store] ERROR: S3 get failed for s3://{self.bucket}/{key}: {e}")
            raise StoreError(f"Failed to read {key}: {e}") from e
        except BotoCoreError as e:
            print(f"[object_store] ERROR: S3 get failed for s3://{self.bucket}/{key}: {e}")
            raise StoreError(f"Failed to read {key}: {e}") from e


def create_object_store(backend: Optional[str] = None) -> ObjectStoreGateway:
    """
    Build the configured object store backend.

    Args:
        backend: "gridfs" or "s3". Uses ARTIFACT_STORE_BACKEND from env if not provided.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = (backend or env.ARTIFACT_STORE_BACKEND).lower()
    if backend == "gridfs":
        return GridFSObjectStore(get_database_manager().get_bucket(env.ARTIFACT_BUCKET))
    if backend == "s3":
        return S3ObjectStore(
            bucket=env.ARTIFACT_BUCKET,
            endpoint_url=env.S3_ENDPOINT_URL,
            region_name=env.AWS_REGION,
        )
    raise ValueError(f"Unknown artifact store backend: {backend}")


# Global singleton instance
_object_store: Optional[ObjectStoreGateway] = None


def get_object_store() -> ObjectStoreGateway:
    """Get or create the global object store singleton."""
    global _object_store
    if _object_store is None:
        _object_store = create_object_store()
    return _object_store
