"""
MongoDB connection management for artifact storage.
"""

from functools import lru_cache
from typing import Optional

import certifi
from gridfs import GridFSBucket
from pymongo import MongoClient
from pymongo.database import Database

from env import ARTIFACT_BUCKET, MONGODB_DATABASE_NAME, MONGODB_URI


class DatabaseManager:
    """
    Singleton database connection manager.
    Owns the MongoClient whose GridFS bucket holds package artifacts.
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[MongoClient] = None
    _database: Optional[Database] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def connect(self, uri: Optional[str] = None, database_name: Optional[str] = None) -> None:
        """
        Establish connection to MongoDB.

        Args:
            uri: MongoDB connection URI. Uses MONGODB_URI from env if not provided.
            database_name: Database name. Uses MONGODB_DATABASE_NAME from env if not provided.
        """
        if self._client is not None:
            return

        connection_uri = uri or MONGODB_URI
        if not connection_uri:
            raise ValueError("MongoDB URI not provided and MONGODB_URI not set")

        db_name = database_name or MONGODB_DATABASE_NAME
        if not db_name:
            raise ValueError("Database name not provided and MONGODB_DATABASE_NAME not set")

        kwargs = {
            "serverSelectionTimeoutMS": 30000,
            "connectTimeoutMS": 30000,
            "socketTimeoutMS": 30000,
        }
        # Atlas (mongodb+srv) needs an explicit CA bundle on some platforms
        if connection_uri.startswith("mongodb+srv://"):
            kwargs["tlsCAFile"] = certifi.where()

        self._client = MongoClient(connection_uri, **kwargs)
        self._database = self._client[db_name]

    def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client instance."""
        if self._client is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._client

    @property
    def database(self) -> Database:
        """Get database instance."""
        if self._database is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._database

    def get_bucket(self, bucket_name: Optional[str] = None) -> GridFSBucket:
        """
        Get a GridFS bucket for blob storage.

        Args:
            bucket_name: Bucket name. Uses ARTIFACT_BUCKET from env if not provided.

        Returns:
            GridFSBucket bound to the connected database
        """
        return GridFSBucket(self.database, bucket_name=bucket_name or ARTIFACT_BUCKET)


@lru_cache
def get_database_manager() -> DatabaseManager:
    """
    Get singleton DatabaseManager instance.
    Cached for dependency injection.

    Returns:
        DatabaseManager instance
    """
    return DatabaseManager()

