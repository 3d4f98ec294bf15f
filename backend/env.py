from dotenv import load_dotenv
import os
import tempfile

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI")
MONGODB_DATABASE_NAME = os.getenv("MONGODB_DATABASE_NAME", "packageregistry")

# Artifact object store ("gridfs" or "s3")
ARTIFACT_STORE_BACKEND = os.getenv("ARTIFACT_STORE_BACKEND", "gridfs")
ARTIFACT_BUCKET = os.getenv("ARTIFACT_BUCKET", "packages")  # GridFS bucket or S3 bucket name
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL")  # Set for MinIO / localstack
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

# Staging directories for expanded archives
STAGING_ROOT = os.getenv("STAGING_ROOT", os.path.join(tempfile.gettempdir(), "package-staging"))
MAX_ARCHIVE_SIZE = int(os.getenv("MAX_ARCHIVE_SIZE", "50000000"))  # Bytes, applies to zip and tar payloads

# README search bounds
README_SEARCH_MAX_DEPTH = int(os.getenv("README_SEARCH_MAX_DEPTH", "16"))
README_SEARCH_MAX_ENTRIES = int(os.getenv("README_SEARCH_MAX_ENTRIES", "10000"))
