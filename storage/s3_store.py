"""
S3 file store for uploaded media.
"""
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from typing import BinaryIO, Iterator, Optional

from storage.file_store import FileStat, generate_handle, validate_handle, CHUNK_SIZE
from core.logger import logger


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3FileStore:
    """File store backed by a single S3 bucket (or an S3-compatible service such as MinIO)."""

    def __init__(
        self,
        bucket_name: str,
        prefix: str = "uploads",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        auto_create_bucket: bool = True,
        client=None,
    ):
        """
        Initialize S3 file store.

        Args:
            bucket_name: Bucket holding all media
            prefix: Key prefix; objects live at "<prefix>/<handle>"
            aws_access_key_id: AWS access key (or from env)
            aws_secret_access_key: AWS secret key (or from env)
            region_name: AWS region
            endpoint_url: Custom endpoint URL (for MinIO, etc.)
            auto_create_bucket: Create the bucket if it doesn't exist
            client: Pre-built boto3 S3 client (tests)
        """
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        self.region_name = region_name
        self.auto_create_bucket = auto_create_bucket

        if client is None:
            client_kwargs = {"region_name": region_name}
            if aws_access_key_id:
                client_kwargs["aws_access_key_id"] = aws_access_key_id
            if aws_secret_access_key:
                client_kwargs["aws_secret_access_key"] = aws_secret_access_key
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **client_kwargs)
        self.s3_client = client

        self._ensure_bucket_exists()
        logger.info(f"S3 file store initialized (bucket: {bucket_name}, prefix: {self.prefix})")

    def _ensure_bucket_exists(self):
        """Ensure bucket exists, create if it doesn't."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            if _error_code(e) not in ("404", "NoSuchBucket") or not self.auto_create_bucket:
                logger.error(f"Error checking bucket {self.bucket_name}: {e}")
                raise
            if self.region_name == "us-east-1":
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={"LocationConstraint": self.region_name}
                )
            logger.info(f"Created bucket: {self.bucket_name}")

    def key_for(self, handle: str) -> str:
        validate_handle(handle)
        return f"{self.prefix}/{handle}" if self.prefix else handle

    def save(self, stream: BinaryIO, suggested_ext: str = "") -> str:
        """Upload a stream under a fresh handle and return the handle."""
        handle = generate_handle(suggested_ext)
        key = self.key_for(handle)
        try:
            self.s3_client.upload_fileobj(stream, self.bucket_name, key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {key} to S3: {e}")
            raise OSError(f"S3 upload failed for {handle}") from e
        logger.debug(f"Uploaded s3://{self.bucket_name}/{key}")
        return handle

    def stat(self, handle: str) -> FileStat:
        """
        Size of a stored object.

        Raises:
            FileNotFoundError: no such object
            OSError: any other S3 failure
        """
        key = self.key_for(handle)
        try:
            response = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in ("404", "NoSuchKey", "NotFound"):
                raise FileNotFoundError(handle) from e
            raise OSError(f"S3 head_object failed for {handle}") from e
        except BotoCoreError as e:
            raise OSError(f"S3 head_object failed for {handle}") from e
        return FileStat(size_bytes=int(response.get("ContentLength", 0)))

    def exists(self, handle: str) -> bool:
        try:
            self.stat(handle)
        except (FileNotFoundError, ValueError):
            return False
        return True

    def open(self, handle: str) -> Iterator[bytes]:
        """Iterate over the object body in chunks."""
        key = self.key_for(handle)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in ("404", "NoSuchKey", "NotFound"):
                raise FileNotFoundError(handle) from e
            raise OSError(f"S3 get_object failed for {handle}") from e
        return response["Body"].iter_chunks(CHUNK_SIZE)

    def delete(self, handle: str) -> bool:
        key = self.key_for(handle)
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete {key} from S3: {e}")
            raise OSError(f"S3 delete failed for {handle}") from e
        logger.info(f"Deleted s3://{self.bucket_name}/{key}")
        return True

    def describe(self) -> dict:
        return {"backend": "s3", "bucket": self.bucket_name, "prefix": self.prefix}
