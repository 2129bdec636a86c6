import io
import logging

import urllib3
from minio import Minio
from minio.error import MinioException

from .config import (
    FETCH_TIMEOUT_SECONDS,
    MINIO_ACCESS_KEY,
    MINIO_BUCKET,
    MINIO_ENDPOINT,
    MINIO_SECRET_KEY,
    MINIO_SECURE,
)
from .errors import StorageFetchFailed

logger = logging.getLogger(__name__)

_http = urllib3.PoolManager(
    timeout=urllib3.Timeout(connect=min(FETCH_TIMEOUT_SECONDS, 10.0), read=FETCH_TIMEOUT_SECONDS),
    retries=urllib3.Retry(total=2, backoff_factor=0.2, status_forcelist=[500, 502, 503, 504]),
)

_client = Minio(
    MINIO_ENDPOINT,
    access_key=MINIO_ACCESS_KEY,
    secret_key=MINIO_SECRET_KEY,
    secure=MINIO_SECURE,
    http_client=_http,
)

def ensure_bucket():
    if not _client.bucket_exists(MINIO_BUCKET):
        _client.make_bucket(MINIO_BUCKET)

def put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
    ensure_bucket()
    _client.put_object(MINIO_BUCKET, key, io.BytesIO(data), length=len(data), content_type=content_type)

def get_bytes(key: str) -> bytes:
    resp = _client.get_object(MINIO_BUCKET, key)
    try:
        return resp.read()
    finally:
        resp.close()
        resp.release_conn()

def fetch_bytes(storage_ref: str) -> bytes:
    """Resolve a source file's storage reference to its raw bytes."""
    if not storage_ref:
        raise StorageFetchFailed("source file has no storage reference")
    try:
        return get_bytes(storage_ref)
    except (MinioException, urllib3.exceptions.HTTPError, OSError) as exc:
        logger.error("Failed to fetch %s from bucket %s: %s", storage_ref, MINIO_BUCKET, exc)
        raise StorageFetchFailed(f"Unable to fetch {storage_ref}") from exc
