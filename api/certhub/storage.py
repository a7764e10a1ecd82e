import io
import logging
from functools import lru_cache

from minio import Minio
from minio.error import S3Error
from .config import MINIO_ENDPOINT, MINIO_ACCESS_KEY, MINIO_SECRET_KEY, MINIO_BUCKET, MINIO_SECURE

logger = logging.getLogger(__name__)

@lru_cache(maxsize=1)
def _client() -> Minio:
    client = Minio(
        MINIO_ENDPOINT,
        access_key=MINIO_ACCESS_KEY,
        secret_key=MINIO_SECRET_KEY,
        secure=MINIO_SECURE,
    )
    if not client.bucket_exists(MINIO_BUCKET):
        client.make_bucket(MINIO_BUCKET)
        logger.info("created bucket %s", MINIO_BUCKET)
    return client

def put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
    _client().put_object(MINIO_BUCKET, key, io.BytesIO(data), length=len(data), content_type=content_type)

def get_bytes(key: str) -> bytes:
    resp = _client().get_object(MINIO_BUCKET, key)
    try:
        return resp.read()
    finally:
        resp.close()
        resp.release_conn()

def delete_object(key: str):
    try:
        _client().remove_object(MINIO_BUCKET, key)
    except S3Error as exc:
        # a stale rendering that is already gone is not an error
        if exc.code != "NoSuchKey":
            raise
