from io import BytesIO
from pathlib import Path
from uuid import uuid4

from minio import Minio
from minio.error import S3Error
import structlog

from saenggibu.core.config import settings
from saenggibu.core.errors import StorageError

logger = structlog.get_logger(__name__)


def build_storage_path(student_id: int, ext: str) -> str:
    return f"{student_id}/{uuid4()}.{ext.lower().lstrip('.')}"


def normalize_key(storage_path: str) -> str:
    value = (storage_path or "").strip().lstrip("/")
    if not value or ".." in Path(value).parts:
        raise ValueError("Invalid storage path")
    return value


class LocalBlobStore:
    """Documents kept under ``upload_dir`` on the local filesystem."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, storage_path: str) -> Path:
        return self.root / normalize_key(storage_path)

    def put(self, storage_path: str, data: bytes, content_type: str) -> None:
        path = self._path(storage_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as error:
            raise StorageError(f"파일 업로드 실패: {error}") from error

    def get(self, storage_path: str) -> bytes:
        return self._path(storage_path).read_bytes()

    def delete(self, storage_path: str) -> None:
        self._path(storage_path).unlink(missing_ok=True)


class MinioBlobStore:
    def __init__(self, client: Minio, bucket: str):
        self.client = client
        self.bucket = bucket

    def put(self, storage_path: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                self.bucket,
                normalize_key(storage_path),
                BytesIO(data),
                length=len(data),
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as error:
            raise StorageError(f"파일 업로드 실패: {error}") from error

    def get(self, storage_path: str) -> bytes:
        try:
            response = self.client.get_object(self.bucket, normalize_key(storage_path))
        except S3Error as error:
            if error.code == "NoSuchKey":
                raise FileNotFoundError(storage_path) from error
            raise StorageError(f"파일 다운로드 실패: {error}") from error
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def delete(self, storage_path: str) -> None:
        try:
            self.client.remove_object(self.bucket, normalize_key(storage_path))
        except S3Error as error:
            raise StorageError(f"파일 삭제 실패: {error}") from error


def _build_store():
    if settings.storage_backend == "minio":
        client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
        )
        return MinioBlobStore(client, settings.minio_bucket)
    return LocalBlobStore(settings.upload_dir)


_store = None


def get_blob_store():
    global _store
    if _store is None:
        _store = _build_store()
        logger.info("blob_store_initialized", backend=settings.storage_backend)
    return _store
