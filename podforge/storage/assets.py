"""
Object storage for generated media.

Workers upload finished audio and cover art here and write the returned
public URL onto the pod. Local filesystem storage is used in development;
the hosted deployment uploads to a Supabase Storage bucket.
"""

from pathlib import Path
from typing import Optional, Union

from supabase import Client

from ..errors import StorageError
from ..utils.logger import get_logger
from ..utils.validation import safe_path_join

logger = get_logger(__name__)


def audio_path(user_id: str, pod_id: int) -> str:
    return f"public/{user_id}/{pod_id}-audio.mp3"


def cover_path(user_id: str, pod_id: int) -> str:
    return f"public/{user_id}/{pod_id}-cover.png"


class AssetStorage:
    """
    Abstracts media asset storage.
    Implementations return a public URL for every uploaded object.
    """

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError


class LocalAssetStorage(AssetStorage):
    """Stores assets on the local filesystem under base_path."""

    def __init__(self, base_path: Union[str, Path], base_url: Optional[str] = None):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip('/') if base_url else None
        self.base_path.mkdir(parents=True, exist_ok=True)

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = safe_path_join(self.base_path, *path.split('/'))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Overwrite: retried workers upload to the same path
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

        logger.info(f"Stored {len(data)} bytes ({content_type}) at {target}")
        if self.base_url:
            return f"{self.base_url}/{path}"
        return target.resolve().as_uri()

    def get_path(self, path: str) -> Path:
        return safe_path_join(self.base_path, *path.split('/'))


class SupabaseAssetStorage(AssetStorage):
    """Uploads to a Supabase Storage bucket with upsert."""

    def __init__(self, client: Client, bucket: str = "podcasts"):
        self.client = client
        self.bucket = bucket

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        storage = self.client.storage.from_(self.bucket)
        try:
            storage.upload(
                path,
                data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            raise StorageError(f"Upload of {path} to bucket {self.bucket} failed: {e}") from e

        url = storage.get_public_url(path)
        logger.info(f"Uploaded {len(data)} bytes to {self.bucket}/{path}")
        return url
