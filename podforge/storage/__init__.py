"""Object storage for generated audio and cover art."""

from .assets import AssetStorage, LocalAssetStorage, SupabaseAssetStorage, audio_path, cover_path

__all__ = ["AssetStorage", "LocalAssetStorage", "SupabaseAssetStorage", "audio_path", "cover_path"]
