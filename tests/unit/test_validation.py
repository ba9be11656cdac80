"""
Unit tests for input validation and local asset storage.
"""

import pytest


@pytest.mark.unit
class TestSafePathJoin:
    """Tests for safe_path_join."""

    def test_valid_join(self, tmp_path):
        from podforge.utils.validation import safe_path_join

        result = safe_path_join(tmp_path, "public", "user-1", "1-audio.mp3")
        assert result == (tmp_path / "public" / "user-1" / "1-audio.mp3").resolve()

    @pytest.mark.parametrize("part", ["..", "../etc", "/etc/passwd", "\\windows"])
    def test_traversal_blocked(self, tmp_path, part):
        from podforge.errors import PathTraversalError
        from podforge.utils.validation import safe_path_join

        with pytest.raises(PathTraversalError):
            safe_path_join(tmp_path, part)


@pytest.mark.unit
class TestValidateString:
    """Tests for validate_string."""

    def test_none_returns_default(self):
        from podforge.utils.validation import validate_string

        assert validate_string(None, default="learn") == "learn"

    def test_strips_and_truncates(self):
        from podforge.utils.validation import validate_string

        assert validate_string("  abcdef  ", max_length=3) == "abc"

    def test_non_strings_are_coerced(self):
        from podforge.utils.validation import validate_string

        assert validate_string(5) == "5"


@pytest.mark.unit
class TestLocalAssetStorage:
    """Tests for LocalAssetStorage."""

    def test_upload_writes_and_returns_file_uri(self, tmp_path):
        from podforge.storage.assets import LocalAssetStorage, audio_path

        storage = LocalAssetStorage(tmp_path)
        path = audio_path("user-1", 7)
        url = storage.upload(path, b"mp3-bytes", "audio/mpeg")

        assert path == "public/user-1/7-audio.mp3"
        assert url.startswith("file://")
        assert storage.get_path(path).read_bytes() == b"mp3-bytes"

    def test_upload_overwrites(self, tmp_path):
        from podforge.storage.assets import LocalAssetStorage, cover_path

        storage = LocalAssetStorage(tmp_path)
        path = cover_path("user-1", 7)
        storage.upload(path, b"old", "image/png")
        storage.upload(path, b"new", "image/png")
        assert storage.get_path(path).read_bytes() == b"new"

    def test_base_url(self, tmp_path):
        from podforge.storage.assets import LocalAssetStorage

        storage = LocalAssetStorage(tmp_path, base_url="https://cdn.example.org/")
        url = storage.upload("public/u/1-cover.png", b"png", "image/png")
        assert url == "https://cdn.example.org/public/u/1-cover.png"

    def test_traversal_in_path(self, tmp_path):
        from podforge.errors import PathTraversalError
        from podforge.storage.assets import LocalAssetStorage

        storage = LocalAssetStorage(tmp_path)
        with pytest.raises(PathTraversalError):
            storage.upload("public/../../escape.mp3", b"x", "audio/mpeg")


@pytest.mark.unit
class TestSupabaseAssetStorage:
    """Tests for SupabaseAssetStorage with a mocked client."""

    def test_upload_with_upsert(self):
        from unittest.mock import MagicMock

        from podforge.storage.assets import SupabaseAssetStorage

        client = MagicMock()
        bucket = client.storage.from_.return_value
        bucket.get_public_url.return_value = "https://x.supabase.co/storage/v1/object/public/podcasts/p.mp3"

        storage = SupabaseAssetStorage(client, bucket="podcasts")
        url = storage.upload("p.mp3", b"data", "audio/mpeg")

        client.storage.from_.assert_called_with("podcasts")
        bucket.upload.assert_called_once_with(
            "p.mp3",
            b"data",
            file_options={"content-type": "audio/mpeg", "upsert": "true"},
        )
        assert url.endswith("/podcasts/p.mp3")

    def test_upload_failure(self):
        from unittest.mock import MagicMock

        from podforge.errors import StorageError
        from podforge.storage.assets import SupabaseAssetStorage

        client = MagicMock()
        client.storage.from_.return_value.upload.side_effect = RuntimeError("bucket not found")

        with pytest.raises(StorageError, match="bucket not found"):
            SupabaseAssetStorage(client).upload("p.mp3", b"data", "audio/mpeg")
