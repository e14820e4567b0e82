"""
tests/test_storage.py — Object Storage Validation
===================================================
"""

from __future__ import annotations

import pytest

from orgsync.errors import ConflictError, NotFoundError, ValidationError
from orgsync.services import storage_service
from orgsync.services.storage_service import ImageUpload

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class TestValidateImage:
    def test_returns_lowercase_extension(self):
        assert storage_service.validate_image("Photo.PNG", PNG, "image/png") == ".png"

    def test_empty_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            storage_service.validate_image("a.png", b"")

    def test_oversize_rejected(self, monkeypatch):
        monkeypatch.setattr(storage_service, "MAX_FILE_SIZE", 10)
        with pytest.raises(ValidationError, match="too large"):
            storage_service.validate_image("a.png", PNG)

    def test_extension_rejected(self):
        with pytest.raises(ValidationError, match="File type not allowed"):
            storage_service.validate_image("script.svg", PNG)

    def test_mime_rejected(self):
        with pytest.raises(ValidationError, match="MIME type not allowed"):
            storage_service.validate_image("a.png", PNG, "text/html")


class TestSaveObject:
    def test_writes_file_and_returns_url(self, storage_dir):
        url = storage_service.save_object("avatars", "u1.png", PNG, "image/png")
        assert url == "/api/storage/avatars/u1.png"
        assert (storage_dir / "avatars" / "u1.png").read_bytes() == PNG

    def test_public_url_prefix(self, storage_dir, monkeypatch):
        monkeypatch.setenv("ORGSYNC_PUBLIC_URL", "https://orgsync.example.edu/")
        url = storage_service.save_object("flappy", "org/c-player.png", PNG)
        assert url == "https://orgsync.example.edu/api/storage/flappy/org/c-player.png"

    def test_existing_object_conflicts_without_upsert(self, storage_dir):
        storage_service.save_object("avatars", "u1.png", PNG)
        with pytest.raises(ConflictError):
            storage_service.save_object("avatars", "u1.png", PNG)

    def test_upsert_overwrites(self, storage_dir):
        storage_service.save_object("avatars", "u1.png", PNG)
        storage_service.save_object("avatars", "u1.png", PNG + b"!", upsert=True)
        assert storage_service.read_object("avatars", "u1.png").endswith(b"!")

    @pytest.mark.parametrize("path", ["../escape.png", "a/../../b.png", "/../etc.png"])
    def test_traversal_rejected(self, storage_dir, path):
        with pytest.raises(ValidationError, match="Invalid object path"):
            storage_service.save_object("avatars", path, PNG)

    def test_unknown_bucket(self, storage_dir):
        with pytest.raises(ValidationError, match="Unknown storage bucket"):
            storage_service.save_object("secrets", "a.png", PNG)


class TestReadDelete:
    def test_read_missing(self, storage_dir):
        with pytest.raises(NotFoundError):
            storage_service.read_object("avatars", "nope.png")

    def test_delete(self, storage_dir):
        storage_service.save_object("screenshots", "c1/u1.png", PNG)
        assert storage_service.delete_object("screenshots", "c1/u1.png") is True
        assert storage_service.delete_object("screenshots", "c1/u1.png") is False


class TestStoreImage:
    def test_stem_gets_upload_extension(self, storage_dir):
        url = storage_service.store_image(
            "screenshots", "c1/u1", ImageUpload("room.JPG", PNG, "image/jpeg"),
        )
        assert url.endswith("/screenshots/c1/u1.jpg")
        assert (storage_dir / "screenshots" / "c1" / "u1.jpg").exists()

    def test_ensure_storage_dirs(self, tmp_path):
        storage_service.ensure_storage_dirs(tmp_path)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["avatars", "flappy", "org-pics", "screenshots"]


class TestDiscardReplaced:
    def test_old_extension_deleted(self, storage_dir):
        old = storage_service.save_object("avatars", "u1.png", PNG)
        new = storage_service.save_object("avatars", "u1.jpg", PNG)
        assert storage_service.discard_replaced("avatars", old, new) is True
        assert not (storage_dir / "avatars" / "u1.png").exists()
        assert (storage_dir / "avatars" / "u1.jpg").exists()

    def test_same_url_kept(self, storage_dir):
        url = storage_service.save_object("avatars", "u1.png", PNG)
        assert storage_service.discard_replaced("avatars", url, url) is False
        assert (storage_dir / "avatars" / "u1.png").exists()

    def test_foreign_url_ignored(self, storage_dir):
        new = storage_service.save_object("avatars", "u1.png", PNG)
        assert storage_service.discard_replaced("avatars", "https://cdn.example.com/me.png", new) is False
        assert storage_service.discard_replaced("avatars", None, new) is False

    def test_object_path_with_public_prefix(self, storage_dir, monkeypatch):
        monkeypatch.setenv("ORGSYNC_PUBLIC_URL", "https://orgsync.example.edu")
        url = storage_service.public_url("screenshots", "c1/u1.png")
        assert storage_service.object_path("screenshots", url) == "c1/u1.png"
        assert storage_service.object_path("avatars", url) is None
