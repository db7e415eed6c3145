"""Blob storage tests."""

from urllib.parse import parse_qs, unquote, urlparse

import pytest

from deckgate.services.storage import StorageService


@pytest.fixture
def blob_store(tmp_path) -> StorageService:
    return StorageService(root=tmp_path, secret="storage-test-secret")


def _parse(url: str) -> tuple[str, int, str]:
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    key = unquote(parsed.path.removeprefix("/uploads/"))
    return key, int(query["expires"][0]), query["signature"][0]


class TestSignedUrls:
    def test_fresh_url_verifies(self, blob_store: StorageService):
        key, expires, signature = _parse(blob_store.create_signed_url("decks/a.pdf", 60))

        assert key == "decks/a.pdf"
        assert blob_store.verify_signature(key, expires, signature) is True

    def test_expired_url_is_rejected(self, blob_store: StorageService):
        key, expires, signature = _parse(blob_store.create_signed_url("decks/a.pdf", 60))

        assert blob_store.verify_signature(key, expires, signature, now=expires + 1) is False

    def test_signature_is_bound_to_key_and_expiry(self, blob_store: StorageService):
        key, expires, signature = _parse(blob_store.create_signed_url("decks/a.pdf", 60))

        assert blob_store.verify_signature("decks/b.pdf", expires, signature) is False
        assert blob_store.verify_signature(key, expires + 3600, signature) is False

    def test_other_secret_is_rejected(self, blob_store: StorageService, tmp_path):
        key, expires, signature = _parse(blob_store.create_signed_url("decks/a.pdf", 60))
        other = StorageService(root=tmp_path, secret="another-secret")

        assert other.verify_signature(key, expires, signature) is False


class TestFiles:
    @pytest.mark.asyncio
    async def test_upload_exists_delete(self, blob_store: StorageService):
        await blob_store.upload_file("decks/a.pdf", b"%PDF")

        assert await blob_store.file_exists("decks/a.pdf") is True
        assert await blob_store.delete_file("decks/a.pdf") is True
        assert await blob_store.file_exists("decks/a.pdf") is False
        assert await blob_store.delete_file("decks/a.pdf") is False

    @pytest.mark.parametrize("key", ["../outside.pdf", "/etc/passwd", "decks/../../x.pdf", ""])
    def test_keys_cannot_escape_root(self, blob_store: StorageService, key: str):
        assert blob_store.resolve(key) is None

    @pytest.mark.asyncio
    async def test_upload_rejects_escaping_key(self, blob_store: StorageService):
        with pytest.raises(ValueError):
            await blob_store.upload_file("../outside.pdf", b"%PDF")
