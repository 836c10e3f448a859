"""Tests for media loading."""

import httpx

from sift.ingest.media import MediaResolver, guess_mime_type


class TestGuessMimeType:
    def test_known_suffixes(self):
        assert guess_mime_type("scan.PDF") == "application/pdf"
        assert guess_mime_type("https://x.test/a.png?sig=1") == "image/png"

    def test_default(self):
        assert guess_mime_type("photo") == "image/jpeg"


class TestMediaResolver:
    def test_empty_reference(self, tmp_path):
        assert MediaResolver(tmp_path).resolve(None) is None
        assert MediaResolver(tmp_path).resolve("") is None

    def test_local_relative_path(self, tmp_path):
        (tmp_path / "uploads").mkdir()
        (tmp_path / "uploads" / "note.png").write_bytes(b"\x89PNG")

        part = MediaResolver(tmp_path).resolve("/uploads/note.png")

        assert part.data == b"\x89PNG"
        assert part.mime_type == "image/png"

    def test_missing_file(self, tmp_path, caplog):
        assert MediaResolver(tmp_path).resolve("nope.jpg") is None
        assert "not found" in caplog.text

    def test_parent_traversal_rejected(self, tmp_path, caplog):
        media_root = tmp_path / "media"
        media_root.mkdir()
        (tmp_path / "secret.png").write_bytes(b"not yours")

        assert MediaResolver(media_root).resolve("../secret.png") is None
        assert MediaResolver(media_root).resolve("uploads/../../secret.png") is None
        assert "escapes the media root" in caplog.text

    def test_absolute_path_stays_under_root(self, tmp_path):
        media_root = tmp_path / "media"
        media_root.mkdir()
        secret = tmp_path / "secret.png"
        secret.write_bytes(b"not yours")

        assert MediaResolver(media_root).resolve(str(secret)) is None

    def test_remote_uses_content_type(self, tmp_path):
        def handler(request):
            return httpx.Response(200, content=b"%PDF", headers={"content-type": "application/pdf; charset=binary"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        part = MediaResolver(tmp_path, client=client).resolve("https://files.test/download")

        assert part.data == b"%PDF"
        assert part.mime_type == "application/pdf"

    def test_remote_falls_back_to_suffix(self, tmp_path):
        def handler(request):
            return httpx.Response(200, content=b"img", headers={"content-type": "application/octet-stream"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        part = MediaResolver(tmp_path, client=client).resolve("https://files.test/a.webp")

        assert part.mime_type == "image/webp"

    def test_remote_error(self, tmp_path):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))

        assert MediaResolver(tmp_path, client=client).resolve("https://files.test/gone.jpg") is None
