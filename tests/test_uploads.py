# =============================================================================
# tests/test_uploads.py - Image upload pipeline and storage backends
# =============================================================================

import asyncio
import hashlib
import threading
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.exceptions import StorageUploadError
from app.main import create_app
from app.shared.storage import CloudinaryImageStorage, LocalImageStorage, UploadedImage
from app.shared.uploads import sanitize_filename
from tests.conftest import ARTWORK_PAYLOAD, PNG_BYTES, make_settings


def artwork_form() -> dict:
    return {k: str(v) for k, v in ARTWORK_PAYLOAD.items() if k != "imageUrl"}


class TestArtworkUpload:
    def test_uploaded_file_becomes_image_url(self, client, seller, settings):
        resp = client.post(
            "/api/artworks/create",
            data=artwork_form(),
            files={"image": ("sunset.png", PNG_BYTES, "image/png")},
            headers=seller["headers"],
        )

        assert resp.status_code == 201
        image_url = resp.json()["artwork"]["imageUrl"]
        assert image_url.startswith("http://testserver/uploads/artworks-")
        assert image_url.endswith(".png")
        stored = list(Path(settings.upload_dir).iterdir())
        assert len(stored) == 1

        served = client.get(image_url)
        assert served.status_code == 200
        assert served.content == PNG_BYTES
        assert served.headers["cross-origin-resource-policy"] == "cross-origin"

    def test_uploaded_file_wins_over_image_url(self, client, seller):
        form = {**artwork_form(), "imageUrl": "https://images.example.com/other.jpg"}

        resp = client.post(
            "/api/artworks/create",
            data=form,
            files={"image": ("sunset.png", PNG_BYTES, "image/png")},
            headers=seller["headers"],
        )

        assert "/uploads/artworks-" in resp.json()["artwork"]["imageUrl"]

    def test_file_too_large_never_reaches_handler(self, tmp_path):
        app = create_app(make_settings(tmp_path, max_file_size=32))

        with TestClient(app) as client:
            client.post(
                "/api/auth/register",
                json={
                    "name": "Alice Artist",
                    "email": "alice@example.com",
                    "password": "supersecret1",
                    "role": "seller",
                },
            )
            token = client.post(
                "/api/auth/login",
                json={"email": "alice@example.com", "password": "supersecret1"},
            ).json()["token"]

            resp = client.post(
                "/api/artworks/create",
                data=artwork_form(),
                files={"image": ("big.png", PNG_BYTES, "image/png")},
                headers={"Authorization": f"Bearer {token}"},
            )
            listed = client.get("/api/artworks").json()

        assert resp.status_code == 400
        assert resp.json()["error"] == "File too large"
        assert listed == []

    def test_default_size_message(self, client, seller):
        big = b"\x00" * (5 * 1024 * 1024 + 1)

        resp = client.post(
            "/api/artworks/create",
            data=artwork_form(),
            files={"image": ("big.png", big, "image/png")},
            headers=seller["headers"],
        )

        assert resp.status_code == 400
        assert resp.json()["message"] == "File size must be less than 5MB"

    def test_invalid_content_type(self, client, seller):
        resp = client.post(
            "/api/artworks/create",
            data=artwork_form(),
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=seller["headers"],
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid file type"

    def test_image_type_with_wrong_extension(self, client, seller):
        resp = client.post(
            "/api/artworks/create",
            data=artwork_form(),
            files={"image": ("payload.exe", PNG_BYTES, "image/png")},
            headers=seller["headers"],
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid file type"

    def test_more_than_one_file(self, client, seller):
        resp = client.post(
            "/api/artworks/create",
            data=artwork_form(),
            files=[
                ("image", ("a.png", PNG_BYTES, "image/png")),
                ("image", ("b.png", PNG_BYTES, "image/png")),
            ],
            headers=seller["headers"],
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Too many files"

    def test_file_in_wrong_field(self, client, seller):
        resp = client.post(
            "/api/artworks/create",
            data=artwork_form(),
            files={"photo": ("a.png", PNG_BYTES, "image/png")},
            headers=seller["headers"],
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Unexpected field"

    def test_update_with_upload_replaces_image(self, client, seller, artwork):
        resp = client.put(
            f"/api/artworks/{artwork['id']}",
            data={"title": "New Title"},
            files={"image": ("new.png", PNG_BYTES, "image/png")},
            headers=seller["headers"],
        )

        assert resp.status_code == 200
        assert "/uploads/artworks-" in resp.json()["artwork"]["imageUrl"]
        assert resp.json()["artwork"]["title"] == "New Title"


class TestSanitizeFilename:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\me\\photo.png", "photo.png"),
            ("my photo (1).png", "my_photo__1_.png"),
            ("..", "upload"),
        ],
    )
    def test_sanitize_filename(self, raw, expected):
        assert sanitize_filename(raw) == expected


class TestLocalImageStorage:
    def test_store_writes_prefixed_file(self, tmp_path):
        storage = LocalImageStorage(str(tmp_path / "uploads"))
        image = UploadedImage(filename="a.JPG", content_type="image/jpeg", data=b"abc")

        url = asyncio.run(storage.store(image, folder="profiles"))

        name = url.rsplit("/", 1)[1]
        assert url.startswith("/uploads/profiles-")
        assert name.endswith(".jpg")
        assert (tmp_path / "uploads" / name).read_bytes() == b"abc"

    def test_write_runs_off_the_event_loop(self, tmp_path, monkeypatch):
        storage = LocalImageStorage(str(tmp_path / "uploads"))
        image = UploadedImage(filename="a.png", content_type="image/png", data=b"abc")
        original_write = LocalImageStorage._write
        writer_threads = []

        def recording_write(self, target, data):
            writer_threads.append(threading.get_ident())
            original_write(self, target, data)

        monkeypatch.setattr(LocalImageStorage, "_write", recording_write)

        asyncio.run(storage.store(image, folder="artworks"))

        assert len(writer_threads) == 1
        assert writer_threads[0] != threading.get_ident()


class TestCloudinaryImageStorage:
    def test_signature_covers_sorted_params(self):
        storage = CloudinaryImageStorage("demo", "key", "secret")
        params = {"timestamp": 1700000000, "folder": "artworks"}

        expected = hashlib.sha1(
            b"folder=artworks&timestamp=1700000000secret"
        ).hexdigest()
        assert storage._sign(params) == expected

    def test_profile_uploads_get_square_crop(self):
        storage = CloudinaryImageStorage("demo", "key", "secret")

        assert "transformation" in storage._upload_params("profiles", timestamp=1)
        assert "transformation" not in storage._upload_params("artworks", timestamp=1)

    def test_store_returns_secure_url(self, monkeypatch):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            return httpx.Response(
                200, json={"secure_url": "https://res.cloudinary.com/demo/a.png"}
            )

        self._patch_transport(monkeypatch, handler)
        storage = CloudinaryImageStorage("demo", "key", "secret")
        image = UploadedImage(filename="a.png", content_type="image/png", data=PNG_BYTES)

        url = asyncio.run(storage.store(image, folder="artworks"))

        assert url == "https://res.cloudinary.com/demo/a.png"
        assert captured["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"

    def test_http_failure_raises_storage_error(self, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": {"message": "boom"}})

        self._patch_transport(monkeypatch, handler)
        storage = CloudinaryImageStorage("demo", "key", "secret")
        image = UploadedImage(filename="a.png", content_type="image/png", data=PNG_BYTES)

        with pytest.raises(StorageUploadError):
            asyncio.run(storage.store(image, folder="artworks"))

    @staticmethod
    def _patch_transport(monkeypatch, handler):
        real_client = httpx.AsyncClient

        def client_factory(*args, **kwargs):
            kwargs["transport"] = httpx.MockTransport(handler)
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", client_factory)
