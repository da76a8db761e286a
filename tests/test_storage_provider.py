"""
Tests for the local storage provider
"""
import asyncio

import httpx

from media_studio.services.storage_provider import LocalDiskStorageProvider


def make_storage(tmp_path):
    return LocalDiskStorageProvider(
        base_path=str(tmp_path / "public"),
        public_base_url="http://testserver",
        private_path=str(tmp_path / "private"),
    )


def copy(storage, url, body, content_type):
    def handler(request):
        return httpx.Response(200, content=body, headers={"content-type": content_type})

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await storage.put_from_url(url, "videos/1", client=http)

    return asyncio.run(go())


def test_copied_artifact_keeps_media_extension(tmp_path):
    url = copy(make_storage(tmp_path), "https://fal.media/files/out.mp4", b"mp4", "video/mp4")

    assert url.startswith("http://testserver/storage/videos/1/")
    assert url.endswith(".mp4")


def test_copied_artifact_never_stored_as_html(tmp_path):
    url = copy(make_storage(tmp_path), "https://vendor.test/result.html", b"<script></script>", "text/html")

    assert url.endswith(".bin")
    assert not list((tmp_path / "public").rglob("*.html"))


def test_private_objects_live_outside_public_path(tmp_path):
    storage = make_storage(tmp_path)

    key = storage.put_private("payments/screenshots/1/receipt.png", b"png", "image/png")

    assert key == "private/payments/screenshots/1/receipt.png"
    assert (tmp_path / "private" / "payments" / "screenshots" / "1" / "receipt.png").exists()
    assert not (tmp_path / "public").joinpath("private").exists()
    assert storage.get_private(key) == b"png"
    assert storage.get_private("private/payments/missing.png") is None
