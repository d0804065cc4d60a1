"""Tests for the upload endpoint and service"""

import httpx
import pytest

from app.core.exceptions import FileProcessingError, ValidationError
from app.core.logger import get_logger
from app.upload.service.upload_service import UploadService, storage_key
from conftest import FakeFileProcessor, FakeObjectStore, InMemoryUploadRepository, asgi_client
from pkg.file_processor.processor import FileProcessor
from pkg.object_store.s3_client import ObjectStoreError


@pytest.mark.asyncio
async def test_multipart_upload(wired, auth_headers):
    async with asgi_client(wired.app, auth_headers("user-1")) as client:
        response = await client.post("/upload", files={"file": ("photo.png", b"\x89PNG", "image/png")})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["fileName"] == "photo.png"
    assert data["fileType"] == "image/png"
    assert data["fileSize"] == 4
    assert data["url"].startswith("https://files.test/chat-uploads/user-1/")
    assert "uploadedAt" in data

    (key, (blob, content_type)), = wired.object_store.blobs.items()
    assert blob == b"\x89PNG"
    assert content_type == "image/png"
    assert wired.upload_repo.records[0].storage_key == key


@pytest.mark.asyncio
async def test_oversized_upload_rejected(wired, auth_headers):
    wired.app.state.upload_service.max_bytes = 1024 * 1024
    async with asgi_client(wired.app, auth_headers()) as client:
        response = await client.post(
            "/upload", files={"file": ("big.pdf", b"x" * (1024 * 1024 + 1), "application/pdf")}
        )

    assert response.status_code == 400
    assert response.json()["message"] == "File too large. Maximum size is 1MB."
    assert wired.object_store.blobs == {}


@pytest.mark.asyncio
async def test_disallowed_type_rejected(wired, auth_headers):
    async with asgi_client(wired.app, auth_headers()) as client:
        response = await client.post("/upload", files={"file": ("run.exe", b"MZ", "application/x-msdownload")})

    assert response.status_code == 400
    assert response.json()["message"] == "File type not supported."


@pytest.mark.asyncio
async def test_url_upload(wired, auth_headers):
    wired.file_processor.files["https://cdn.test/docs/report.pdf?sig=1"] = b"%PDF-1.4"
    async with asgi_client(wired.app, auth_headers()) as client:
        response = await client.post("/upload", json={"fileUrl": "https://cdn.test/docs/report.pdf?sig=1"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["fileName"] == "report.pdf"
    assert data["fileType"] == "application/pdf"
    assert data["fileSize"] == len(b"%PDF-1.4")


@pytest.mark.asyncio
async def test_url_upload_without_url_is_400(wired, auth_headers):
    async with asgi_client(wired.app, auth_headers()) as client:
        response = await client.post("/upload", json={"fileName": "a.png"})

    assert response.status_code == 400
    assert response.json()["message"] == "Missing fileUrl"


@pytest.mark.asyncio
async def test_upload_requires_token(wired):
    async with asgi_client(wired.app) as client:
        response = await client.post("/upload", files={"file": ("a.png", b"1", "image/png")})
    assert response.status_code == 401


def test_storage_key_is_sanitized():
    key = storage_key("u1", "my report (final).pdf")
    assert key.startswith("chat-uploads/u1/")
    assert key.endswith("_my_report_final_.pdf")


class FailingObjectStore(FakeObjectStore):
    async def put(self, key, data, content_type):
        raise ObjectStoreError("bucket unreachable")


@pytest.mark.asyncio
async def test_store_failure_is_reported_generically():
    service = UploadService(FailingObjectStore(), InMemoryUploadRepository(), FakeFileProcessor(), 1024)
    with pytest.raises(FileProcessingError, match="File upload failed"):
        await service.upload_bytes("u1", "a.txt", "text/plain", b"hello")


@pytest.mark.asyncio
async def test_declared_size_checked_before_fetch():
    processor = FakeFileProcessor({"https://cdn.test/a.png": b"tiny"})
    service = UploadService(FakeObjectStore(), InMemoryUploadRepository(), processor, 1024)
    with pytest.raises(ValidationError):
        await service.upload_from_url("u1", "https://cdn.test/a.png", file_size=4096)


@pytest.mark.asyncio
async def test_type_inferred_from_extension():
    service = UploadService(FakeObjectStore(), InMemoryUploadRepository(), FakeFileProcessor(), 1024)
    record = await service.upload_bytes("u1", "notes.txt", None, b"hi")
    assert record.file_type == "text/plain"


def streaming_file_processor(chunk_count: int, chunk_size: int, served: list, declare_length: bool = False):
    """FileProcessor over an httpx MockTransport that streams `chunk_count` chunks and counts what it sent."""

    async def body():
        for _ in range(chunk_count):
            served.append(chunk_size)
            yield b"x" * chunk_size

    def handler(request: httpx.Request) -> httpx.Response:
        if declare_length:
            served.append(chunk_count * chunk_size)
            return httpx.Response(200, content=b"x" * (chunk_count * chunk_size))
        return httpx.Response(200, content=body())

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FileProcessor(get_logger("TestFileProcessor"), client=client)


@pytest.mark.asyncio
async def test_url_upload_stops_downloading_past_the_limit():
    served = []
    chunk = 64 * 1024
    processor = streaming_file_processor(chunk_count=100, chunk_size=chunk, served=served)
    store = FakeObjectStore()
    service = UploadService(store, InMemoryUploadRepository(), processor, 1024 * 1024)

    with pytest.raises(ValidationError, match="File too large. Maximum size is 1MB."):
        await service.upload_from_url("u1", "http://files.test/big.pdf")

    assert sum(served) <= 1024 * 1024 + chunk
    assert store.blobs == {}


@pytest.mark.asyncio
async def test_url_upload_rejects_declared_length_over_limit():
    served = []
    processor = streaming_file_processor(chunk_count=4, chunk_size=512 * 1024, served=served, declare_length=True)
    service = UploadService(FakeObjectStore(), InMemoryUploadRepository(), processor, 1024 * 1024)

    with pytest.raises(ValidationError, match="File too large"):
        await service.upload_from_url("u1", "http://files.test/big.pdf")


@pytest.mark.asyncio
async def test_url_upload_under_limit_is_streamed_whole():
    served = []
    processor = streaming_file_processor(chunk_count=3, chunk_size=1000, served=served)
    store = FakeObjectStore()
    service = UploadService(store, InMemoryUploadRepository(), processor, 1024 * 1024)

    record = await service.upload_from_url("u1", "http://files.test/notes.txt")

    assert record.file_size == 3000
    assert record.file_type == "text/plain"
    (blob, _), = store.blobs.values()
    assert blob == b"x" * 3000
