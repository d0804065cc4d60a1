"""
Fetches files referenced by messages and converts them for the model.

PDFs yield their extracted text (binary passthrough when nothing can be
extracted), plain text is decoded, images and everything else are passed on
as binary with their media type.
"""

import io
import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

import httpx
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from app.core.exceptions import FileProcessingError, FileTooLargeError

DEFAULT_MEDIA_TYPE = "application/octet-stream"

MEDIA_TYPES_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def media_type_from_name(file_name: str) -> str:
    _, ext = os.path.splitext(file_name or "")
    return MEDIA_TYPES_BY_EXTENSION.get(ext.lower(), DEFAULT_MEDIA_TYPE)


@dataclass
class ExtractedText:
    text: str


@dataclass
class BinaryFile:
    data: bytes
    media_type: str


ProcessedFile = Union[ExtractedText, BinaryFile]


def extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages).strip()


class FileProcessor:
    def __init__(self, logger: logging.Logger, timeout_ms: int = 30000, client: Optional[httpx.AsyncClient] = None):
        self.logger = logger
        self.timeout = timeout_ms / 1000
        self._client = client

    async def fetch(self, url: str, max_bytes: Optional[int] = None) -> bytes:
        """
        Download `url`. With `max_bytes` set the body is streamed and the
        download stops with FileTooLargeError once the limit is passed.
        """
        try:
            if self._client is not None:
                return await self._download(self._client, url, max_bytes)
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                return await self._download(client, url, max_bytes)
        except httpx.HTTPError as e:
            raise FileProcessingError(f"Failed to fetch file: {e}") from e

    async def _download(self, client: httpx.AsyncClient, url: str, max_bytes: Optional[int]) -> bytes:
        async with client.stream("GET", url, timeout=self.timeout, follow_redirects=True) as response:
            response.raise_for_status()
            declared = response.headers.get("content-length", "")
            if max_bytes is not None and declared.isdigit() and int(declared) > max_bytes:
                raise FileTooLargeError(f"Remote file declares {declared} bytes, limit is {max_bytes}")

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if max_bytes is not None and len(body) > max_bytes:
                    self.logger.warning(f"Aborted download of {url} after {len(body)} bytes")
                    raise FileTooLargeError(f"Remote file exceeds {max_bytes} bytes")
            return bytes(body)

    async def process(self, url: str, file_name: str, media_type: Optional[str] = None) -> ProcessedFile:
        """Fetch `url` and convert it; raises FileProcessingError when the fetch fails."""
        data = await self.fetch(url)
        if not media_type or media_type == DEFAULT_MEDIA_TYPE:
            media_type = media_type_from_name(file_name)
        return self.convert(data, file_name, media_type)

    def convert(self, data: bytes, file_name: str, media_type: str) -> ProcessedFile:
        if media_type == "application/pdf":
            try:
                text = extract_pdf_text(data)
            except (PdfReadError, ValueError) as e:
                self.logger.warning(f"PDF text extraction failed for {file_name}: {e}")
                text = ""
            if text:
                return ExtractedText(text=text)
            return BinaryFile(data=data, media_type=media_type)

        if media_type == "text/plain":
            return ExtractedText(text=data.decode("utf-8", errors="replace"))

        return BinaryFile(data=data, media_type=media_type)
