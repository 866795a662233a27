"""Attachment content storage.

The database only keeps attachment metadata; the bytes are handed to an
AttachmentStorage, which returns the URL clients download from.
PlaceholderStorage keeps nothing and just mints a URL under
`upload_base_url`. Swap in a real backend (S3, disk) behind the same
protocol when uploads need to be served.
"""

import uuid
from typing import Protocol
from urllib.parse import quote


class AttachmentStorage(Protocol):
    async def save(self, filename: str, content: bytes, mime_type: str) -> str:
        """Persist `content` and return its public URL."""
        ...


class PlaceholderStorage:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    async def save(self, filename: str, content: bytes, mime_type: str) -> str:
        # Unique prefix so two uploads of the same name get distinct URLs
        return f"{self.base_url}/{uuid.uuid4().hex}/{quote(filename)}"
