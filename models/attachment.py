from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass
class AttachmentFile:
    """A binary file waiting to be stored as a chat attachment.

    Attributes:
        filename: Name supplied by the uploader (shown back to the user).
        media_type: MIME type; empty values fall back to application/octet-stream.
        data: Raw file bytes.
    """

    filename: str
    media_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
