"""Store chat attachments on disk and hand back public URLs.

Objects land under `<base_dir>/sessions/<session_id>/` with a timestamp and
random key prefix so repeated uploads of the same filename never collide.
The directory is served by the app under `/attachments`.
"""

from __future__ import annotations

import asyncio
import os
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from models.attachment import AttachmentFile
from utils.media_validation import ensure_within_limit, normalize_media_type, safe_filename

PUBLIC_PREFIX = "/attachments"


class AttachmentStore:
    """Write attachment bytes to the bucket directory and build their URLs.

    Args:
        base_dir: Bucket directory. Defaults to ATTACHMENTS_DIR, then `<DATABASE_DIR>/attachments`.
        public_base_url: Origin prepended to object URLs. Defaults to PUBLIC_BASE_URL (empty = relative).
    """

    def __init__(self, base_dir: Optional[Path | str] = None, public_base_url: Optional[str] = None) -> None:
        if base_dir is None:
            env_dir = os.getenv("ATTACHMENTS_DIR") or ""
            if env_dir.strip():
                base_dir = env_dir
            elif (os.getenv("DATABASE_DIR") or "").strip():
                base_dir = Path(os.environ["DATABASE_DIR"]) / "attachments"
            else:
                raise RuntimeError("Set ATTACHMENTS_DIR or DATABASE_DIR to store attachments.")
        self.base_dir = Path(base_dir).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)

        if public_base_url is None:
            public_base_url = os.getenv("PUBLIC_BASE_URL", "")
        self.public_base_url = public_base_url.rstrip("/")

    def object_path(self, session_id: str, filename: str) -> str:
        """Return the bucket-relative path for a new object."""
        key = uuid.uuid4().hex
        stamp = int(time.time() * 1000)
        return f"sessions/{safe_filename(session_id)}/{stamp}-{key}-{safe_filename(filename)}"

    def public_url(self, object_path: str) -> str:
        return f"{self.public_base_url}{PUBLIC_PREFIX}/{object_path}"

    def object_path_for_url(self, url: str) -> Optional[str]:
        """Return the bucket-relative path behind one of our public URLs, or None for foreign URLs."""
        prefixes = [f"{PUBLIC_PREFIX}/"]
        if self.public_base_url:
            prefixes.insert(0, f"{self.public_base_url}{PUBLIC_PREFIX}/")
        for prefix in prefixes:
            if url.startswith(prefix):
                return url[len(prefix):]
        return None

    def resolve_object(self, object_path: str) -> Optional[Path]:
        """Return the file for `object_path`, or None if it is missing or outside the bucket."""
        base = self.base_dir.resolve()
        target = (base / object_path).resolve()
        if not target.is_relative_to(base) or not target.is_file():
            return None
        return target

    async def read_object(self, object_path: str) -> Optional[bytes]:
        target = self.resolve_object(object_path)
        if target is None:
            return None
        async with aiofiles.open(target, "rb") as f:
            return await f.read()

    async def save_file(self, session_id: str, item: AttachmentFile) -> Dict[str, Any]:
        """Write a single file and return its file part."""
        object_path = self.object_path(session_id, item.filename)
        target = self.base_dir / object_path
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as f:
            await f.write(item.data)
        return {
            "type": "file",
            "mediaType": normalize_media_type(item.media_type),
            "filename": item.filename,
            "url": self.public_url(object_path),
        }

    async def save_files(self, session_id: str, files: List[AttachmentFile]) -> List[Dict[str, Any]]:
        """Store every file and return file parts in input order.

        Raises:
            ValueError: If no files were given.
            AttachmentTooLargeError: If any file is over the limit; nothing is written.
        """
        if not files:
            raise ValueError("No files provided.")
        ensure_within_limit(files)

        uploaded: List[Dict[str, Any]] = []
        for item in files:
            uploaded.append(await self.save_file(session_id, item))
        return uploaded
