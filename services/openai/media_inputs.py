"""Utilities to build Responses API input payloads from UI chat messages."""

import base64
import logging
from typing import Any, Dict, Iterable, List, Optional

from models.session_models import ChatMessage


def to_data_url(data: bytes, media_type: str) -> str:
    """Encode raw bytes as a base64 data URL the model can read inline."""
    return f"data:{media_type or 'application/octet-stream'};base64,{base64.b64encode(data).decode('ascii')}"


def _is_fetchable(url: str) -> bool:
    return url.startswith(("http://", "https://", "data:"))


def _file_input(part: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map a file part to an image or file input entry.

    Relative URLs cannot be fetched by the API; such parts are dropped.
    """
    media_type = (part.get("mediaType") or "").lower()
    url = part.get("url") or ""
    if not _is_fetchable(url):
        logging.warning(f"Skipping attachment with unreachable URL: {url[:120]}")
        return None
    if media_type.startswith("image/"):
        return {"type": "input_image", "image_url": url}
    entry: Dict[str, Any] = {"type": "input_file"}
    if url.startswith("data:"):
        entry["file_data"] = url
        entry["filename"] = part.get("filename") or "file"
    else:
        entry["file_url"] = url
        if part.get("filename"):
            entry["filename"] = part["filename"]
    return entry


async def inline_stored_files(messages: List[ChatMessage], store: Any) -> List[ChatMessage]:
    """Replace URLs of attachments held in `store` with data URLs.

    Parts pointing elsewhere are left unchanged; stored objects that are gone
    keep their URL and are dropped later by `build_message_content`.
    """
    inlined: List[ChatMessage] = []
    for message in messages:
        parts = []
        for part in message.parts:
            object_path = store.object_path_for_url(part.get("url") or "") if part.get("type") == "file" else None
            data = await store.read_object(object_path) if object_path else None
            if data is not None:
                part = {**part, "url": to_data_url(data, part.get("mediaType") or "")}
            parts.append(part)
        inlined.append(message.with_parts(parts))
    return inlined


def build_message_content(message: ChatMessage) -> List[Dict[str, Any]]:
    """Convert one message's parts into Responses content entries.

    Assistant text is replayed as `output_text`; attachments on assistant
    turns are dropped since the API only accepts them as user input.
    """
    content: List[Dict[str, Any]] = []
    for part in message.parts:
        part_type = part.get("type")
        if part_type == "text" and part.get("text"):
            text_type = "output_text" if message.role == "assistant" else "input_text"
            content.append({"type": text_type, "text": part["text"]})
        elif part_type == "file" and part.get("url") and message.role != "assistant":
            entry = _file_input(part)
            if entry is not None:
                content.append(entry)
    return content


def build_history_inputs(messages: Iterable[ChatMessage]) -> List[Dict[str, Any]]:
    """Build the Responses API input array, one message entry per UI message."""
    inputs: List[Dict[str, Any]] = []
    for message in messages:
        content = build_message_content(message)
        if not content:
            continue
        inputs.append({"type": "message", "role": message.role, "content": content})
    return inputs
