"""Tests for attachment validation and the on-disk attachment store."""

import pytest

from models.attachment import AttachmentFile
from services.attachment_store import AttachmentStore
from utils.media_validation import (
    MAX_ATTACHMENT_BYTES,
    AttachmentTooLargeError,
    normalize_media_type,
    safe_filename,
)


def test_safe_filename_replaces_unsafe_characters():
    assert safe_filename("my report (v2).pdf") == "my_report_v2_.pdf"
    assert safe_filename("") == "file"
    long_name = "a" * 200 + ".png"
    assert safe_filename(long_name) == long_name[-120:]


def test_normalize_media_type_defaults_to_octet_stream():
    assert normalize_media_type("Image/PNG; charset=binary") == "image/png"
    assert normalize_media_type(None) == "application/octet-stream"
    assert normalize_media_type("") == "application/octet-stream"


def test_object_path_layout(attachment_store):
    path = attachment_store.object_path("session 1", "notes.txt")
    prefix, session, name = path.split("/")
    assert prefix == "sessions"
    assert session == "session_1"
    stamp, key, filename = name.split("-", 2)
    assert stamp.isdigit() and len(key) == 32
    assert filename == "notes.txt"


@pytest.mark.asyncio
async def test_save_files_preserves_input_order(attachment_store):
    files = [
        AttachmentFile("a.png", "image/png", b"A"),
        AttachmentFile("b.pdf", "", b"B"),
        AttachmentFile("c.txt", "text/plain", b"C"),
    ]
    parts = await attachment_store.save_files("s1", files)

    assert [p["filename"] for p in parts] == ["a.png", "b.pdf", "c.txt"]
    assert parts[1]["mediaType"] == "application/octet-stream"
    for part, item in zip(parts, files):
        assert part["type"] == "file"
        assert part["url"].startswith("/attachments/sessions/s1/")
        stored = attachment_store.base_dir / part["url"][len("/attachments/"):]
        assert stored.read_bytes() == item.data


@pytest.mark.asyncio
async def test_oversize_batch_writes_nothing(attachment_store):
    files = [
        AttachmentFile("ok.txt", "text/plain", b"fine"),
        AttachmentFile("big.bin", "", b"\0" * (MAX_ATTACHMENT_BYTES + 1)),
    ]
    with pytest.raises(AttachmentTooLargeError):
        await attachment_store.save_files("s1", files)
    assert not (attachment_store.base_dir / "sessions").exists()


@pytest.mark.asyncio
async def test_empty_batch_is_rejected(attachment_store):
    with pytest.raises(ValueError):
        await attachment_store.save_files("s1", [])


def test_public_url_uses_configured_origin(tmp_path):
    store = AttachmentStore(tmp_path, public_base_url="https://chat.example.com/")
    assert store.public_url("sessions/s1/x.png") == "https://chat.example.com/attachments/sessions/s1/x.png"


def test_store_defaults_to_database_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("ATTACHMENTS_DIR", raising=False)
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path))
    assert AttachmentStore().base_dir == tmp_path / "attachments"
