from typing import Any, Dict, List

from fastapi import HTTPException, Request, UploadFile

from services.attachment_store import AttachmentStore
from utils.media_validation import AttachmentTooLargeError, read_attachment


async def upload_attachments(request: Request, session_id: str, files: List[UploadFile]) -> Dict[str, Any]:
    """Store uploaded chat attachments and return their file parts.

    Args:
        request: FastAPI Request (used to access app.state.attachment_store).
        session_id: Session the files belong to; used in the object path.
        files: Uploaded files, in the order they should appear in the message.

    Returns:
        A dict with `files`: one `{type, mediaType, filename, url}` entry per upload.

    Raises:
        HTTPException(400) if no files were sent, HTTPException(413) if any
        file is over the size limit (nothing is stored in that case).
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files provided.")

    items = [await read_attachment(upload) for upload in files]

    store: AttachmentStore = request.app.state.attachment_store
    try:
        uploaded = await store.save_files(session_id or "unknown", items)
    except AttachmentTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {"files": uploaded}
