"""FastAPI routes for chat attachment uploads."""

from typing import List

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from controllers.attachment_controller import upload_attachments

router = APIRouter(prefix="/api/attachments", tags=["attachments"])


@router.post("/upload", summary="Store chat attachments for a session")
async def upload_attachments_route(
    request: Request,
    sessionId: str = Form("unknown"),
    files: List[UploadFile] = File(default=[]),
):
    """Store the uploaded files and return their public file parts.

    Args:
        request: The FastAPI request containing application state.
        sessionId: Session the attachments belong to.
        files: Files in the order they should appear in the message.

    Raises:
        HTTPException: If nothing was uploaded, a file is too large, or storage fails.
    """
    try:
        return await upload_attachments(request, sessionId, files)
    except HTTPException:
        raise
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise HTTPException(status_code=500, detail=f"Failed to upload attachments. {exc}") from exc


files_router = APIRouter(tags=["attachments"])


@files_router.get("/attachments/{object_path:path}", include_in_schema=False)
async def get_attachment(request: Request, object_path: str):
    """Serve a stored attachment by its bucket-relative path."""
    target = request.app.state.attachment_store.resolve_object(object_path)
    if target is None:
        raise HTTPException(status_code=404, detail="Attachment not found")
    return FileResponse(target)
