"""Serves stored deck files behind signed URLs."""

from fastapi import APIRouter, Query
from fastapi.responses import FileResponse

from deckgate.errors import NotFoundError, PolicyDeniedError
from deckgate.services.storage import storage

router = APIRouter()


@router.get("/{key:path}")
async def serve_file(
    key: str,
    expires: int = Query(default=0),
    signature: str = Query(default=""),
):
    """Stream a file if the URL's signature and expiry check out."""
    if not signature or not storage.verify_signature(key, expires, signature):
        raise PolicyDeniedError("Invalid or expired file URL")

    path = storage.resolve(key)
    if path is None or not path.is_file():
        raise NotFoundError("File not found")

    return FileResponse(path, media_type="application/pdf")
