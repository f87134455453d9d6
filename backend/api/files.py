"""
Stored artifact download routes
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from backend.api.deps import get_service
from core.service import SubmissionService

router = APIRouter()


@router.get("/{ref}")
async def get_file(ref: str, service: SubmissionService = Depends(get_service)):
    """
    Serve an uploaded image, overlay or report PDF.

    Only bare references inside the storage root are served.
    """
    path = service.storage.path_for(ref)
    return FileResponse(path)
