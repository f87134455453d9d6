"""
Shared API dependencies: the submission service and the calling identity.
"""

from typing import Optional

from fastapi import Header, HTTPException

from backend.config import DB_PATH, STORAGE_DIR, MAX_UPLOAD_IMAGES, REPORT_FETCH_WORKERS
from core.models import Caller, Role
from core.report import ReportCompositor
from core.service import SubmissionService
from core.storage import LocalImageStorage
from core.store import SubmissionStore

_service: Optional[SubmissionService] = None


def get_service() -> SubmissionService:
    """Get the process-wide submission service, creating it on first use."""
    global _service

    if _service is None:
        _service = SubmissionService(
            store=SubmissionStore.open(DB_PATH),
            storage=LocalImageStorage(str(STORAGE_DIR)),
            compositor=ReportCompositor(fetch_workers=REPORT_FETCH_WORKERS),
            max_images=MAX_UPLOAD_IMAGES,
        )
    return _service


def close_service() -> None:
    """Close the current service's database connection."""
    global _service

    if _service is not None:
        _service.store.close()
    _service = None


def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    """
    Identity supplied by the authenticating proxy in front of the API.

    Raises 401 when either header is missing and 403 for unknown roles.
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="No identity, authorization denied")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role: {x_user_role}")
    return Caller(id=x_user_id, role=role)
