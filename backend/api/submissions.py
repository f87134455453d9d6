"""
Submissions API endpoints
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel

from backend.api.deps import get_caller, get_service
from core.legend import legend_to_wire
from core.models import Annotation, Caller, Submission
from core.service import SubmissionService, UploadedImage
from core.shapes import shapes_to_wire

router = APIRouter()


class LegendEntryResponse(BaseModel):
    color: str
    text: str


class AnnotationResponse(BaseModel):
    original_image_ref: str
    original_image_url: Optional[str] = None
    overlay_ref: str
    annotated_image_url: Optional[str] = None
    shapes: list[dict]


class SubmissionResponse(BaseModel):
    id: int
    patient_id: str
    name: str
    email: str
    note: Optional[str] = None
    original_image_refs: list[str]
    original_image_urls: list[str]
    annotations: list[AnnotationResponse]
    legends: list[LegendEntryResponse]
    missing_images: list[str]
    status: str
    report_ref: Optional[str] = None
    report_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReportResponse(BaseModel):
    submission: SubmissionResponse
    warnings: list[str]


def image_ref_from_url(value: Optional[str]) -> Optional[str]:
    """Accept either a bare storage ref or the URL it is served under."""
    if not value:
        return value
    return value.rstrip("/").rsplit("/", 1)[-1]


def annotation_to_response(ann: Annotation, service: SubmissionService) -> AnnotationResponse:
    """Convert Annotation to AnnotationResponse."""
    return AnnotationResponse(
        original_image_ref=ann.original_image_ref,
        original_image_url=service.storage.public_url(ann.original_image_ref),
        overlay_ref=ann.overlay_ref,
        annotated_image_url=service.storage.public_url(ann.overlay_ref),
        shapes=shapes_to_wire(ann.shapes),
    )


def submission_to_response(sub: Submission, service: SubmissionService) -> SubmissionResponse:
    """Convert Submission to SubmissionResponse."""
    return SubmissionResponse(
        id=sub.id,
        patient_id=sub.patient_id,
        name=sub.name,
        email=sub.email,
        note=sub.note,
        original_image_refs=sub.original_image_refs,
        original_image_urls=[service.storage.public_url(ref) for ref in sub.original_image_refs],
        annotations=[annotation_to_response(ann, service) for ann in sub.annotations],
        legends=[LegendEntryResponse(**e) for e in legend_to_wire(sub.legend)],
        missing_images=sub.missing_images(),
        status=sub.status.value,
        report_ref=sub.report_ref,
        report_url=service.storage.public_url(sub.report_ref),
        created_at=sub.created_at,
        updated_at=sub.updated_at,
    )


@router.post("", response_model=SubmissionResponse)
async def create_submission(
    name: str = Form(...),
    email: str = Form(...),
    note: Optional[str] = Form(None),
    images: list[UploadFile] = File(...),
    caller: Caller = Depends(get_caller),
    service: SubmissionService = Depends(get_service),
):
    """Upload images and create a submission (patients only)."""
    uploads = [
        UploadedImage(
            filename=image.filename or "image",
            data=await image.read(),
            content_type=image.content_type,
        )
        for image in images
    ]
    submission = service.create_submission(caller, name, email, uploads, note=note)
    return submission_to_response(submission, service)


@router.get("/patient", response_model=list[SubmissionResponse])
async def list_own_submissions(
    caller: Caller = Depends(get_caller),
    service: SubmissionService = Depends(get_service),
):
    """List the calling patient's submissions, newest first."""
    return [submission_to_response(s, service) for s in service.list_own(caller)]


@router.get("", response_model=list[SubmissionResponse])
async def list_submissions(
    caller: Caller = Depends(get_caller),
    service: SubmissionService = Depends(get_service),
):
    """List all submissions, newest first (admins only)."""
    return [submission_to_response(s, service) for s in service.list_all(caller)]


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: int,
    caller: Caller = Depends(get_caller),
    service: SubmissionService = Depends(get_service),
):
    """Get submission by ID."""
    return submission_to_response(service.get_submission(caller, submission_id), service)


@router.get("/{submission_id}/annotations", response_model=AnnotationResponse)
async def get_annotation(
    submission_id: int,
    image_ref: str = Query(..., description="Original image ref or URL"),
    caller: Caller = Depends(get_caller),
    service: SubmissionService = Depends(get_service),
):
    """Get the saved annotation of one image to resume editing it."""
    ann = service.find_annotation(caller, submission_id, image_ref_from_url(image_ref))
    if ann is None:
        raise HTTPException(status_code=404, detail="Annotation not found")
    return annotation_to_response(ann, service)


@router.put("/{submission_id}/annotate", response_model=SubmissionResponse)
async def annotate_submission(
    submission_id: int,
    annotated_image: Optional[UploadFile] = File(None, alias="annotatedImage"),
    shapes: Optional[str] = Form(None),
    legends: Optional[str] = Form(None),
    original_image_url: Optional[str] = Form(None, alias="originalImageUrl"),
    caller: Caller = Depends(get_caller),
    service: SubmissionService = Depends(get_service),
):
    """Save markup for one image and replace the submission legend."""
    overlay = await annotated_image.read() if annotated_image else None
    submission = service.annotate(
        caller,
        submission_id,
        original_image_ref=image_ref_from_url(original_image_url),
        overlay=overlay,
        shapes=shapes,
        legend=legends,
        overlay_content_type=annotated_image.content_type if annotated_image else None,
    )
    return submission_to_response(submission, service)


@router.post("/{submission_id}/generate-report", response_model=ReportResponse)
async def generate_report(
    submission_id: int,
    caller: Caller = Depends(get_caller),
    service: SubmissionService = Depends(get_service),
):
    """Render the PDF report once every image is annotated."""
    result = service.generate_report(caller, submission_id)
    return ReportResponse(
        submission=submission_to_response(result.submission, service),
        warnings=result.warnings,
    )
