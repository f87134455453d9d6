"""
Submission workflow: upload, annotate, generate report.

Each operation checks the caller's role, validates its input, and only then
touches storage and the aggregate. Aggregate changes are persisted with a
single SubmissionStore.save_submission call.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from core.errors import AuthorizationError, ValidationError
from core.legend import parse_legend
from core.models import Annotation, Caller, Role, Submission
from core.report import ReportCompositor, compute_image_width
from core.shapes import parse_shapes
from core.storage import ImageStorage
from core.store import SubmissionStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGES = 5


@dataclass
class UploadedImage:
    filename: str
    data: bytes
    content_type: Optional[str] = None


@dataclass
class ReportResult:
    submission: Submission
    warnings: list[str] = field(default_factory=list)


def require_role(caller: Optional[Caller], role: Role) -> Caller:
    """Raise AuthorizationError unless `caller` has `role`."""
    if caller is None:
        raise AuthorizationError("Authentication required")
    if caller.role != role:
        raise AuthorizationError(f"Role {caller.role.value!r} is not authorized")
    return caller


class SubmissionService:
    """
    Operations on submissions, gated by caller role.
    """

    def __init__(
        self,
        store: SubmissionStore,
        storage: ImageStorage,
        compositor: Optional[ReportCompositor] = None,
        max_images: int = DEFAULT_MAX_IMAGES,
    ):
        self.store = store
        self.storage = storage
        self.compositor = compositor or ReportCompositor()
        if max_images < 1:
            raise ValueError("max_images must be at least 1")
        # a full submission must still lay out on the report page
        compute_image_width(max_images, self.compositor.geometry)
        self.max_images = max_images

    # ==================== Patient Operations ====================

    def create_submission(
        self,
        caller: Caller,
        name: str,
        email: str,
        images: list[UploadedImage],
        note: Optional[str] = None,
    ) -> Submission:
        """
        Store uploaded images and create a submission for the patient.

        Raises:
            ValidationError: Missing name/email, no images or too many
        """
        require_role(caller, Role.PATIENT)

        if not name or not name.strip():
            raise ValidationError("Name is required")
        if not email or not email.strip():
            raise ValidationError("Email is required")
        if not images:
            raise ValidationError("Please upload at least one image")
        if len(images) > self.max_images:
            raise ValidationError(f"At most {self.max_images} images may be uploaded")
        for image in images:
            if not image.data:
                raise ValidationError(f"Image {image.filename!r} is empty")

        refs = [
            self.storage.put(image.data, f"submission-{image.filename}", image.content_type)
            for image in images
        ]
        return self.store.create_submission(
            patient_id=caller.id,
            name=name.strip(),
            email=email.strip(),
            original_image_refs=refs,
            note=note or None,
        )

    def list_own(self, caller: Caller) -> list[Submission]:
        require_role(caller, Role.PATIENT)
        return self.store.list_submissions(patient_id=caller.id)

    # ==================== Reviewer Operations ====================

    def list_all(self, caller: Caller) -> list[Submission]:
        require_role(caller, Role.ADMIN)
        return self.store.list_submissions()

    def get_submission(self, caller: Caller, submission_id: int) -> Submission:
        require_role(caller, Role.ADMIN)
        return self.store.get_submission(submission_id)

    def find_annotation(self, caller: Caller, submission_id: int,
                        original_image_ref: str) -> Optional[Annotation]:
        """Saved annotation for one image, used to resume editing it."""
        require_role(caller, Role.ADMIN)
        submission = self.store.get_submission(submission_id)
        return submission.annotations.find_by_image(original_image_ref)

    def annotate(
        self,
        caller: Caller,
        submission_id: int,
        original_image_ref: str,
        overlay: Optional[bytes],
        shapes: Union[str, list, None],
        legend: Union[str, list, None],
        overlay_content_type: Optional[str] = "image/png",
    ) -> Submission:
        """
        Save the markup of one image and replace the submission legend.

        The overlay is stored only after every check passed, and the
        aggregate is persisted in one transaction.

        Raises:
            ValidationError: Missing fields, unknown shape kinds, bad colors
            NotFoundError: Unknown submission
            PreconditionError: Submission already reported
        """
        require_role(caller, Role.ADMIN)

        if not overlay or not original_image_ref:
            raise ValidationError(
                "Annotated image, shapes, legends, and original image are required"
            )
        parsed_shapes = parse_shapes(shapes)
        parsed_legend = parse_legend(legend)

        submission = self.store.get_submission(submission_id)
        submission.ensure_annotatable(original_image_ref)

        overlay_ref = self.storage.put(overlay, "annotated.png", overlay_content_type)
        submission.record_annotation(
            original_image_ref, overlay_ref, parsed_shapes, parsed_legend
        )
        saved = self.store.save_submission(submission)
        logger.info(
            f"Saved annotation for {original_image_ref} on submission {submission_id} "
            f"({len(parsed_shapes)} shapes, {len(parsed_legend)} legend entries)"
        )
        return saved

    def generate_report(self, caller: Caller, submission_id: int) -> ReportResult:
        """
        Render, store and attach the PDF report.

        The report ref and status are committed only after the PDF has been
        rendered and stored. Overlays that fail to load are skipped and
        listed in the result's warnings.

        Raises:
            NotFoundError: Unknown submission
            PreconditionError: Not annotated, incomplete coverage, or
                already reported
        """
        require_role(caller, Role.ADMIN)

        submission = self.store.get_submission(submission_id)
        submission.ensure_reportable()

        rendered = self.compositor.render(submission, self.storage.get)
        report_ref = self.storage.put(
            rendered.pdf_bytes, f"report-{submission.id}.pdf", "application/pdf"
        )

        submission.mark_reported(report_ref)
        saved = self.store.save_submission(submission)
        logger.info(f"Report {report_ref} attached to submission {submission_id}")
        if rendered.warnings:
            logger.warning(
                f"Report for submission {submission_id} completed with "
                f"{len(rendered.warnings)} warning(s)"
            )
        return ReportResult(submission=saved, warnings=rendered.warnings)
