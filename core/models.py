"""
Core data models for the oral screening service.

Dataclasses for shapes, annotations, callers and the submission aggregate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from core.errors import PreconditionError, ValidationError
from core.legend import LegendEntry, LegendRegistry


# Shape kinds as they appear on the wire
RECT = "rect"
CIRCLE = "circle"
ARROW = "arrow"
SHAPE_KINDS = (RECT, CIRCLE, ARROW)


@dataclass
class Rectangle:
    """Axis-aligned box; width/height are signed (drag direction)."""
    id: str
    color: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    kind: str = field(default=RECT, init=False)


@dataclass
class Circle:
    """Circle inscribed in the dragged box, see shapes.circle_geometry."""
    id: str
    color: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    kind: str = field(default=CIRCLE, init=False)


@dataclass
class Arrow:
    """Arrow from (x1, y1) to (x2, y2)."""
    id: str
    color: str
    points: list[float] = field(default_factory=list)  # [x1, y1, x2, y2]
    kind: str = field(default=ARROW, init=False)


Shape = Union[Rectangle, Circle, Arrow]


class Role(str, Enum):
    PATIENT = "patient"
    ADMIN = "admin"


@dataclass
class Caller:
    """Identity of whoever invokes a service operation."""
    id: str
    role: Role


class SubmissionStatus(str, Enum):
    UPLOADED = "uploaded"
    ANNOTATED = "annotated"
    REPORTED = "reported"


@dataclass
class Annotation:
    """Saved markup for one original image."""
    original_image_ref: str
    overlay_ref: str
    shapes: list[Shape] = field(default_factory=list)


class AnnotationStore:
    """
    Ordered annotations of a submission keyed by original image ref.

    Upserting an existing ref replaces the whole entry in place, so the
    position of its first insertion is kept. New refs are appended.
    """

    def __init__(self, annotations: Optional[list[Annotation]] = None):
        self._items: list[Annotation] = []
        for ann in annotations or []:
            self.upsert(ann.original_image_ref, ann.overlay_ref, ann.shapes)

    def upsert(
        self,
        original_image_ref: str,
        overlay_ref: str,
        shapes: list[Shape],
    ) -> Annotation:
        annotation = Annotation(
            original_image_ref=original_image_ref,
            overlay_ref=overlay_ref,
            shapes=list(shapes),
        )
        for idx, existing in enumerate(self._items):
            if existing.original_image_ref == original_image_ref:
                self._items[idx] = annotation
                return annotation
        self._items.append(annotation)
        return annotation

    def find_by_image(self, original_image_ref: str) -> Optional[Annotation]:
        for ann in self._items:
            if ann.original_image_ref == original_image_ref:
                return ann
        return None

    def image_refs(self) -> list[str]:
        return [ann.original_image_ref for ann in self._items]

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class Submission:
    """One patient's uploaded images and their review lifecycle."""
    id: int
    patient_id: str
    name: str
    email: str
    original_image_refs: list[str]
    note: Optional[str] = None
    annotations: AnnotationStore = field(default_factory=AnnotationStore)
    legend: LegendRegistry = field(default_factory=LegendRegistry)
    status: SubmissionStatus = SubmissionStatus.UPLOADED
    report_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def ensure_annotatable(self, original_image_ref: str) -> None:
        if self.status == SubmissionStatus.REPORTED:
            raise PreconditionError(
                f"Submission {self.id} is already reported and cannot be annotated"
            )
        if original_image_ref not in self.original_image_refs:
            raise ValidationError(
                f"Image {original_image_ref} does not belong to submission {self.id}"
            )

    def record_annotation(
        self,
        original_image_ref: str,
        overlay_ref: str,
        shapes: list[Shape],
        legend: list[LegendEntry],
    ) -> Annotation:
        """
        Upsert the annotation for one image and replace the legend.

        Moves the submission from uploaded to annotated. Rejected once the
        submission has been reported.
        """
        self.ensure_annotatable(original_image_ref)
        annotation = self.annotations.upsert(original_image_ref, overlay_ref, shapes)
        self.legend.replace_all(legend)
        self.status = SubmissionStatus.ANNOTATED
        return annotation

    def missing_images(self) -> list[str]:
        """Original image refs without an annotation, in upload order."""
        annotated = set(self.annotations.image_refs())
        return [ref for ref in self.original_image_refs if ref not in annotated]

    def ensure_reportable(self) -> None:
        """Raise PreconditionError unless a report may be generated now."""
        if self.status == SubmissionStatus.REPORTED:
            raise PreconditionError(f"Submission {self.id} already has a report")
        missing = self.missing_images()
        if self.status == SubmissionStatus.UPLOADED:
            raise PreconditionError(
                f"Submission {self.id} has not been annotated yet",
                missing_images=missing,
            )
        if missing:
            raise PreconditionError(
                f"Submission {self.id} has {len(missing)} image(s) without annotations",
                missing_images=missing,
            )

    def mark_reported(self, report_ref: str) -> None:
        self.ensure_reportable()
        self.report_ref = report_ref
        self.status = SubmissionStatus.REPORTED
