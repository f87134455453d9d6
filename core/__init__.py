"""
Core module - Shape model, legend, submission store and report compositor
"""

from core.errors import (
    OralScreenError, ValidationError, NotFoundError,
    AuthorizationError, PreconditionError,
)
from core.legend import LegendEntry, LegendRegistry, hex_to_rgb, parse_legend
from core.models import (
    Rectangle, Circle, Arrow, Shape,
    Annotation, AnnotationStore, Submission, SubmissionStatus,
    Caller, Role,
)
from core.shapes import EditingSession, circle_geometry, parse_shapes
from core.store import SubmissionStore
from core.storage import ImageStorage, LocalImageStorage
from core.report import PageGeometry, ReportCompositor
from core.service import SubmissionService

__all__ = [
    "OralScreenError", "ValidationError", "NotFoundError",
    "AuthorizationError", "PreconditionError",
    "LegendEntry", "LegendRegistry", "hex_to_rgb", "parse_legend",
    "Rectangle", "Circle", "Arrow", "Shape",
    "Annotation", "AnnotationStore", "Submission", "SubmissionStatus",
    "Caller", "Role",
    "EditingSession", "circle_geometry", "parse_shapes",
    "SubmissionStore",
    "ImageStorage", "LocalImageStorage",
    "PageGeometry", "ReportCompositor",
    "SubmissionService",
]
