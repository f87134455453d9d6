"""
Tests for the annotation store and the submission status transitions.
"""

import pytest

from core.errors import PreconditionError, ValidationError
from core.legend import LegendEntry
from core.models import (
    AnnotationStore,
    Rectangle,
    Submission,
    SubmissionStatus,
)


def make_submission(refs=("a.png", "b.png")) -> Submission:
    return Submission(
        id=1,
        patient_id="patient-1",
        name="Jane Doe",
        email="jane@example.com",
        original_image_refs=list(refs),
    )


def rect(shape_id: str) -> Rectangle:
    return Rectangle(id=shape_id, color="#FF0000", x=0, y=0, width=10, height=10)


class TestAnnotationStore:
    """Tests for upsert-by-image semantics."""

    def test_upsert_appends_new(self):
        """Test that new refs append in order."""
        store = AnnotationStore()
        store.upsert("b.png", "overlay-b", [])
        store.upsert("a.png", "overlay-a", [])

        assert store.image_refs() == ["b.png", "a.png"]

    def test_upsert_replaces_existing(self):
        """Test that a second upsert replaces the whole entry in place."""
        store = AnnotationStore()
        store.upsert("a.png", "overlay-1", [rect("s0"), rect("s1")])
        store.upsert("b.png", "overlay-b", [])
        store.upsert("a.png", "overlay-2", [rect("s9")])

        assert len(store) == 2
        assert store.image_refs() == ["a.png", "b.png"]
        ann = store.find_by_image("a.png")
        assert ann.overlay_ref == "overlay-2"
        assert [s.id for s in ann.shapes] == ["s9"]

    def test_find_missing(self):
        """Test lookup of an unannotated image."""
        assert AnnotationStore().find_by_image("a.png") is None


class TestSubmissionStatus:
    """Tests for the uploaded -> annotated -> reported lifecycle."""

    def test_first_annotation_moves_to_annotated(self):
        """Test the first save and re-entrant saves."""
        sub = make_submission()
        assert sub.status == SubmissionStatus.UPLOADED

        sub.record_annotation("a.png", "ov-a", [rect("s0")], [LegendEntry("#FF0000", "Caries")])
        assert sub.status == SubmissionStatus.ANNOTATED

        sub.record_annotation("a.png", "ov-a2", [], [])
        assert sub.status == SubmissionStatus.ANNOTATED

    def test_legend_replaced_wholesale(self):
        """Test that each save replaces the legend."""
        sub = make_submission()
        sub.record_annotation("a.png", "ov-a", [], [LegendEntry("#FF0000", "Caries")])
        sub.record_annotation("b.png", "ov-b", [], [LegendEntry("#00FF00", "Plaque")])

        assert sub.legend.entries == [LegendEntry("#00FF00", "Plaque")]

    def test_unknown_image_rejected(self):
        """Test that an image outside the submission is rejected without mutation."""
        sub = make_submission()

        with pytest.raises(ValidationError):
            sub.record_annotation("other.png", "ov", [], [LegendEntry("#FF0000", "Caries")])

        assert sub.status == SubmissionStatus.UPLOADED
        assert len(sub.annotations) == 0
        assert len(sub.legend) == 0

    def test_report_requires_annotation(self):
        """Test report precondition in the uploaded state."""
        sub = make_submission()

        with pytest.raises(PreconditionError) as exc_info:
            sub.ensure_reportable()

        assert exc_info.value.missing_images == ["a.png", "b.png"]

    def test_report_requires_full_coverage(self):
        """Test that 2 of 3 annotated images is not enough."""
        sub = make_submission(("a.png", "b.png", "c.png"))
        sub.record_annotation("a.png", "ov-a", [], [])
        sub.record_annotation("c.png", "ov-c", [], [])

        with pytest.raises(PreconditionError) as exc_info:
            sub.mark_reported("report.pdf")

        assert exc_info.value.missing_images == ["b.png"]
        assert sub.status == SubmissionStatus.ANNOTATED
        assert sub.report_ref is None

    def test_reported_is_terminal(self):
        """Test that a reported submission accepts no further changes."""
        sub = make_submission(("a.png",))
        sub.record_annotation("a.png", "ov-a", [], [])
        sub.mark_reported("report.pdf")

        assert sub.status == SubmissionStatus.REPORTED
        assert sub.report_ref == "report.pdf"

        with pytest.raises(PreconditionError):
            sub.record_annotation("a.png", "ov-a2", [], [])
        with pytest.raises(PreconditionError):
            sub.mark_reported("again.pdf")
        assert sub.report_ref == "report.pdf"
        assert sub.annotations.find_by_image("a.png").overlay_ref == "ov-a"
