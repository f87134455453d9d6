"""
SubmissionStore - persistence for submissions and their annotations.
"""

import json
import logging
import os
import sqlite3
from datetime import datetime
from typing import Optional

from core.db import init_db, migrate_db, get_connection
from core.errors import NotFoundError
from core.legend import LegendEntry, LegendRegistry, legend_to_wire
from core.models import Annotation, AnnotationStore, Submission, SubmissionStatus
from core.shapes import parse_shapes, shapes_to_wire

logger = logging.getLogger(__name__)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SubmissionStore:
    """
    Handles all database operations for submissions.
    """

    def __init__(self, db_path: str):
        """
        Initialize store with database path.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    @classmethod
    def open(cls, db_path: str) -> 'SubmissionStore':
        """Create the database if needed, run migrations and return a store."""
        db_dir = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(db_dir, exist_ok=True)

        if os.path.exists(db_path):
            migrate_db(db_path)
        else:
            init_db(db_path)
        return cls(db_path)

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = get_connection(self.db_path)
        return self._conn

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # ==================== Submission Operations ====================

    def create_submission(
        self,
        patient_id: str,
        name: str,
        email: str,
        original_image_refs: list[str],
        note: Optional[str] = None,
    ) -> Submission:
        """
        Create a new submission in the uploaded state.

        Args:
            patient_id: ID of the submitting patient
            name: Patient name printed on the report
            email: Patient email printed on the report
            original_image_refs: Storage refs of the uploaded images
            note: Optional free text from the patient

        Returns:
            Created Submission
        """
        with self.conn:
            cursor = self.conn.execute(
                """
                INSERT INTO submissions
                (patient_id, name, email, note, original_image_refs_json)
                VALUES (?, ?, ?, ?, ?)
                """,
                (patient_id, name, email, note, json.dumps(list(original_image_refs)))
            )
        logger.info(
            f"Created submission {cursor.lastrowid} for patient {patient_id} "
            f"with {len(original_image_refs)} image(s)"
        )
        return self.get_submission(cursor.lastrowid)

    def get_submission(self, submission_id: int) -> Submission:
        """
        Load a submission with its annotations and legend.

        Raises:
            NotFoundError: If no submission has this ID
        """
        cursor = self.conn.execute(
            "SELECT * FROM submissions WHERE id = ?",
            (submission_id,)
        )
        row = cursor.fetchone()
        if not row:
            raise NotFoundError(f"Submission {submission_id} not found")
        return self._row_to_submission(row)

    def list_submissions(self, patient_id: Optional[str] = None) -> list[Submission]:
        """
        List submissions, newest first.

        Args:
            patient_id: Restrict to one patient's submissions; all if None
        """
        if patient_id is None:
            cursor = self.conn.execute(
                "SELECT * FROM submissions ORDER BY created_at DESC, id DESC"
            )
        else:
            cursor = self.conn.execute(
                """
                SELECT * FROM submissions WHERE patient_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (patient_id,)
            )
        return [self._row_to_submission(row) for row in cursor.fetchall()]

    def save_submission(self, submission: Submission) -> Submission:
        """
        Persist the aggregate's mutable state in one transaction.

        Annotations are upserted by (submission, original image ref); an
        existing row keeps its id and therefore its position.
        """
        try:
            with self.conn:
                cursor = self.conn.execute(
                    """
                    UPDATE submissions
                    SET legend_json = ?, status = ?, report_ref = ?,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (
                        json.dumps(legend_to_wire(submission.legend)),
                        submission.status.value,
                        submission.report_ref,
                        submission.id,
                    )
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"Submission {submission.id} not found")

                for ann in submission.annotations:
                    self.conn.execute(
                        """
                        INSERT INTO annotations
                        (submission_id, original_image_ref, overlay_ref, shapes_json)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(submission_id, original_image_ref) DO UPDATE SET
                            overlay_ref = excluded.overlay_ref,
                            shapes_json = excluded.shapes_json,
                            updated_at = CURRENT_TIMESTAMP
                        """,
                        (
                            submission.id,
                            ann.original_image_ref,
                            ann.overlay_ref,
                            json.dumps(shapes_to_wire(ann.shapes)),
                        )
                    )
        except sqlite3.Error:
            logger.exception(f"Failed to save submission {submission.id}")
            raise

        return self.get_submission(submission.id)

    def _row_to_submission(self, row: sqlite3.Row) -> Submission:
        """Convert database row to Submission object."""
        legend = LegendRegistry(
            LegendEntry(color=e.get("color", ""), text=e.get("text", ""))
            for e in json.loads(row['legend_json'] or "[]")
        )
        return Submission(
            id=row['id'],
            patient_id=row['patient_id'],
            name=row['name'],
            email=row['email'],
            note=row['note'],
            original_image_refs=json.loads(row['original_image_refs_json']),
            annotations=AnnotationStore(self.list_annotations(row['id'])),
            legend=legend,
            status=SubmissionStatus(row['status']),
            report_ref=row['report_ref'],
            created_at=_parse_ts(row['created_at']),
            updated_at=_parse_ts(row['updated_at']),
        )

    # ==================== Annotation Operations ====================

    def list_annotations(self, submission_id: int) -> list[Annotation]:
        """List a submission's annotations in first-insertion order."""
        cursor = self.conn.execute(
            "SELECT * FROM annotations WHERE submission_id = ? ORDER BY id",
            (submission_id,)
        )
        return [self._row_to_annotation(row) for row in cursor.fetchall()]

    def find_annotation(self, submission_id: int, original_image_ref: str) -> Optional[Annotation]:
        """Get the annotation saved for one original image, if any."""
        cursor = self.conn.execute(
            """
            SELECT * FROM annotations
            WHERE submission_id = ? AND original_image_ref = ?
            """,
            (submission_id, original_image_ref)
        )
        row = cursor.fetchone()
        return self._row_to_annotation(row) if row else None

    def _row_to_annotation(self, row: sqlite3.Row) -> Annotation:
        """Convert database row to Annotation object."""
        return Annotation(
            original_image_ref=row['original_image_ref'],
            overlay_ref=row['overlay_ref'],
            shapes=parse_shapes(row['shapes_json']),
        )
