#!/usr/bin/env python
"""
Render a preview of a submission's report without attaching it.

Usage:
    python scripts/render_report.py <db_path> <storage_dir> <submission_id> <output.pdf> [--redraw]
"""

import io
import sys
import argparse
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from PIL import Image

from core.errors import OralScreenError
from core.overlay import render_overlay
from core.report import ReportCompositor
from core.storage import LocalImageStorage
from core.store import SubmissionStore


def redrawing_fetch(submission, storage):
    """Fetch that rebuilds each overlay from its original image and shapes."""
    by_overlay = {ann.overlay_ref: ann for ann in submission.annotations}

    def fetch(ref: str) -> bytes:
        ann = by_overlay[ref]
        with Image.open(io.BytesIO(storage.get(ann.original_image_ref))) as original:
            overlay = render_overlay(original, ann.shapes)
        buf = io.BytesIO()
        overlay.save(buf, format="PNG")
        return buf.getvalue()

    return fetch


def main():
    parser = argparse.ArgumentParser(description="Render a report preview for a submission")
    parser.add_argument("db_path", help="Path to the submissions database")
    parser.add_argument("storage_dir", help="Directory holding stored images")
    parser.add_argument("submission_id", type=int, help="Submission to render")
    parser.add_argument("output", help="Output PDF path")
    parser.add_argument("--redraw", action="store_true",
                        help="Redraw overlays from original images and saved shapes")

    args = parser.parse_args()

    store = SubmissionStore.open(args.db_path)
    storage = LocalImageStorage(args.storage_dir)

    try:
        submission = store.get_submission(args.submission_id)
        missing = submission.missing_images()
        print(f"Submission {submission.id}: {submission.name} ({submission.status.value})")
        print(f"  Images: {len(submission.original_image_refs)}, annotated: {len(submission.annotations)}")
        if missing:
            print(f"  ⚠ Not annotated yet: {', '.join(missing)}")

        fetch = redrawing_fetch(submission, storage) if args.redraw else storage.get
        rendered = ReportCompositor().render(submission, fetch)
    except OralScreenError as e:
        print(f"✗ Preview failed: {e}")
        sys.exit(1)
    finally:
        store.close()

    Path(args.output).write_bytes(rendered.pdf_bytes)

    if rendered.warnings:
        print("\nWarnings:")
        for warning in rendered.warnings:
            print(f"  ⚠ {warning}")

    print(f"\n✓ Preview written: {args.output} ({rendered.page_count} page(s), "
          f"{rendered.placed_images} image(s))")


if __name__ == "__main__":
    main()
