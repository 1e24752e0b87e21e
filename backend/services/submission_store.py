"""
Submission Store — the video_submissions table plus its backing files.

Column mapping (table → Submission):
  user_email → owner_email
  views      → views          (null → 0)
  clip_type  → clip_category  (null / unknown → None)
  payment_amount stays payment_amount (null → 0.0)

payment_amount is recomputed from views + category on create and whenever
views or category change, unless the admin supplies an explicit amount.

Deleting a submission removes the row first, then its stored file. A storage
failure is logged and swallowed: the record is already gone.

Uploaded clips can be fetched back from storage for review (download_file),
and the latest upload_configs row gives the size and format limits that new
file uploads are checked against.
"""

import logging
from typing import Any, Optional

from models.schemas import Submission, SubmissionCreate, ClipCategory, UploadConfig
from services.rates import calculate_payment_amount
from services.supabase_client import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

TABLE = "video_submissions"
UPLOAD_CONFIG_TABLE = "upload_configs"

# Default for update arguments the caller did not send. None is a real value
# for clip_category (no category, pays $0).
UNCHANGED: Any = object()


class SubmissionNotFoundError(LookupError):
    pass


class StoredFileNotFoundError(LookupError):
    """The submission exists but has no uploaded file (a link submission)."""


class SubmissionStore:
    def __init__(self, client: SupabaseClient):
        self.client = client

    def list_submissions(self, owner_email: Optional[str] = None) -> list[Submission]:
        filters = {"user_email": owner_email} if owner_email else None
        rows = self.client.select(TABLE, filters=filters, order="created_at.desc")
        submissions = [row_to_submission(r) for r in rows]
        logger.info(
            f"Loaded {len(submissions)} submissions"
            + (f" for {owner_email}" if owner_email else "")
        )
        return submissions

    def get_submission(self, submission_id: str) -> Submission:
        rows = self.client.select(TABLE, filters={"id": submission_id})
        if not rows:
            raise SubmissionNotFoundError(f"Submission not found: {submission_id}")
        return row_to_submission(rows[0])

    def create_submission(self, data: SubmissionCreate) -> Submission:
        amount = calculate_payment_amount(data.views, data.clip_category)
        row = {
            "user_email": data.owner_email,
            "user_id": data.user_id,
            "submission_type": data.submission_type.value,
            "video_url": data.video_url.strip() if data.video_url else None,
            "file_path": data.file_path,
            "original_filename": data.original_filename,
            "file_size_bytes": data.file_size_bytes,
            "views": data.views,
            "payment_amount": amount,
            "clip_type": data.clip_category.value if data.clip_category else None,
        }
        created = row_to_submission(self.client.insert(TABLE, row))
        logger.info(
            f"Created submission {created.id} for {created.owner_email} "
            f"({created.submission_type.value}, {created.views:,} views, ${amount:,.2f})"
        )
        return created

    def update_submission(
        self,
        submission_id: str,
        views: Optional[int] = None,
        clip_category: Optional[ClipCategory] = UNCHANGED,
        payment_amount: Optional[float] = None,
    ) -> Submission:
        """
        Apply an admin edit. views must already be validated
        (services.rates.parse_view_count). clip_category=None clears the
        category; leave it as UNCHANGED to keep the current one.
        """
        current = self.get_submission(submission_id)

        new_views = current.views if views is None else views
        new_category = current.clip_category if clip_category is UNCHANGED else clip_category
        if payment_amount is None:
            payment_amount = calculate_payment_amount(new_views, new_category)

        values = {
            "views": new_views,
            "clip_type": new_category.value if new_category else None,
            "payment_amount": payment_amount,
        }
        rows = self.client.update(TABLE, values, filters={"id": submission_id})
        if not rows:
            raise SubmissionNotFoundError(f"Submission not found: {submission_id}")

        updated = row_to_submission(rows[0])
        logger.info(
            f"Updated submission {submission_id}: "
            f"views {current.views:,} → {updated.views:,}, "
            f"amount ${current.payment_amount:,.2f} → ${updated.payment_amount:,.2f}"
        )
        return updated

    def delete_submission(self, submission_id: str) -> Submission:
        """
        Delete the row, then best-effort delete the stored file.

        Returns:
            The deleted submission
        """
        rows = self.client.delete(TABLE, filters={"id": submission_id})
        if not rows:
            raise SubmissionNotFoundError(f"Submission not found: {submission_id}")

        deleted = row_to_submission(rows[0])
        logger.info(f"Deleted submission {submission_id}")

        if deleted.file_path:
            try:
                self.client.remove_objects([deleted.file_path])
                logger.info(f"Removed stored file {deleted.file_path}")
            except SupabaseError as e:
                logger.error(
                    f"Failed to remove stored file {deleted.file_path} "
                    f"for deleted submission {submission_id}: {e}"
                )

        return deleted

    def download_file(self, submission_id: str) -> tuple[Submission, bytes]:
        """Fetch the uploaded clip behind a file_upload submission."""
        submission = self.get_submission(submission_id)
        if not submission.file_path:
            raise StoredFileNotFoundError(f"Submission {submission_id} has no stored file")

        content = self.client.download_object(submission.file_path)
        logger.info(
            f"Downloaded {submission.file_path} for submission {submission_id} "
            f"({len(content):,} bytes)"
        )
        return submission, content

    def get_upload_config(self) -> Optional[UploadConfig]:
        """Latest upload_configs row (size limit and accepted extensions), if any."""
        rows = self.client.select(UPLOAD_CONFIG_TABLE, order="created_at.desc", limit=1)
        if not rows:
            logger.warning("No upload_configs row found")
            return None
        row = rows[0]
        return UploadConfig(
            max_file_size_mb=row.get("max_file_size_mb") or 0,
            allowed_formats=[f.lower().lstrip(".") for f in row.get("allowed_formats") or []],
        )


def row_to_submission(row: dict) -> Submission:
    clip_type = row.get("clip_type")
    try:
        category = ClipCategory(clip_type) if clip_type else None
    except ValueError:
        logger.warning(f"Unknown clip_type '{clip_type}' on submission {row.get('id')}")
        category = None

    return Submission(
        id=str(row["id"]),
        owner_email=row.get("user_email") or None,
        user_id=row.get("user_id"),
        submission_type=row.get("submission_type") or "url_link",
        video_url=row.get("video_url"),
        file_path=row.get("file_path"),
        original_filename=row.get("original_filename"),
        file_size_bytes=row.get("file_size_bytes"),
        views=row.get("views") or 0,
        payment_amount=row.get("payment_amount") or 0.0,
        clip_category=category,
        created_at=row.get("created_at"),
    )
