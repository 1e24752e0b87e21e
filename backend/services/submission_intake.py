"""
Contributor submission workflow.

  1. Validate the payload for its submission type
       url_link    → needs a non-blank video_url
       file_upload → needs the storage file_path, the file size and a file
                     name, checked against the latest upload_configs row
                     (max_file_size_mb, allowed_formats)
  2. Check the contributor's daily upload limit (stored procedure)
       allowed=False          → UploadLimitError(<procedure message>)
       call failed / bad data → UploadLimitError(GENERIC_LIMIT_MESSAGE)
  3. Create the submission
  4. Send a thank-you email (failure is logged only)

Validation runs before the limit check so a rejected payload does not use up
one of the contributor's daily attempts.
"""

import logging
import os
from typing import Optional

from models.schemas import Submission, SubmissionCreate, SubmissionType, UploadConfig
from services.email_service import EmailService
from services.rate_limiter import RateLimiter, RateLimitDecodeError
from services.submission_store import SubmissionStore
from services.supabase_client import SupabaseError

logger = logging.getLogger(__name__)

GENERIC_LIMIT_MESSAGE = "Could not verify upload limit. Please try again later."
DEFAULT_BLOCKED_MESSAGE = "Daily upload limit reached. Please try again tomorrow."
BYTES_PER_MB = 1024 * 1024


class UploadLimitError(RuntimeError):
    """The submission was blocked by (or could not pass) the upload limit check."""


class InvalidSubmissionError(ValueError):
    pass


def file_extension(name: Optional[str]) -> Optional[str]:
    """'Clip.Final.MP4' → 'mp4'. None when the name has no extension."""
    if not name:
        return None
    ext = os.path.splitext(name.strip())[1]
    return ext[1:].lower() or None


def validate_upload(data: SubmissionCreate, upload_config: Optional[UploadConfig]) -> None:
    """Check an uploaded file's size and extension against the upload settings."""
    if upload_config is None:
        raise InvalidSubmissionError("Upload settings could not be loaded")

    if data.file_size_bytes is None:
        raise InvalidSubmissionError("The uploaded file size is required")
    size_mb = data.file_size_bytes / BYTES_PER_MB
    if size_mb > upload_config.max_file_size_mb:
        raise InvalidSubmissionError(
            f"File too large. Maximum allowed: {upload_config.max_file_size_mb:g}MB"
        )

    ext = file_extension(data.original_filename or data.file_path)
    if ext is None or ext not in upload_config.allowed_formats:
        raise InvalidSubmissionError(
            f"Format not allowed. Accepted formats: {', '.join(upload_config.allowed_formats)}"
        )


def submit_clip(
    data: SubmissionCreate,
    rate_limiter: RateLimiter,
    store: SubmissionStore,
    email_service: EmailService,
) -> Submission:
    # ------------------------------------------------------------------
    # Step 1: Payload validation
    # ------------------------------------------------------------------
    if not data.user_id:
        raise InvalidSubmissionError("A user id is required to submit a clip")

    if data.submission_type == SubmissionType.URL_LINK:
        if not data.video_url or not data.video_url.strip():
            raise InvalidSubmissionError("A video link is required")
    else:
        if not data.file_path:
            raise InvalidSubmissionError("An uploaded file path is required")
        validate_upload(data, store.get_upload_config())

    # ------------------------------------------------------------------
    # Step 2: Upload limit
    # ------------------------------------------------------------------
    try:
        limit = rate_limiter.check(data.user_id)
    except (SupabaseError, RateLimitDecodeError) as e:
        logger.error(f"Upload limit check failed for {data.user_id}: {e}")
        raise UploadLimitError(GENERIC_LIMIT_MESSAGE) from e

    if not limit.allowed:
        raise UploadLimitError(limit.message or DEFAULT_BLOCKED_MESSAGE)

    # ------------------------------------------------------------------
    # Step 3 + 4: Persist and notify
    # ------------------------------------------------------------------
    submission = store.create_submission(data)

    result = email_service.send_submission_thanks(
        data.owner_email,
        file_name=data.original_filename if data.submission_type == SubmissionType.FILE_UPLOAD else None,
        video_url=submission.video_url,
    )
    if not result.success:
        logger.warning(f"Thank-you email to {data.owner_email} failed: {result.error}")

    return submission
