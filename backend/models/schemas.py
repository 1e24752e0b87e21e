"""
Pydantic models for the Clipper payments backend.

Models:
  - Submission: One clip submitted by a contributor (file upload or link)
  - Payment: A payment record covering a bundle of submissions' views
  - Profile: A contributor profile (resolves email → internal user id)
  - SubmissionBalance: Per-submission paid/pending breakdown (report audit tab)
  - ContributorSummary: Aggregated paid/pending totals per contributor email
  - DuplicateLinkGroup: Submissions sharing the same link
  - RateLimitResult: Decoded response of the upload-attempts stored procedure
  - UploadConfig: Size and format limits for file uploads
  - Request / response models for the HTTP API
"""

from enum import Enum
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class ClipCategory(str, Enum):
    CATEGORY_A = "category_a"
    CATEGORY_B = "category_b"


class SubmissionType(str, Enum):
    FILE_UPLOAD = "file_upload"
    URL_LINK = "url_link"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Submission — one row of the video_submissions table
#
# payment_amount is derived from views + clip_category at the time views were
# last recorded (see services/rates.py). It is NOT recomputed when rates change.
# ---------------------------------------------------------------------------
class Submission(BaseModel):
    id: str
    owner_email: Optional[str] = None
    user_id: Optional[str] = None
    submission_type: SubmissionType = SubmissionType.URL_LINK
    video_url: Optional[str] = None
    file_path: Optional[str] = None   # object key in the storage bucket
    original_filename: Optional[str] = None
    file_size_bytes: Optional[int] = None
    views: int = 0
    payment_amount: float = 0.0
    clip_category: Optional[ClipCategory] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Payment — one row of the payments table
#
# total_views is a snapshot taken at issuance time. Only status changes after
# creation: pending → paid, or pending → cancelled.
# ---------------------------------------------------------------------------
class Payment(BaseModel):
    id: str
    user_id: Optional[str] = None
    owner_email: str
    total_views: int = 0
    amount: float = 0.0
    submission_ids: list[str] = Field(default_factory=list)
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: Optional[datetime] = None
    paid_date: Optional[datetime] = None


class Profile(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Derived reconciliation models (never persisted)
# ---------------------------------------------------------------------------
class SubmissionBalance(BaseModel):
    submission_id: str
    owner_email: str
    views: int = 0
    paid_views: float = 0.0
    pending_views: float = 0.0
    rate_per_view: float = 0.0
    payment_amount: float = 0.0
    paid_amount: float = 0.0
    pending_payment: float = 0.0


class ContributorSummary(BaseModel):
    email: str
    total_views: int = 0
    total_payment_potential: float = 0.0
    paid_amount: float = 0.0
    pending_payment: float = 0.0
    pending_views: float = 0.0
    submission_ids: list[str] = Field(default_factory=list)
    pending_submission_ids: list[str] = Field(default_factory=list)


class DuplicateLinkGroup(BaseModel):
    link: str
    submission_ids: list[str]
    owner_emails: list[Optional[str]]
    count: int


class RateLimitResult(BaseModel):
    allowed: bool
    remaining_attempts: Optional[int] = None
    message: Optional[str] = None


# Latest row of the upload_configs table
class UploadConfig(BaseModel):
    max_file_size_mb: float
    allowed_formats: list[str] = Field(default_factory=list)   # lowercase, no dot


# ---------------------------------------------------------------------------
# API request / response models
# ---------------------------------------------------------------------------
class SubmissionCreate(BaseModel):
    owner_email: str
    user_id: Optional[str] = None
    submission_type: SubmissionType
    video_url: Optional[str] = None
    file_path: Optional[str] = None
    original_filename: Optional[str] = None
    file_size_bytes: Optional[int] = None
    views: int = 0
    clip_category: Optional[ClipCategory] = None


class SubmissionUpdate(BaseModel):
    views: Optional[int | str] = None   # raw admin input, validated server-side
    clip_category: Optional[ClipCategory] = None
    payment_amount: Optional[float] = None


class IssuePaymentRequest(BaseModel):
    contributor_email: str
    pending_views: float
    pending_payment: float
    pending_submission_ids: list[str]


class IssuePaymentResponse(BaseModel):
    status: str
    payment: Payment
    email_sent: bool
    email_id: Optional[str] = None


class ReconciliationResponse(BaseModel):
    status: str
    summaries: list[ContributorSummary]
    totals: dict


class PaymentHistoryResponse(BaseModel):
    status: str
    payments: list[Payment]
    total_paid: float
    total_pending: float


class ReportResponse(BaseModel):
    status: str
    filename: str
    summary: dict
