"""
Clipper payments backend — FastAPI application.

Contributor endpoints:
  GET    /api/submissions?owner_email=   List submissions (optionally one owner)
  POST   /api/submissions                Submit a clip (rate limited)
  PATCH  /api/submissions/{id}           Edit views / category / amount
  DELETE /api/submissions/{id}           Delete row + stored file (best-effort)
  GET    /api/payments?owner_email=      Payment history with paid/pending totals

Admin endpoints:
  GET  /api/admin/reconciliation         Per-contributor paid/pending summaries
  GET  /api/admin/duplicates             Submissions sharing a link
  GET  /api/admin/submissions/{id}/file  Download an uploaded clip
  POST /api/admin/payments               Issue a payment for a pending balance
  POST /api/admin/payments/{id}/paid     pending → paid
  POST /api/admin/payments/{id}/cancel   pending → cancelled
  POST /api/admin/report                 Generate the .xlsx reconciliation report
  GET  /api/download/{filename}          Serve a generated report

Error handling:
  - Unknown submission / payment / contributor → 404
  - Invalid input → 400
  - Upload limit reached or unverifiable → 429
  - Illegal payment status transition → 409
  - Backend (tables / storage / RPC) failure → 502
"""

import os
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response

import config
from models.schemas import (
    Submission,
    SubmissionCreate,
    SubmissionUpdate,
    Payment,
    DuplicateLinkGroup,
    IssuePaymentRequest,
    IssuePaymentResponse,
    ReconciliationResponse,
    PaymentHistoryResponse,
    ReportResponse,
)
from services.supabase_client import SupabaseClient, SupabaseError
from services.submission_store import (
    SubmissionStore,
    SubmissionNotFoundError,
    StoredFileNotFoundError,
    UNCHANGED,
)
from services.payment_store import (
    PaymentStore,
    PaymentNotFoundError,
    InvalidPaymentTransitionError,
    payment_totals,
)
from services.rate_limiter import RateLimiter
from services.email_service import EmailService
from services.rates import parse_view_count, InvalidViewCountError
from services.reconciliation import reconcile, build_submission_balances, reconciliation_totals
from services.duplicates import find_duplicate_links, normalize_link
from services.payment_issuance import (
    issue_payment,
    ContributorNotFoundError,
    InvalidPaymentRequestError,
)
from services.submission_intake import submit_clip, UploadLimitError, InvalidSubmissionError
from services.excel_export import generate_report

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Clipper Payments",
    description="Clip submissions, view tracking and contributor payment reconciliation",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    app.state.supabase = SupabaseClient.from_config()
    app.state.email = EmailService.from_config()
    os.makedirs(config.OUTPUT_DIR, exist_ok=True)
    if not app.state.email.is_configured():
        logger.warning("RESEND_API_KEY not set: notification emails will be skipped")
    logger.info(f"Backend client ready for {app.state.supabase.url}")


@app.on_event("shutdown")
async def shutdown_event():
    for name in ("supabase", "email"):
        client = getattr(app.state, name, None)
        if client is not None:
            client.close()


# ===========================================================================
# Dependencies
# ===========================================================================

def get_supabase(request: Request) -> SupabaseClient:
    client = getattr(request.app.state, "supabase", None)
    if client is None:
        raise HTTPException(
            status_code=503,
            detail={"status": "error", "message": "Backend client not initialized"},
        )
    return client


def get_email_service(request: Request) -> EmailService:
    service = getattr(request.app.state, "email", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail={"status": "error", "message": "Email service not initialized"},
        )
    return service


def get_submission_store(client: SupabaseClient = Depends(get_supabase)) -> SubmissionStore:
    return SubmissionStore(client)


def get_payment_store(client: SupabaseClient = Depends(get_supabase)) -> PaymentStore:
    return PaymentStore(client)


def get_rate_limiter(client: SupabaseClient = Depends(get_supabase)) -> RateLimiter:
    return RateLimiter(client)


def _error(status_code: int, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"status": "error", "message": message})


def _backend_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Failed to {action}: {e}")
    return _error(502, f"Failed to {action}")


# ===========================================================================
# Health
# ===========================================================================

@app.get("/api/health")
def health():
    return {"status": "ok"}


# ===========================================================================
# Submissions
# ===========================================================================

@app.get("/api/submissions", response_model=list[Submission])
def list_submissions(
    owner_email: Optional[str] = None,
    store: SubmissionStore = Depends(get_submission_store),
):
    try:
        return store.list_submissions(owner_email)
    except SupabaseError as e:
        raise _backend_error("load submissions", e)


@app.post("/api/submissions", response_model=Submission, status_code=201)
def create_submission(
    data: SubmissionCreate,
    store: SubmissionStore = Depends(get_submission_store),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    email_service: EmailService = Depends(get_email_service),
):
    try:
        return submit_clip(data, rate_limiter, store, email_service)
    except UploadLimitError as e:
        raise _error(429, str(e))
    except InvalidSubmissionError as e:
        raise _error(400, str(e))
    except SupabaseError as e:
        raise _backend_error("create submission", e)


@app.patch("/api/submissions/{submission_id}", response_model=Submission)
def update_submission(
    submission_id: str,
    update: SubmissionUpdate,
    store: SubmissionStore = Depends(get_submission_store),
):
    """
    Admin edit. views may arrive as raw form text and is validated here.
    An explicit "clip_category": null clears the category; omitting the field
    keeps it.
    """
    views = None
    if update.views is not None:
        try:
            views = parse_view_count(update.views)
        except InvalidViewCountError as e:
            raise _error(400, str(e))

    if update.payment_amount is not None and update.payment_amount < 0:
        raise _error(400, "payment_amount cannot be negative")

    try:
        return store.update_submission(
            submission_id,
            views=views,
            clip_category=(
                update.clip_category if "clip_category" in update.model_fields_set else UNCHANGED
            ),
            payment_amount=update.payment_amount,
        )
    except SubmissionNotFoundError as e:
        raise _error(404, str(e))
    except SupabaseError as e:
        raise _backend_error("update submission", e)


@app.delete("/api/submissions/{submission_id}")
def delete_submission(
    submission_id: str,
    store: SubmissionStore = Depends(get_submission_store),
):
    try:
        deleted = store.delete_submission(submission_id)
    except SubmissionNotFoundError as e:
        raise _error(404, str(e))
    except SupabaseError as e:
        raise _backend_error("delete submission", e)

    return {"status": "success", "deleted_id": deleted.id}


@app.get("/api/admin/submissions/{submission_id}/file")
def download_submission_file(
    submission_id: str,
    store: SubmissionStore = Depends(get_submission_store),
):
    """Return an uploaded clip from storage as an attachment."""
    try:
        submission, content = store.download_file(submission_id)
    except (SubmissionNotFoundError, StoredFileNotFoundError) as e:
        raise _error(404, str(e))
    except SupabaseError as e:
        raise _backend_error("download submission file", e)

    filename = submission.original_filename or os.path.basename(submission.file_path)
    # Header values must be printable ASCII
    filename = "".join(c for c in filename if c.isascii() and c.isprintable() and c != '"') or "clip"
    return Response(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ===========================================================================
# Payment history (contributor view)
# ===========================================================================

@app.get("/api/payments", response_model=PaymentHistoryResponse)
def list_payments(
    owner_email: Optional[str] = None,
    payments: PaymentStore = Depends(get_payment_store),
):
    try:
        history = payments.list_payments(owner_email)
    except SupabaseError as e:
        raise _backend_error("load payments", e)

    total_paid, total_pending = payment_totals(history)
    return PaymentHistoryResponse(
        status="success",
        payments=history,
        total_paid=total_paid,
        total_pending=total_pending,
    )


# ===========================================================================
# Admin: reconciliation, duplicates, payments, report
# ===========================================================================

def _load_snapshot(
    store: SubmissionStore,
    payments: PaymentStore,
) -> tuple[list[Submission], list[Payment]]:
    try:
        return store.list_submissions(), payments.list_payments()
    except SupabaseError as e:
        raise _backend_error("load reconciliation data", e)


@app.get("/api/admin/reconciliation", response_model=ReconciliationResponse)
def get_reconciliation(
    store: SubmissionStore = Depends(get_submission_store),
    payments: PaymentStore = Depends(get_payment_store),
):
    submissions, history = _load_snapshot(store, payments)
    summaries = reconcile(submissions, history)
    return ReconciliationResponse(
        status="success",
        summaries=summaries,
        totals=reconciliation_totals(summaries),
    )


@app.get("/api/admin/duplicates", response_model=list[DuplicateLinkGroup])
def get_duplicates(
    normalize: bool = False,
    store: SubmissionStore = Depends(get_submission_store),
):
    try:
        submissions = store.list_submissions()
    except SupabaseError as e:
        raise _backend_error("load submissions", e)

    return find_duplicate_links(submissions, normalize=normalize_link if normalize else None)


@app.post("/api/admin/payments", response_model=IssuePaymentResponse, status_code=201)
def create_payment(
    request: IssuePaymentRequest,
    client: SupabaseClient = Depends(get_supabase),
    payments: PaymentStore = Depends(get_payment_store),
    email_service: EmailService = Depends(get_email_service),
):
    try:
        return issue_payment(request, client, payments, email_service)
    except ContributorNotFoundError as e:
        raise _error(404, str(e))
    except InvalidPaymentRequestError as e:
        raise _error(400, str(e))
    except SupabaseError as e:
        raise _backend_error("create payment", e)


def _transition_payment(payments: PaymentStore, payment_id: str, paid: bool) -> Payment:
    try:
        if paid:
            return payments.mark_paid(payment_id)
        return payments.cancel_payment(payment_id)
    except PaymentNotFoundError as e:
        raise _error(404, str(e))
    except InvalidPaymentTransitionError as e:
        raise _error(409, str(e))
    except SupabaseError as e:
        raise _backend_error("update payment", e)


@app.post("/api/admin/payments/{payment_id}/paid", response_model=Payment)
def mark_payment_paid(payment_id: str, payments: PaymentStore = Depends(get_payment_store)):
    return _transition_payment(payments, payment_id, paid=True)


@app.post("/api/admin/payments/{payment_id}/cancel", response_model=Payment)
def cancel_payment(payment_id: str, payments: PaymentStore = Depends(get_payment_store)):
    return _transition_payment(payments, payment_id, paid=False)


@app.post("/api/admin/report", response_model=ReportResponse)
def create_report(
    store: SubmissionStore = Depends(get_submission_store),
    payments: PaymentStore = Depends(get_payment_store),
):
    submissions, history = _load_snapshot(store, payments)

    summaries = reconcile(submissions, history)
    balances = build_submission_balances(submissions, history)
    duplicates = find_duplicate_links(submissions)

    filepath = generate_report(summaries, balances, duplicates)
    filename = os.path.basename(filepath)

    summary = {
        **reconciliation_totals(summaries),
        "total_submissions": len(submissions),
        "duplicate_groups": len(duplicates),
    }
    logger.info(f"Report complete: {summary}")

    return ReportResponse(status="success", filename=filename, summary=summary)


@app.get("/api/download/{filename}")
def download_report(filename: str):
    """Serve a generated report from OUTPUT_DIR. Returns 404 if missing."""
    file_path = os.path.join(config.OUTPUT_DIR, os.path.basename(filename))

    if not os.path.exists(file_path):
        raise _error(404, f"Report not found: {filename}")

    return FileResponse(
        file_path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f'attachment; filename="{os.path.basename(filename)}"',
        },
    )


# ===========================================================================
# Main entry point
# ===========================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
