"""
Tests for services/submission_store.py and services/payment_store.py.

Both stores run against the FakeBackend (conftest) so the actual PostgREST
requests and row decoding are exercised.
"""

import sys
import os
import pytest
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models.schemas import (
    SubmissionCreate,
    SubmissionType,
    ClipCategory,
    PaymentStatus,
    Payment,
)
from services.submission_store import (
    SubmissionStore,
    SubmissionNotFoundError,
    StoredFileNotFoundError,
    row_to_submission,
)
from services.payment_store import (
    PaymentStore,
    PaymentNotFoundError,
    InvalidPaymentTransitionError,
    payment_totals,
    row_to_payment,
)

SUBMISSIONS = "/rest/v1/video_submissions"
PAYMENTS = "/rest/v1/payments"
STORAGE = "/storage/v1/object/videos"
UPLOAD_CONFIGS = "/rest/v1/upload_configs"


def submission_row(sid="s1", email="a@x.com", views=2000, amount=1.0,
                   clip_type="category_a", file_path=None, video_url="https://x.com/v/1"):
    return {
        "id": sid,
        "user_email": email,
        "user_id": "u1",
        "submission_type": "file_upload" if file_path else "url_link",
        "video_url": None if file_path else video_url,
        "file_path": file_path,
        "original_filename": None,
        "file_size_bytes": None,
        "views": views,
        "payment_amount": amount,
        "clip_type": clip_type,
        "created_at": "2026-03-01T10:00:00+00:00",
    }


def payment_row(pid="p1", status="pending", amount=1.0, payment_date="2026-03-02T10:00:00+00:00"):
    return {
        "id": pid,
        "user_id": "u1",
        "user_email": "a@x.com",
        "total_views": 2000,
        "payment_amount": amount,
        "submission_ids": ["s1"],
        "status": status,
        "payment_date": payment_date,
        "created_at": "2026-03-02T10:00:00+00:00",
    }


# ===========================================================================
# Row decoding
# ===========================================================================

class TestRowDecoding:

    def test_submission_nulls_default(self):
        row = submission_row(views=None, amount=None, clip_type=None, email=None)
        s = row_to_submission(row)
        assert s.views == 0
        assert s.payment_amount == 0.0
        assert s.clip_category is None
        assert s.owner_email is None

    def test_unknown_clip_type_becomes_none(self):
        assert row_to_submission(submission_row(clip_type="legacy")).clip_category is None

    def test_payment_paid_date_only_when_paid(self):
        assert row_to_payment(payment_row(status="pending")).paid_date is None
        assert row_to_payment(payment_row(status="paid")).paid_date is not None

    def test_payment_columns_mapped(self):
        p = row_to_payment(payment_row(amount=12.5))
        assert p.owner_email == "a@x.com"
        assert p.amount == 12.5
        assert p.submission_ids == ["s1"]
        assert p.status == PaymentStatus.PENDING


# ===========================================================================
# Submission Store
# ===========================================================================

class TestSubmissionStore:

    def test_list_filters_by_owner(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[submission_row()])
        subs = SubmissionStore(supabase).list_submissions("a@x.com")

        assert [s.id for s in subs] == ["s1"]
        assert backend.requests[0].url.params["user_email"] == "eq.a@x.com"

    def test_list_all_has_no_owner_filter(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[])
        SubmissionStore(supabase).list_submissions()
        assert "user_email" not in backend.requests[0].url.params

    def test_create_computes_amount(self, backend, supabase):
        backend.queue("POST", SUBMISSIONS, status=201, body=[submission_row(views=2000, amount=1.0)])
        data = SubmissionCreate(
            owner_email="a@x.com", user_id="u1",
            submission_type=SubmissionType.URL_LINK,
            video_url="  https://x.com/v/1  ",
            views=2000, clip_category=ClipCategory.CATEGORY_A,
        )

        with patch("services.rates.config.RATE_PER_THOUSAND_CATEGORY_A", 0.5):
            SubmissionStore(supabase).create_submission(data)

        sent = backend.body(backend.requests[0])
        assert sent["payment_amount"] == 1.0
        assert sent["clip_type"] == "category_a"
        assert sent["user_email"] == "a@x.com"
        assert sent["video_url"] == "https://x.com/v/1"

    def test_update_views_recomputes_amount(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[submission_row(views=2000, amount=1.0)])
        backend.queue("PATCH", SUBMISSIONS, body=[submission_row(views=4000, amount=2.0)])

        with patch("services.rates.config.RATE_PER_THOUSAND_CATEGORY_A", 0.5):
            updated = SubmissionStore(supabase).update_submission("s1", views=4000)

        sent = backend.body(backend.calls("PATCH", SUBMISSIONS)[0])
        assert sent == {"views": 4000, "clip_type": "category_a", "payment_amount": 2.0}
        assert updated.views == 4000

    def test_update_explicit_amount_wins(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[submission_row()])
        backend.queue("PATCH", SUBMISSIONS, body=[submission_row(amount=7.0)])

        SubmissionStore(supabase).update_submission("s1", views=3000, payment_amount=7.0)

        assert backend.body(backend.calls("PATCH", SUBMISSIONS)[0])["payment_amount"] == 7.0

    def test_update_keeps_category_when_not_given(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[submission_row(clip_type="category_b")])
        backend.queue("PATCH", SUBMISSIONS, body=[submission_row(clip_type="category_b")])

        SubmissionStore(supabase).update_submission("s1", views=3000)

        assert backend.body(backend.calls("PATCH", SUBMISSIONS)[0])["clip_type"] == "category_b"

    def test_update_can_clear_category(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[submission_row(views=2000, amount=1.0)])
        backend.queue("PATCH", SUBMISSIONS, body=[submission_row(clip_type=None, amount=0.0)])

        updated = SubmissionStore(supabase).update_submission("s1", clip_category=None)

        sent = backend.body(backend.calls("PATCH", SUBMISSIONS)[0])
        assert sent == {"views": 2000, "clip_type": None, "payment_amount": 0.0}
        assert updated.clip_category is None

    def test_update_unknown_raises(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[])
        with pytest.raises(SubmissionNotFoundError):
            SubmissionStore(supabase).update_submission("nope", views=1)

    def test_delete_removes_file(self, backend, supabase):
        backend.queue("DELETE", SUBMISSIONS, body=[submission_row(file_path="u1/clip.mp4")])
        backend.queue("DELETE", STORAGE, body=[])

        deleted = SubmissionStore(supabase).delete_submission("s1")

        assert deleted.id == "s1"
        assert backend.body(backend.calls("DELETE", STORAGE)[0]) == {"prefixes": ["u1/clip.mp4"]}

    def test_delete_storage_failure_is_not_fatal(self, backend, supabase, caplog):
        backend.queue("DELETE", SUBMISSIONS, body=[submission_row(file_path="u1/clip.mp4")])
        backend.queue("DELETE", STORAGE, status=400, body={"message": "bucket not found"})

        deleted = SubmissionStore(supabase).delete_submission("s1")

        assert deleted.id == "s1"
        assert "Failed to remove stored file" in caplog.text

    def test_delete_link_submission_skips_storage(self, backend, supabase):
        backend.queue("DELETE", SUBMISSIONS, body=[submission_row()])
        SubmissionStore(supabase).delete_submission("s1")
        assert backend.calls("DELETE", STORAGE) == []

    def test_delete_unknown_raises(self, backend, supabase):
        backend.queue("DELETE", SUBMISSIONS, body=[])
        with pytest.raises(SubmissionNotFoundError):
            SubmissionStore(supabase).delete_submission("nope")

    def test_download_file(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[submission_row(file_path="u1/clip.mp4")])
        backend.queue("GET", f"{STORAGE}/u1/clip.mp4", body=b"video-bytes")

        submission, content = SubmissionStore(supabase).download_file("s1")

        assert submission.file_path == "u1/clip.mp4"
        assert content == b"video-bytes"

    def test_download_link_submission_has_no_file(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[submission_row()])

        with pytest.raises(StoredFileNotFoundError):
            SubmissionStore(supabase).download_file("s1")

        assert len(backend.requests) == 1

    def test_download_unknown_raises(self, backend, supabase):
        backend.queue("GET", SUBMISSIONS, body=[])
        with pytest.raises(SubmissionNotFoundError):
            SubmissionStore(supabase).download_file("nope")

    def test_upload_config_latest_row(self, backend, supabase):
        backend.queue("GET", UPLOAD_CONFIGS, body=[
            {"id": "c2", "max_file_size_mb": 100, "allowed_formats": ["MP4", ".mov"]},
        ])

        config = SubmissionStore(supabase).get_upload_config()

        assert config.max_file_size_mb == 100
        assert config.allowed_formats == ["mp4", "mov"]
        params = backend.requests[0].url.params
        assert params["order"] == "created_at.desc"
        assert params["limit"] == "1"

    def test_upload_config_missing(self, backend, supabase):
        backend.queue("GET", UPLOAD_CONFIGS, body=[])
        assert SubmissionStore(supabase).get_upload_config() is None


# ===========================================================================
# Payment Store
# ===========================================================================

class TestPaymentStore:

    def test_create_is_pending(self, backend, supabase):
        backend.queue("POST", PAYMENTS, status=201, body=[payment_row()])

        payment = PaymentStore(supabase).create_payment("u1", "a@x.com", 2000, 1.0, ["s1"])

        sent = backend.body(backend.requests[0])
        assert sent["status"] == "pending"
        assert sent["user_email"] == "a@x.com"
        assert sent["payment_amount"] == 1.0
        assert sent["submission_ids"] == ["s1"]
        assert payment.status == PaymentStatus.PENDING

    def test_mark_paid_sets_date(self, backend, supabase):
        backend.queue("GET", PAYMENTS, body=[payment_row(status="pending")])
        backend.queue("PATCH", PAYMENTS, body=[payment_row(status="paid")])

        payment = PaymentStore(supabase).mark_paid("p1")

        sent = backend.body(backend.calls("PATCH", PAYMENTS)[0])
        assert sent["status"] == "paid"
        assert "payment_date" in sent
        assert payment.status == PaymentStatus.PAID

    def test_cancel(self, backend, supabase):
        backend.queue("GET", PAYMENTS, body=[payment_row(status="pending")])
        backend.queue("PATCH", PAYMENTS, body=[payment_row(status="cancelled")])

        payment = PaymentStore(supabase).cancel_payment("p1")

        assert backend.body(backend.calls("PATCH", PAYMENTS)[0]) == {"status": "cancelled"}
        assert payment.status == PaymentStatus.CANCELLED

    @pytest.mark.parametrize("current", ["paid", "cancelled"])
    def test_final_states_cannot_change(self, backend, supabase, current):
        backend.queue("GET", PAYMENTS, body=[payment_row(status=current)])
        with pytest.raises(InvalidPaymentTransitionError):
            PaymentStore(supabase).mark_paid("p1")
        assert backend.calls("PATCH", PAYMENTS) == []

    def test_unknown_payment(self, backend, supabase):
        backend.queue("GET", PAYMENTS, body=[])
        with pytest.raises(PaymentNotFoundError):
            PaymentStore(supabase).cancel_payment("nope")

    def test_totals_ignore_cancelled(self):
        payments = [
            Payment(id="1", owner_email="a@x.com", amount=10.0, status=PaymentStatus.PAID),
            Payment(id="2", owner_email="a@x.com", amount=5.5, status=PaymentStatus.PENDING),
            Payment(id="3", owner_email="a@x.com", amount=99.0, status=PaymentStatus.CANCELLED),
        ]
        assert payment_totals(payments) == (10.0, 5.5)
