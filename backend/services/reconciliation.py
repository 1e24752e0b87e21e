"""
Payment reconciliation: current submissions + payment history → what is owed.

CRITICAL: This module is pure. It never touches the backend and never mutates
its inputs, so running it twice on the same snapshot gives identical results.

Pipeline:
  1. compute_paid_views(submissions, payments) → {submission_id: paid_views}
  2. build_submission_balances(...) → one SubmissionBalance per owned submission
  3. reconcile(...) → ContributorSummary per email, sorted by pending_payment desc

Attribution policy (step 1), per payment:
  - covered = submissions listed in payment.submission_ids that still exist
  - if sum(current views of covered) == payment.total_views:
        each covered submission is credited its full current views
  - otherwise (views edited or a sibling deleted since the payment):
        payment.total_views is split across covered submissions in proportion
        to each one's share of the group's current views
  - cancelled payments credit nothing
  - a group with 0 current views but total_views > 0 credits nothing
Credits from every payment that lists a submission are summed.

Balance per submission (step 2):
  pending_views   = max(0, views - paid_views)
  rate_per_view   = payment_amount / views   (0 when views == 0)
  pending_payment = pending_views × rate_per_view
  paid_amount     = paid_views × rate_per_view

The unit rate comes from the stored payment_amount, so whatever rate was in
effect when the amount was last set is preserved.

Submissions without an owner email are excluded from balances and summaries.
"""

import logging
from collections import defaultdict

from models.schemas import (
    Submission,
    Payment,
    PaymentStatus,
    SubmissionBalance,
    ContributorSummary,
)

logger = logging.getLogger(__name__)


# ===========================================================================
# Step 1: Attribute each payment's views to the submissions it covers
# ===========================================================================

def compute_paid_views(
    submissions: list[Submission],
    payments: list[Payment],
) -> dict[str, float]:
    """
    Accumulate "paid views" per submission id across all payments.

    Submissions never referenced by a payment are absent from the result
    (i.e. 0 paid views).
    """
    by_id = {s.id: s for s in submissions}
    paid_views: dict[str, float] = defaultdict(float)

    for payment in payments:
        if payment.status == PaymentStatus.CANCELLED:
            logger.debug(f"  Payment {payment.id}: cancelled, no views credited")
            continue

        # dict.fromkeys keeps order and drops ids listed twice
        covered = [by_id[sid] for sid in dict.fromkeys(payment.submission_ids) if sid in by_id]
        missing = len(set(payment.submission_ids)) - len(covered)

        if not covered:
            logger.debug(f"  Payment {payment.id}: none of its submissions exist anymore")
            continue

        current_total = sum(s.views for s in covered)

        if current_total == payment.total_views:
            # Full attribution: the payment covered exactly what is there now
            for s in covered:
                paid_views[s.id] += s.views
            method = "full"
        elif current_total > 0:
            for s in covered:
                paid_views[s.id] += payment.total_views * (s.views / current_total)
            method = "proportional"
        else:
            logger.warning(
                f"Payment {payment.id}: covered submissions have 0 current views "
                f"but payment recorded {payment.total_views:,}; nothing credited"
            )
            continue

        logger.debug(
            f"  Payment {payment.id}: {method} attribution, "
            f"recorded={payment.total_views:,}, current={current_total:,}, "
            f"covered={len(covered)}, missing={missing}"
        )

    return dict(paid_views)


# ===========================================================================
# Step 2: Per-submission balances
# ===========================================================================

def build_submission_balances(
    submissions: list[Submission],
    payments: list[Payment],
) -> list[SubmissionBalance]:
    """Paid/pending breakdown for every submission that has an owner email."""
    paid_views = compute_paid_views(submissions, payments)
    balances: list[SubmissionBalance] = []

    for s in submissions:
        if not s.owner_email:
            continue

        paid = paid_views.get(s.id, 0.0)
        pending = max(0.0, s.views - paid)
        rate = s.payment_amount / s.views if s.views > 0 else 0.0

        balances.append(SubmissionBalance(
            submission_id=s.id,
            owner_email=s.owner_email,
            views=s.views,
            paid_views=paid,
            pending_views=pending,
            rate_per_view=rate,
            payment_amount=s.payment_amount,
            paid_amount=paid * rate,
            pending_payment=pending * rate,
        ))

    return balances


# ===========================================================================
# Step 3: Aggregate per contributor
# ===========================================================================

def reconcile(
    submissions: list[Submission],
    payments: list[Payment],
) -> list[ContributorSummary]:
    """
    Compute one ContributorSummary per owner email.

    Monetary totals are rounded to 2 decimals after summation.

    Returns:
        Summaries sorted by pending_payment, highest first
    """
    balances = build_submission_balances(submissions, payments)

    grouped: dict[str, list[SubmissionBalance]] = {}
    for b in balances:
        grouped.setdefault(b.owner_email, []).append(b)

    summaries: list[ContributorSummary] = []
    for email, items in grouped.items():
        summaries.append(ContributorSummary(
            email=email,
            total_views=sum(b.views for b in items),
            total_payment_potential=round(sum(b.payment_amount for b in items), 2),
            paid_amount=round(sum(b.paid_amount for b in items), 2),
            pending_payment=round(sum(b.pending_payment for b in items), 2),
            pending_views=sum(b.pending_views for b in items),
            submission_ids=[b.submission_id for b in items],
            pending_submission_ids=[b.submission_id for b in items if b.pending_views > 0],
        ))

    summaries.sort(key=lambda s: s.pending_payment, reverse=True)

    logger.info(
        f"Reconciled {len(submissions)} submissions against {len(payments)} payments: "
        f"{len(summaries)} contributors, "
        f"pending=${sum(s.pending_payment for s in summaries):,.2f}"
    )

    return summaries


def reconciliation_totals(summaries: list[ContributorSummary]) -> dict:
    """Dashboard totals across all contributors."""
    return {
        "total_contributors": len(summaries),
        "total_views": sum(s.total_views for s in summaries),
        "total_paid": round(sum(s.paid_amount for s in summaries), 2),
        "total_pending": round(sum(s.pending_payment for s in summaries), 2),
        "contributors_with_pending": sum(1 for s in summaries if s.pending_payment > 0),
    }
