"""
Payment issuance workflow (admin action on a ContributorSummary).

Steps:
  1. Validate the request (non-empty submission list, positive amount)
  2. Resolve the contributor's profile id from their email
     → ContributorNotFoundError if no profile exists; nothing is written
  3. Persist a new "pending" Payment covering the pending submissions
  4. Send the payment-request email
     → a failed email is logged and reported, the payment stands
"""

import logging

from models.schemas import IssuePaymentRequest, IssuePaymentResponse, Profile
from services.email_service import EmailService
from services.payment_store import PaymentStore
from services.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"


class ContributorNotFoundError(LookupError):
    pass


class InvalidPaymentRequestError(ValueError):
    pass


def find_profile(client: SupabaseClient, email: str) -> Profile:
    rows = client.select(
        PROFILES_TABLE,
        filters={"email": email},
        columns="id,email,display_name",
    )
    if not rows:
        raise ContributorNotFoundError(f"User not found: {email}")
    if len(rows) > 1:
        logger.warning(f"{len(rows)} profiles share email {email}, using the first")
    row = rows[0]
    return Profile(id=str(row["id"]), email=row["email"], display_name=row.get("display_name"))


def issue_payment(
    request: IssuePaymentRequest,
    client: SupabaseClient,
    payment_store: PaymentStore,
    email_service: EmailService,
) -> IssuePaymentResponse:
    """
    Create a payment for a contributor's pending balance and notify them.

    Raises:
        InvalidPaymentRequestError: Empty submission list or non-positive amount
        ContributorNotFoundError: No profile for contributor_email
        SupabaseError: The backend rejected the lookup or insert
    """
    email = request.contributor_email.strip()
    logger.info(
        f"Issuing payment to {email}: {request.pending_views:,.0f} views, "
        f"${request.pending_payment:,.2f}, {len(request.pending_submission_ids)} submissions"
    )

    if not request.pending_submission_ids:
        raise InvalidPaymentRequestError(f"No pending submissions to pay for {email}")
    if request.pending_payment <= 0:
        raise InvalidPaymentRequestError(f"Payment amount must be positive, got {request.pending_payment}")

    profile = find_profile(client, email)

    total_views = int(round(request.pending_views))
    amount = round(request.pending_payment, 2)

    payment = payment_store.create_payment(
        user_id=profile.id,
        owner_email=email,
        total_views=total_views,
        amount=amount,
        submission_ids=list(request.pending_submission_ids),
    )

    email_result = email_service.send_payment_request(email, total_views, amount)
    if not email_result.success:
        logger.error(
            f"Payment {payment.id} created but notification email to {email} failed: "
            f"{email_result.error}"
        )

    return IssuePaymentResponse(
        status="success",
        payment=payment,
        email_sent=email_result.success,
        email_id=email_result.message_id,
    )
