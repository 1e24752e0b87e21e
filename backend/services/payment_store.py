"""
Payment Store — the payments table.

Payments are created only by the issuance workflow (status "pending") and are
never deleted. The only mutation is a status transition:

  pending → paid       (sets payment_date)
  pending → cancelled

Column mapping (table → Payment):
  user_email     → owner_email
  payment_amount → amount
  payment_date   → paid_date (only exposed once status is "paid")
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from models.schemas import Payment, PaymentStatus
from services.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

TABLE = "payments"

ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.CANCELLED},
    PaymentStatus.PAID: set(),
    PaymentStatus.CANCELLED: set(),
}


class PaymentNotFoundError(LookupError):
    pass


class InvalidPaymentTransitionError(ValueError):
    pass


class PaymentStore:
    def __init__(self, client: SupabaseClient):
        self.client = client

    def list_payments(self, owner_email: Optional[str] = None) -> list[Payment]:
        """All payments, newest first."""
        filters = {"user_email": owner_email} if owner_email else None
        rows = self.client.select(TABLE, filters=filters, order="created_at.desc")
        return [row_to_payment(r) for r in rows]

    def get_payment(self, payment_id: str) -> Payment:
        rows = self.client.select(TABLE, filters={"id": payment_id})
        if not rows:
            raise PaymentNotFoundError(f"Payment not found: {payment_id}")
        return row_to_payment(rows[0])

    def create_payment(
        self,
        user_id: str,
        owner_email: str,
        total_views: int,
        amount: float,
        submission_ids: list[str],
    ) -> Payment:
        row = {
            "user_id": user_id,
            "user_email": owner_email,
            "total_views": total_views,
            "payment_amount": amount,
            "submission_ids": submission_ids,
            "status": PaymentStatus.PENDING.value,
        }
        payment = row_to_payment(self.client.insert(TABLE, row))
        logger.info(
            f"Created payment {payment.id} for {owner_email}: "
            f"{total_views:,} views, ${amount:,.2f}, {len(submission_ids)} submissions"
        )
        return payment

    def mark_paid(self, payment_id: str) -> Payment:
        return self._transition(payment_id, PaymentStatus.PAID)

    def cancel_payment(self, payment_id: str) -> Payment:
        return self._transition(payment_id, PaymentStatus.CANCELLED)

    def _transition(self, payment_id: str, target: PaymentStatus) -> Payment:
        current = self.get_payment(payment_id)

        if target not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidPaymentTransitionError(
                f"Payment {payment_id} cannot go from "
                f"{current.status.value} to {target.value}"
            )

        values = {"status": target.value}
        if target == PaymentStatus.PAID:
            values["payment_date"] = datetime.now(timezone.utc).isoformat()

        rows = self.client.update(TABLE, values, filters={"id": payment_id})
        if not rows:
            raise PaymentNotFoundError(f"Payment not found: {payment_id}")

        logger.info(f"Payment {payment_id}: {current.status.value} → {target.value}")
        return row_to_payment(rows[0])


def payment_totals(payments: list[Payment]) -> tuple[float, float]:
    """
    Returns:
        (total_paid, total_pending) — cancelled payments count toward neither
    """
    total_paid = sum(p.amount for p in payments if p.status == PaymentStatus.PAID)
    total_pending = sum(p.amount for p in payments if p.status == PaymentStatus.PENDING)
    return round(total_paid, 2), round(total_pending, 2)


def row_to_payment(row: dict) -> Payment:
    status = PaymentStatus(row.get("status") or PaymentStatus.PENDING.value)
    return Payment(
        id=str(row["id"]),
        user_id=row.get("user_id"),
        owner_email=row["user_email"],
        total_views=row.get("total_views") or 0,
        amount=row.get("payment_amount") or 0.0,
        submission_ids=[str(sid) for sid in row.get("submission_ids") or []],
        status=status,
        created_at=row.get("created_at"),
        paid_date=row.get("payment_date") if status == PaymentStatus.PAID else None,
    )
