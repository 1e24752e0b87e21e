"""
Transactional email via the Resend HTTP API.

Messages:
  - Payment request: sent when an admin issues a payment; asks the contributor
    to reply with their PayPal details and an invoice.
  - Submission thanks: sent after a clip is accepted.

Sending never raises on provider errors. Callers get an EmailResult and decide
whether a failure matters (it never blocks a payment or a submission).
"""

import html
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

import httpx

import config

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Result of an email send attempt."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    http_status: Optional[int] = None


class EmailService:
    def __init__(
        self,
        api_key: str,
        from_address: str,
        payments_contact: str,
        base_url: str = "https://api.resend.com",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.payments_contact = payments_contact
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls) -> "EmailService":
        return cls(
            api_key=config.RESEND_API_KEY,
            from_address=config.EMAIL_FROM,
            payments_contact=config.PAYMENTS_CONTACT_EMAIL,
            base_url=config.RESEND_BASE_URL,
            timeout=config.REQUEST_TIMEOUT,
        )

    def close(self) -> None:
        self._http.close()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def send_email(self, to: Union[str, List[str]], subject: str, html_body: str) -> EmailResult:
        recipients = [to] if isinstance(to, str) else list(to)

        if not self.is_configured():
            logger.warning(f"Email not configured, skipping '{subject}' to {recipients}")
            return EmailResult(success=False, error="RESEND_API_KEY not configured")

        try:
            response = self._http.post(
                f"{self.base_url}/emails",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.from_address,
                    "to": recipients,
                    "subject": subject,
                    "html": html_body,
                },
            )
        except httpx.RequestError as e:
            logger.error(f"Email request failed for {recipients}: {e}")
            return EmailResult(success=False, error=str(e))

        if response.status_code >= 300:
            logger.error(
                f"Email provider returned {response.status_code} for {recipients}: "
                f"{response.text[:300]}"
            )
            return EmailResult(
                success=False,
                error=response.text[:200],
                http_status=response.status_code,
            )

        # The provider accepted the message; a body we cannot read only loses the id
        try:
            message_id = response.json().get("id")
        except (ValueError, AttributeError):
            logger.warning(
                f"Email provider returned an unreadable body for {recipients}: "
                f"{response.text[:200]}"
            )
            message_id = None

        logger.info(f"Email '{subject}' sent to {recipients} (id={message_id})")
        return EmailResult(success=True, message_id=message_id, http_status=response.status_code)

    # ======================================================================
    # Messages
    # ======================================================================

    def send_payment_request(self, to: str, total_views: int, amount: float) -> EmailResult:
        body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
          <h1 style="color: #333; text-align: center;">Payment Request</h1>
          <p>Hello,</p>
          <p>Great news! We're ready to process a payment for your video submissions.</p>
          <div style="background-color: #f5f5f5; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h2 style="color: #333; margin-top: 0;">Payment Details:</h2>
            <ul>
              <li><strong>Total Views:</strong> {total_views:,}</li>
              <li><strong>Payment Amount:</strong> ${amount:,.2f}</li>
              <li><strong>Payment Date:</strong> {date.today().isoformat()}</li>
            </ul>
          </div>
          <h3 style="color: #333;">Next Steps:</h3>
          <ol>
            <li>Provide your PayPal account email address</li>
            <li>Create a simple invoice with your details</li>
            <li>Forward this email with your PayPal details and invoice to:
                <strong>{html.escape(self.payments_contact)}</strong></li>
          </ol>
          <p>Best regards,<br>The Clipper Team</p>
        </div>
        """
        return self.send_email(to, "Payment Request - Provide Your PayPal Details", body)

    def send_submission_thanks(
        self,
        to: str,
        file_name: Optional[str] = None,
        video_url: Optional[str] = None,
    ) -> EmailResult:
        if file_name:
            details = f'file "{html.escape(file_name)}"'
        else:
            details = f"link: {html.escape(video_url or '')}"

        body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
          <h1 style="color: #333;">Clip received!</h1>
          <p>Thanks for sending your clip for review. We received your {details}.</p>
          <p>Our team will review it and track its views. Payments are issued
             once your clips accumulate views.</p>
          <p>The Clipper Team</p>
        </div>
        """
        return self.send_email(to, "Thanks for sending your clip!", body)
