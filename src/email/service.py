"""Email service using Gmail API with Service Account.

Uses domain-wide delegation to send emails on behalf of a Google Workspace user.
The service account must have domain-wide delegation enabled in Google Admin Console
with scope: https://www.googleapis.com/auth/gmail.send

Sending never raises: every outcome is reported as a SendEmailResponse so that
callers can treat notifications as best-effort.
"""

import asyncio
import base64
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import TYPE_CHECKING

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from src.core.logging import get_logger

from .schemas import EmailRecipient, SendEmailRequest, SendEmailResponse
from .templates import render_enrollment_confirmation, render_payment_confirmation


if TYPE_CHECKING:
    from googleapiclient._apis.gmail.v1 import GmailResource


logger = get_logger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


class EmailService:
    """Notifier that sends course emails via the Gmail API."""

    def __init__(
        self,
        credentials_path: str | None,
        sender_address: str,
        sender_name: str = "CourseHub",
        frontend_url: str = "http://localhost:3000",
        enabled: bool = True,
    ):
        """Initialize Gmail API service.

        Args:
            credentials_path: Path to service account JSON file
            sender_address: Email address to send from (must be in Google Workspace)
            sender_name: Display name for sender
            frontend_url: Base URL used for links in emails
            enabled: When False every send is skipped and reported as failed
        """
        self.credentials_path = credentials_path
        self.sender_address = sender_address
        self.sender_name = sender_name
        self.frontend_url = frontend_url.rstrip("/")
        self.enabled = enabled
        self._service: GmailResource | None = None

        if enabled and not (credentials_path and Path(credentials_path).exists()):
            logger.warning(
                "email_credentials_not_found",
                path=credentials_path,
                message="Gmail API will not be available",
            )

    def _get_service(self) -> "GmailResource":
        """Get or create Gmail API service with delegated credentials.

        Raises:
            FileNotFoundError: If credentials file doesn't exist
        """
        if self._service is not None:
            return self._service

        credentials_file = Path(self.credentials_path or "")
        if not self.credentials_path or not credentials_file.exists():
            msg = f"Credentials file not found: {self.credentials_path}"
            raise FileNotFoundError(msg)

        credentials = service_account.Credentials.from_service_account_file(
            str(credentials_file),
            scopes=GMAIL_SCOPES,
        )
        self._service = build(
            "gmail",
            "v1",
            credentials=credentials.with_subject(self.sender_address),
            cache_discovery=False,
        )
        logger.info("gmail_service_initialized", sender=self.sender_address)
        return self._service

    def _format_address(self, recipient: EmailRecipient) -> str:
        if recipient.name:
            return f"{recipient.name} <{recipient.email}>"
        return recipient.email

    def _create_message(self, request: SendEmailRequest) -> dict:
        """Build the Gmail API body: ``{"raw": <base64url MIME>}``."""
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.sender_name} <{self.sender_address}>"
        message["To"] = ", ".join(self._format_address(r) for r in request.to)
        message["Subject"] = request.subject
        if request.reply_to:
            message["Reply-To"] = request.reply_to

        # Plain text first, then HTML (email clients prefer last)
        if request.body_text:
            message.attach(MIMEText(request.body_text, "plain", "utf-8"))
        message.attach(MIMEText(request.body_html, "html", "utf-8"))

        raw_message = base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")
        return {"raw": raw_message}

    def _send_sync(self, request: SendEmailRequest) -> dict:
        service = self._get_service()
        body = self._create_message(request)
        return service.users().messages().send(userId="me", body=body).execute()

    async def send_email(self, request: SendEmailRequest) -> SendEmailResponse:
        """Send an email via Gmail API.

        Returns:
            SendEmailResponse with success status and message ID
        """
        recipients = [r.email for r in request.to]

        if not self.enabled:
            logger.debug("email_skipped_disabled", to=recipients)
            return SendEmailResponse(success=False, error="Email service disabled")

        try:
            result = await asyncio.to_thread(self._send_sync, request)
        except HttpError as e:
            logger.exception(
                "email_send_failed",
                error=str(e),
                to=recipients,
                subject=request.subject[:50],
            )
            return SendEmailResponse(success=False, error=f"Gmail API error: {e}")
        except FileNotFoundError as e:
            logger.error("email_credentials_missing", error=str(e))
            return SendEmailResponse(
                success=False,
                error="Email service not configured: credentials file missing",
            )
        except Exception as e:
            logger.exception("email_send_unexpected_error", error=str(e))
            return SendEmailResponse(success=False, error=f"Unexpected error: {e!s}")

        logger.info(
            "email_sent",
            message_id=result.get("id"),
            thread_id=result.get("threadId"),
            to=recipients,
            subject=request.subject[:50],
        )
        return SendEmailResponse(
            success=True,
            message_id=result.get("id"),
            thread_id=result.get("threadId"),
        )

    async def send_simple_email(
        self,
        to: str,
        subject: str,
        body_html: str,
        body_text: str | None = None,
        to_name: str | None = None,
    ) -> SendEmailResponse:
        """Send a single-recipient email."""
        request = SendEmailRequest(
            to=[EmailRecipient(email=to, name=to_name)],
            subject=subject,
            body_html=body_html,
            body_text=body_text,
        )
        return await self.send_email(request)

    # ==========================================================================
    # Course notifications
    # ==========================================================================

    async def send_payment_confirmation(
        self,
        to: str,
        course_title: str,
        amount: Decimal,
        currency: str,
        payment_id: str,
    ) -> SendEmailResponse:
        """Send the payment receipt."""
        html, text = render_payment_confirmation(
            course_title=course_title,
            amount=amount,
            currency=currency,
            payment_id=payment_id,
        )
        return await self.send_simple_email(
            to=to,
            subject="Payment Confirmation",
            body_html=html,
            body_text=text,
        )

    async def send_enrollment_confirmation(
        self,
        to: str,
        course_title: str,
        course_id: str,
    ) -> SendEmailResponse:
        """Send the enrollment confirmation with a link to the course."""
        html, text = render_enrollment_confirmation(
            course_title=course_title,
            course_url=f"{self.frontend_url}/courses/{course_id}",
        )
        return await self.send_simple_email(
            to=to,
            subject="Course Enrollment Confirmation",
            body_html=html,
            body_text=text,
        )
