"""Tests for the Gmail-backed EmailService."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from src.email.schemas import EmailRecipient, SendEmailRequest
from src.email.service import EmailService


@pytest.fixture
def gmail():
    """Gmail API resource chain: users().messages().send().execute()."""
    resource = MagicMock()
    resource.users.return_value.messages.return_value.send.return_value.execute.return_value = {
        "id": "msg123",
        "threadId": "thr456",
    }
    return resource


@pytest.fixture
def email_service(gmail):
    service = EmailService(
        credentials_path="/fake/path.json",
        sender_address="no-reply@coursehub.test",
        frontend_url="https://coursehub.test/",
    )
    with patch.object(EmailService, "_get_service", return_value=gmail):
        yield service


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_success_reports_message_id(self, email_service, gmail) -> None:
        result = await email_service.send_simple_email(
            to="student@example.com",
            subject="Hello",
            body_html="<p>Hi</p>",
            body_text="Hi",
        )

        assert result.success is True
        assert result.message_id == "msg123"
        assert result.thread_id == "thr456"
        send = gmail.users.return_value.messages.return_value.send
        assert send.call_args.kwargs["userId"] == "me"
        assert "raw" in send.call_args.kwargs["body"]

    @pytest.mark.asyncio
    async def test_http_error_is_reported_not_raised(self, email_service, gmail) -> None:
        execute = gmail.users.return_value.messages.return_value.send.return_value.execute
        execute.side_effect = HttpError(MagicMock(status=403, reason="Forbidden"), b"forbidden")

        result = await email_service.send_simple_email(
            to="student@example.com", subject="Hello", body_html="<p>Hi</p>"
        )

        assert result.success is False
        assert "Gmail API error" in result.error

    @pytest.mark.asyncio
    async def test_missing_credentials_is_reported(self) -> None:
        service = EmailService(
            credentials_path="/does/not/exist.json",
            sender_address="no-reply@coursehub.test",
        )

        result = await service.send_simple_email(
            to="student@example.com", subject="Hello", body_html="<p>Hi</p>"
        )

        assert result.success is False
        assert "credentials file missing" in result.error

    @pytest.mark.asyncio
    async def test_disabled_service_never_calls_gmail(self) -> None:
        service = EmailService(
            credentials_path=None,
            sender_address="no-reply@coursehub.test",
            enabled=False,
        )

        with patch.object(EmailService, "_get_service") as get_service:
            result = await service.send_simple_email(
                to="student@example.com", subject="Hello", body_html="<p>Hi</p>"
            )

        assert result.success is False
        get_service.assert_not_called()

    def test_message_headers(self, email_service) -> None:
        import base64
        from email import message_from_bytes

        body = email_service._create_message(
            SendEmailRequest(
                to=[EmailRecipient(email="student@example.com", name="Ada")],
                subject="Receipt",
                body_html="<p>Paid</p>",
                body_text="Paid",
                reply_to="support@coursehub.example.com",
            )
        )

        message = message_from_bytes(base64.urlsafe_b64decode(body["raw"]))
        assert message["To"] == "Ada <student@example.com>"
        assert message["From"] == "CourseHub <no-reply@coursehub.test>"
        assert message["Reply-To"] == "support@coursehub.example.com"
        assert [p.get_content_type() for p in message.get_payload()] == [
            "text/plain",
            "text/html",
        ]


class TestCourseNotifications:
    @pytest.fixture
    def captured(self, email_service):
        email_service.send_simple_email = AsyncMock(
            return_value=MagicMock(success=True, message_id="msg123")
        )
        return email_service

    @pytest.mark.asyncio
    async def test_payment_confirmation(self, captured) -> None:
        await captured.send_payment_confirmation(
            to="student@example.com",
            course_title="Python for Data Science",
            amount=Decimal("49.99"),
            currency="usd",
            payment_id="pay-1",
        )

        kwargs = captured.send_simple_email.call_args.kwargs
        assert kwargs["to"] == "student@example.com"
        assert kwargs["subject"] == "Payment Confirmation"
        assert "49.99 USD" in kwargs["body_text"]
        assert "pay-1" in kwargs["body_html"]

    @pytest.mark.asyncio
    async def test_enrollment_confirmation_links_course(self, captured) -> None:
        await captured.send_enrollment_confirmation(
            to="student@example.com",
            course_title="Python for Data Science",
            course_id="c-42",
        )

        kwargs = captured.send_simple_email.call_args.kwargs
        assert kwargs["subject"] == "Course Enrollment Confirmation"
        assert "https://coursehub.test/courses/c-42" in kwargs["body_text"]
        assert 'href="https://coursehub.test/courses/c-42"' in kwargs["body_html"]
