"""
Tests for the round notification email integration.

SMTP is always mocked.
"""

import smtplib
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from core.integrations.email import (
    EmailService,
    RoundEmailSender,
    RoundEmailTemplates,
    build_round_email_sender,
)
from core.workflow.rounds import NotificationKind


class TestRoundEmailTemplates:
    @pytest.mark.parametrize("kind,subject_fragment", [
        (NotificationKind.ADVANCED_COFFEE_CHAT, "Coffee Chats"),
        (NotificationKind.ADVANCED_FIRST_ROUND, "First Round Interviews"),
        (NotificationKind.ADVANCED_FINAL_ROUND, "Final Round"),
        (NotificationKind.ACCEPTED, "Accepted to UConsulting"),
        (NotificationKind.REJECTED, "Update on Your Application"),
    ])
    def test_every_kind_has_a_template(self, kind, subject_fragment):
        subject, body = RoundEmailTemplates.render(kind, "Jane Doe", "Fall 2026", "UConsulting")

        assert subject_fragment in subject
        assert subject.endswith("Fall 2026")
        assert "Dear Jane Doe" in body
        assert "Fall 2026" in body

    def test_rejection_mentions_organization(self):
        _, body = RoundEmailTemplates.render(
            NotificationKind.REJECTED, "Jane", "Fall 2026", "UConsulting"
        )

        assert "interest in UConsulting" in body

    def test_escapes_html(self):
        _, body = RoundEmailTemplates.render(
            NotificationKind.ACCEPTED, "<script>x</script>", "Fall & Winter", "A<B"
        )

        assert "<script>" not in body
        assert "&lt;script&gt;" in body
        assert "Fall &amp; Winter" in body
        assert "A&lt;B" in body


class TestEmailService:
    def test_send_email_uses_starttls_and_login(self):
        service = EmailService(
            smtp_host="smtp.example.edu",
            smtp_port=587,
            smtp_user="bot",
            smtp_password="pw",
            from_email="recruiting@club.example.edu",
            from_name="Recruiting",
        )

        with patch("core.integrations.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            service.send_email("jane@students.example.edu", "Subject", "<p>Hi</p>")

        smtp_cls.assert_called_once_with("smtp.example.edu", 587, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "pw")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "jane@students.example.edu"
        assert message["Subject"] == "Subject"
        assert message["From"] == "Recruiting <recruiting@club.example.edu>"

    def test_send_email_without_credentials_skips_login(self):
        service = EmailService(smtp_host="localhost")

        with patch("core.integrations.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            service.send_email("a@b.co", "S", "body", html_body=False)

        server.login.assert_not_called()
        server.send_message.assert_called_once()


class TestRoundEmailSender:
    @pytest.mark.asyncio
    async def test_disabled_sender_does_not_touch_smtp(self):
        service = MagicMock(spec=EmailService)
        sender = RoundEmailSender(service, organization="UConsulting", enabled=False)

        result = await sender.send("a@b.co", "Jane", NotificationKind.ACCEPTED, "Fall 2026")

        assert result.success
        assert result.message_id == "disabled"
        service.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_rendered_template(self):
        service = MagicMock(spec=EmailService)
        service.send_email.return_value = "<msg-1@club>"
        sender = RoundEmailSender(service, organization="UConsulting")

        result = await sender.send(
            "jane@students.example.edu", "Jane", NotificationKind.ADVANCED_FIRST_ROUND, "Fall 2026"
        )

        assert result.success
        assert result.message_id == "<msg-1@club>"
        to_email, subject, body = service.send_email.call_args.args
        assert to_email == "jane@students.example.edu"
        assert "First Round" in subject
        assert "Dear Jane" in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        smtplib.SMTPAuthenticationError(535, b"bad credentials"),
        ConnectionRefusedError("connection refused"),
    ])
    async def test_smtp_failure_is_reported_not_raised(self, error):
        service = MagicMock(spec=EmailService)
        service.send_email.side_effect = error
        sender = RoundEmailSender(service, organization="UConsulting")

        result = await sender.send("a@b.co", "Jane", NotificationKind.REJECTED, "Fall 2026")

        assert not result.success
        assert result.error


class TestBuildRoundEmailSender:
    def test_builds_from_settings(self):
        settings = SimpleNamespace(
            smtp_host="smtp.example.edu",
            smtp_port=2525,
            smtp_user=None,
            smtp_password=None,
            from_email="noreply@club.example.edu",
            from_name="Club",
            organization_name="Club",
            email_enabled=False,
        )

        sender = build_round_email_sender(settings)

        assert sender.organization == "Club"
        assert sender.enabled is False
        assert sender.service.smtp_port == 2525
        assert sender.service.from_email == "noreply@club.example.edu"
