"""Email integration for candidate round notifications."""

import html
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional
import logging

from starlette.concurrency import run_in_threadpool

from core.workflow.rounds import NotificationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt."""

    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


class EmailService:
    """Email service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: str = "noreply@example.com",
        from_name: str = "Recruiting Team",
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.from_name = from_name

    def send_email(self, to_email: str, subject: str, body: str, html_body: bool = True) -> str:
        """
        Send a single email.

        Args:
            to_email: Recipient address
            subject: Email subject
            body: Email body
            html_body: Whether body is HTML

        Returns:
            The Message-ID header of the sent email

        Raises:
            smtplib.SMTPException, OSError: When the SMTP exchange fails
        """
        msg = MIMEMultipart()
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "html" if html_body else "plain"))

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            server.starttls()
            if self.smtp_user and self.smtp_password:
                server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg, from_addr=self.from_email, to_addrs=[to_email])

        return msg.get("Message-ID", "")


class RoundEmailTemplates:
    """HTML templates for each round notification."""

    SUBJECTS = {
        NotificationKind.ADVANCED_COFFEE_CHAT: "Congratulations! You've Advanced to Coffee Chats - {cycle}",
        NotificationKind.ADVANCED_FIRST_ROUND: "Congratulations! You've Advanced to First Round Interviews - {cycle}",
        NotificationKind.ADVANCED_FINAL_ROUND: "Congratulations! You've Advanced to Final Round - {cycle}",
        NotificationKind.ACCEPTED: "Congratulations! You've Been Accepted to {organization} - {cycle}",
        NotificationKind.REJECTED: "Update on Your Application - {cycle}",
    }

    MESSAGES = {
        NotificationKind.ADVANCED_COFFEE_CHAT: (
            "Thank you for applying. After reviewing your resume and cover letter, "
            "we are excited to invite you to the coffee chat round."
        ),
        NotificationKind.ADVANCED_FIRST_ROUND: (
            "Thank you for taking the time to chat with our members. "
            "We are excited to invite you to first round interviews."
        ),
        NotificationKind.ADVANCED_FINAL_ROUND: (
            "Congratulations on a strong first round interview. "
            "We are excited to invite you to the final round."
        ),
        NotificationKind.ACCEPTED: (
            "We are thrilled to offer you membership in {organization}. "
            "Welcome aboard! We will follow up shortly with next steps."
        ),
        NotificationKind.REJECTED: (
            "Thank you for your interest in {organization} and for the time you invested "
            "in our recruiting process. After careful consideration, we are unable to "
            "move forward with your application this cycle. We encourage you to apply again."
        ),
    }

    @classmethod
    def render(
        cls,
        kind: NotificationKind,
        recipient_name: str,
        cycle_name: str,
        organization: str,
    ) -> tuple[str, str]:
        """Return ``(subject, html_body)`` for a notification kind."""
        subject = cls.SUBJECTS[kind].format(cycle=cycle_name, organization=organization)
        message = cls.MESSAGES[kind].format(organization=html.escape(organization))
        body = f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <div style="background-color: #f8f9fa; padding: 20px; text-align: center;">
                    <h2 style="color: #333; margin: 0;">{html.escape(organization)}</h2>
                </div>
                <div style="padding: 30px 20px;">
                    <p>Dear {html.escape(recipient_name)},</p>
                    <p>{message}</p>
                    <p><strong>Cycle:</strong> {html.escape(cycle_name)}</p>
                    <p>Best regards,<br>{html.escape(organization)} Recruiting Team</p>
                </div>
                <div style="background-color: #f8f9fa; padding: 20px; text-align: center; font-size: 12px;">
                    <p style="margin: 0;">This is an automated message. Please do not reply to this email.</p>
                </div>
            </div>
        """
        return subject, body


class RoundEmailSender:
    """
    Sends round-transition emails.

    This is the seam behind the notification dispatcher: it knows SMTP and
    templates, the core only knows notification kinds.
    """

    def __init__(self, service: EmailService, organization: str, enabled: bool = True):
        self.service = service
        self.organization = organization
        self.enabled = enabled

    async def send(
        self,
        recipient_email: str,
        recipient_name: str,
        kind: NotificationKind,
        cycle_name: str,
    ) -> DeliveryResult:
        subject, body = RoundEmailTemplates.render(
            kind, recipient_name, cycle_name, self.organization
        )
        if not self.enabled:
            logger.info(f"Email disabled, skipping {kind.value} notification")
            return DeliveryResult(success=True, message_id="disabled")

        try:
            message_id = await run_in_threadpool(
                self.service.send_email, recipient_email, subject, body
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send {kind.value} email: {e}")
            return DeliveryResult(success=False, error=str(e))

        logger.info(f"Sent {kind.value} email")
        return DeliveryResult(success=True, message_id=message_id)


def build_round_email_sender(settings) -> RoundEmailSender:
    """Create the sender from application settings."""
    service = EmailService(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_user=settings.smtp_user,
        smtp_password=settings.smtp_password,
        from_email=settings.from_email,
        from_name=settings.from_name,
    )
    return RoundEmailSender(
        service,
        organization=settings.organization_name,
        enabled=settings.email_enabled,
    )
