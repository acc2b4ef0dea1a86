"""
EmailService - Abstraction for email functionality
Provides a clean interface for sending emails with proper dependency injection
"""

from typing import Optional, List, Tuple
from dataclasses import dataclass
from flask_mail import Mail, Message
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class EmailConfig:
    """Email configuration container"""
    server: Optional[str]
    port: int = 587
    use_tls: bool = True
    use_ssl: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    default_sender: str = "noreply@example.com"
    suppress_send: bool = False


@dataclass
class EmailMessage:
    """Email message data structure"""
    subject: str
    recipients: List[str]
    body_text: str
    body_html: Optional[str] = None
    sender: Optional[str] = None
    reply_to: Optional[str] = None


class EmailService:
    """Service for handling email operations"""

    def __init__(self, mail_client: Optional[Mail] = None, config: Optional[EmailConfig] = None,
                 app_name: str = "LeadNudge"):
        """
        Initialize Email Service

        Args:
            mail_client: Flask-Mail instance already bound to the app
            config: Email configuration
            app_name: Product name used in subjects and bodies
        """
        self.mail_client = mail_client
        self.config = config
        self.app_name = app_name

    def is_configured(self) -> bool:
        """
        Check if email service is properly configured

        Suppressed sending (development/testing) counts as configured so that
        Flask-Mail records messages in its outbox instead of failing.
        """
        if not self.mail_client or not self.config:
            return False
        return bool(self.config.server) or self.config.suppress_send

    def send_email(self, message: EmailMessage) -> Tuple[bool, str]:
        """
        Send an email message

        Args:
            message: EmailMessage object containing email details

        Returns:
            Tuple of (success: bool, message: str)
        """
        if not self.is_configured():
            logger.warning("Attempted to send email but service not configured")
            return False, "Email service not configured"

        try:
            msg = Message(
                subject=message.subject,
                recipients=message.recipients,
                body=message.body_text,
                html=message.body_html,
                sender=message.sender or self.config.default_sender
            )
            if message.reply_to:
                msg.reply_to = message.reply_to

            self.mail_client.send(msg)

            logger.info(
                "Email sent successfully",
                subject=message.subject,
                recipients=message.recipients
            )
            return True, "Email sent successfully"

        except Exception as e:
            logger.error(
                "Failed to send email",
                error=str(e),
                subject=message.subject,
                recipients=message.recipients
            )
            return False, f"Failed to send email: {str(e)}"

    def send_invitation_email(self,
                              email: str,
                              invite_url: str,
                              role: str,
                              organization_name: str,
                              inviter_name: str,
                              expires_days: int = 7) -> Tuple[bool, str]:
        """
        Send an organization invitation

        Args:
            email: Recipient email address
            invite_url: URL for accepting the invitation
            role: Role being granted
            organization_name: Organization the recipient is joining
            inviter_name: Display name of the admin who sent it
            expires_days: Days until invitation expires

        Returns:
            Tuple of (success: bool, message: str)
        """
        html_body = f"""
        <h2>You've been invited to join {organization_name} on {self.app_name}</h2>
        <p>{inviter_name} invited you to join as a {role}.</p>
        <p><a href="{invite_url}" style="background-color: #2563eb; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; display: inline-block;">Accept Invitation</a></p>
        <p>This invitation will expire in {expires_days} days.</p>
        <p>If you didn't expect this invitation, you can ignore this email.</p>
        """

        text_body = f"""
        You've been invited to join {organization_name} on {self.app_name}

        {inviter_name} invited you to join as a {role}.

        Accept the invitation here:
        {invite_url}

        This invitation will expire in {expires_days} days.

        If you didn't expect this invitation, you can ignore this email.
        """

        message = EmailMessage(
            subject=f"You're invited to join {organization_name} on {self.app_name}",
            recipients=[email],
            body_text=text_body,
            body_html=html_body
        )

        return self.send_email(message)
