import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr
from html import escape

from assetminder.core.config import settings
from assetminder.reminders.errors import SendError
from assetminder.reminders.messages import ReminderMessage

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self):
        # Validate required email configuration
        if not settings.SMTP_SERVER:
            raise ValueError("SMTP_SERVER is required but not configured")
        if not settings.SMTP_USERNAME:
            raise ValueError("SMTP_USERNAME is required but not configured")
        if not settings.SMTP_PASSWORD:
            raise ValueError("SMTP_PASSWORD is required but not configured")
        if not settings.FROM_EMAIL:
            raise ValueError("FROM_EMAIL is required but not configured")

        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = int(settings.SMTP_PORT)
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME
        self.timeout = 30

    def send_reminder_email(self, to_email: str, message: ReminderMessage) -> bool:
        """
        Send a reminder email (HTML with a plain text alternative).
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.email_subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to_email

        msg.attach(MIMEText(self._create_reminder_email_text(message), "plain"))
        msg.attach(MIMEText(self._create_reminder_email_html(message), "html"))

        return self._send_email(msg, to_email)

    def _create_reminder_email_html(self, message: ReminderMessage) -> str:
        """Create HTML email content"""
        paragraphs = "\n".join(f"<p>{p}</p>" for p in message.email_html_paragraphs)
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
            <title>{escape(message.email_subject)}</title>
        </head>
        <body>
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2 style="color: #333;">{escape(message.email_heading)}</h2>
                <p>Hello,</p>
                {paragraphs}
                <div style="margin-top: 20px; padding: 15px; background-color: #f5f5f5; border-radius: 5px;">
                    <p style="margin: 0; font-size: 14px; color: #666;">{escape(message.email_note)}</p>
                </div>
            </div>
        </body>
        </html>
        """

    def _create_reminder_email_text(self, message: ReminderMessage) -> str:
        """Create plain text email content"""
        lines = [message.email_heading, "", "Hello,", ""]
        for paragraph in message.email_text_paragraphs:
            lines.append(paragraph)
            lines.append("")
        lines.append(message.email_note)
        return "\n".join(lines)

    def _send_email(self, msg: MIMEMultipart, to_email: str) -> bool:
        """Send email using SMTP"""
        # Zoho requires FROM_EMAIL to match SMTP_USERNAME
        if "zoho" in self.smtp_server.lower() and self.from_email != self.smtp_username:
            logger.warning(
                f"[Email] FROM_EMAIL ({self.from_email}) does not match SMTP_USERNAME "
                f"({self.smtp_username}); using the authenticated user as sender"
            )
            msg.replace_header("From", formataddr((self.from_name, self.smtp_username)))

        try:
            context = ssl.create_default_context()
            if self.smtp_port == 465:
                # SSL connection for port 465 (like Zoho)
                with smtplib.SMTP_SSL(self.smtp_server, self.smtp_port, context=context, timeout=self.timeout) as server:
                    server.login(self.smtp_username, self.smtp_password)
                    server.send_message(msg)
            else:
                # STARTTLS for port 587 (like Gmail and Zoho)
                with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    server.login(self.smtp_username, self.smtp_password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[Email] SMTP error sending to {to_email}: {e}")
            raise SendError(f"SMTP error: {e}") from e

        logger.info(f"[Email] Sent to {to_email}")
        return True
