"""Email service for sending chat notifications."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.core.config import settings

logger = logging.getLogger(__name__)

HEADER_BG = "#0a235a"
MERCHANT_ACCENT = "#0a235a"
CUSTOMER_ACCENT = "#28a745"


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self):
        """Initialize email service with SMTP configuration."""
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.from_email = settings.email_from or settings.smtp_user

    def _validate_config(self) -> bool:
        """Validate email configuration."""
        if not all([self.smtp_host, self.smtp_user, self.smtp_password]):
            logger.warning("Email service not configured properly")
            return False
        return True

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            text_content: Plain text content (fallback)

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self._validate_config():
            logger.error("Cannot send email - configuration invalid")
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.from_email
            msg["To"] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, "plain", "utf-8"))
            msg.attach(MIMEText(html_content, "html", "utf-8"))

            logger.info(f"Sending email to {to_email} with subject: {subject}")

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            logger.info(f"✅ Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"❌ SMTP authentication failed: {str(e)}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"❌ SMTP error sending email: {str(e)}")
            return False
        except OSError as e:
            logger.error(f"❌ Could not reach SMTP server: {str(e)}")
            return False

    def send_chat_notification(
        self,
        to_email: str,
        to_name: str,
        from_name: str,
        product_name: str,
        message_content: str,
        conversation_id: int,
        recipient_role: str,
    ) -> bool:
        """Notify a chat participant that the other side sent a message.

        Args:
            to_email: Recipient email address
            to_name: Recipient display name
            from_name: Sender display name
            product_name: Product the conversation is about
            message_content: The message body
            conversation_id: Conversation to link back to
            recipient_role: ``merchant`` or ``customer``

        Returns:
            True if email sent successfully, False otherwise
        """
        subject = self.chat_notification_subject(from_name, product_name, recipient_role)
        html_content = self._generate_chat_html(
            to_name, from_name, product_name, message_content, conversation_id, recipient_role
        )
        text_content = self._generate_chat_text(
            to_name, from_name, product_name, message_content, conversation_id, recipient_role
        )
        return self.send_email(to_email, subject, html_content, text_content)

    @staticmethod
    def chat_notification_subject(from_name: str, product_name: str, recipient_role: str) -> str:
        if recipient_role == "merchant":
            return f'{settings.shop_name} | 💬 New message from {from_name} about "{product_name}"'
        return f'{settings.shop_name} | 💬 {from_name} replied about "{product_name}"'

    @staticmethod
    def conversation_url(conversation_id: int) -> str:
        return f"{settings.frontend_url.rstrip('/')}/chat/{conversation_id}"

    def _generate_chat_html(
        self,
        to_name: str,
        from_name: str,
        product_name: str,
        message_content: str,
        conversation_id: int,
        recipient_role: str,
    ) -> str:
        """Generate HTML content for a chat notification email."""
        if recipient_role == "merchant":
            heading = "💬 New Customer Message"
            lead = "sent you a message about"
            accent = MERCHANT_ACCENT
            button = "Reply to Customer"
        else:
            heading = "💬 You have a new reply!"
            lead = "replied to your enquiry about"
            accent = CUSTOMER_ACCENT
            button = "View Conversation"

        return f"""
        <html><body style="font-family: Arial, sans-serif; color: #333;">
          <div style="max-width:600px; margin:auto; border:1px solid #ddd; border-radius:8px; overflow:hidden;">
            <div style="background:{HEADER_BG}; padding:20px; color:white;">
              <h2 style="margin:0;">{heading}</h2>
              <p style="margin:4px 0 0; opacity:0.7; font-size:13px;">{escape(settings.shop_name)}</p>
            </div>
            <div style="padding:24px;">
              <p>Hi <strong>{escape(to_name)}</strong>,</p>
              <p><strong>{escape(from_name)}</strong> {lead} <strong>"{escape(product_name)}"</strong>:</p>
              <div style="background:#f5f5f5; padding:16px; border-left:4px solid {accent}; border-radius:4px; margin:16px 0;">
                <p style="margin:0; font-size:15px;">"{escape(message_content)}"</p>
              </div>
              <a href="{self.conversation_url(conversation_id)}"
                 style="background:{accent}; color:white; padding:12px 24px; border-radius:6px;
                        text-decoration:none; display:inline-block; margin-top:8px;">
                {button}
              </a>
            </div>
            <div style="padding:12px 24px; background:#f9f9f9; color:#888; font-size:12px;">
              {escape(settings.shop_name)} | Your Trusted Laptop &amp; Accessories Store
            </div>
          </div>
        </body></html>
        """

    def _generate_chat_text(
        self,
        to_name: str,
        from_name: str,
        product_name: str,
        message_content: str,
        conversation_id: int,
        recipient_role: str,
    ) -> str:
        """Generate plain text content for a chat notification email."""
        lead = "sent you a message about" if recipient_role == "merchant" else "replied to your enquiry about"

        text = f"Hi {to_name},\n\n"
        text += f'{from_name} {lead} "{product_name}":\n\n'
        text += f'  "{message_content}"\n\n'
        text += "=" * 50 + "\n"
        text += f"Open the conversation: {self.conversation_url(conversation_id)}\n"
        return text


# Create singleton instance
email_service = EmailService()
