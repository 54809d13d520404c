"""Email service for account verification and password reset mails."""

import asyncio
import logging
import smtplib
import ssl
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from fastapi import Request

from app.core.config import Settings
from app.core.exceptions import InternalError

logger = logging.getLogger(__name__)


class EmailService:
    """Sends transactional emails through SMTP or, in development, the log.

    One instance is built per process in the application lifespan and handed
    to endpoints through `get_email_service`.
    """

    def __init__(
        self,
        backend: str,
        frontend_url: str,
        app_name: str,
        host: str = "",
        port: int = 587,
        user: str = "",
        password: str = "",
        from_email: str = "",
        from_name: str = "",
        use_tls: bool = True,
    ):
        self.backend = backend
        self.frontend_url = frontend_url.rstrip("/")
        self.app_name = app_name
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.use_tls = use_tls

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailService":
        return cls(
            backend=settings.EMAIL_BACKEND,
            frontend_url=settings.FRONTEND_URL,
            app_name=settings.APP_NAME,
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM_EMAIL,
            from_name=settings.SMTP_FROM_NAME,
            use_tls=settings.SMTP_TLS,
        )

    @property
    def is_configured(self) -> bool:
        """Check if email is properly configured."""
        if self.backend == "console":
            return True
        return bool(self.host and self.user)

    def _get_base_template(self, content: str, title: str) -> str:
        """Wrap content in base HTML template."""
        return f"""
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{title}</title>
    <style>
        body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #1a1a2e; background-color: #f5f5f5; }}
        .container {{ max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 8px; }}
        .header {{ background: #1e40af; color: white; padding: 24px; text-align: center; }}
        .content {{ padding: 24px; }}
        .footer {{ background-color: #f8f9fa; padding: 16px 24px; text-align: center; font-size: 12px; color: #6c757d; }}
        .button {{ display: inline-block; background: #1e40af; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>{title}</h1></div>
        <div class="content">{content}</div>
        <div class="footer">
            <p>&copy; {datetime.now().year} {self.app_name}</p>
        </div>
    </div>
</body>
</html>
"""

    def _build_message(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str],
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        if text_content:
            msg.attach(MIMEText(text_content, "plain", "utf-8"))
        msg.attach(MIMEText(html_content, "html", "utf-8"))
        return msg

    def _deliver_smtp(self, to_email: str, msg: MIMEMultipart) -> None:
        context = ssl.create_default_context()
        if self.use_tls:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls(context=context)
                server.login(self.user, self.password)
                server.sendmail(self.from_email, to_email, msg.as_string())
        else:
            with smtplib.SMTP_SSL(self.host, self.port, context=context) as server:
                server.login(self.user, self.password)
                server.sendmail(self.from_email, to_email, msg.as_string())

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body content
            text_content: Plain text fallback (optional)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured, skipping send")
            return False

        if self.backend == "console":
            logger.info(
                "Email (console backend)",
                extra={"to": to_email, "subject": subject, "body": text_content or ""},
            )
            return True

        try:
            msg = self._build_message(to_email, subject, html_content, text_content)
            await asyncio.to_thread(self._deliver_smtp, to_email, msg)
            logger.info(f"Email sent successfully to {to_email}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    async def send_verification_email(self, to_email: str, token: str) -> bool:
        verify_url = f"{self.frontend_url}/verify-email?token={token}"
        content = f"""
        <h2>Welcome to {self.app_name}!</h2>
        <p>Please confirm your email address to activate your account.</p>
        <div style="text-align: center; margin: 24px 0;">
            <a href="{verify_url}" class="button">Verify my email</a>
        </div>
        <p>If you did not create an account, you can ignore this email.</p>
        """
        return await self.send_email(
            to_email=to_email,
            subject=f"[{self.app_name}] Verify your email address",
            html_content=self._get_base_template(content, "Verify your email"),
            text_content=f"Verify your email address: {verify_url}",
        )

    async def send_password_reset_email(self, to_email: str, token: str) -> bool:
        reset_url = f"{self.frontend_url}/reset-password?token={token}"
        content = f"""
        <h2>Password reset</h2>
        <p>You asked to reset your password.</p>
        <div style="text-align: center; margin: 24px 0;">
            <a href="{reset_url}" class="button">Reset my password</a>
        </div>
        <p>If you did not make this request, you can ignore this email.</p>
        """
        return await self.send_email(
            to_email=to_email,
            subject=f"[{self.app_name}] Reset your password",
            html_content=self._get_base_template(content, "Reset your password"),
            text_content=f"Reset your password: {reset_url}",
        )


def get_email_service(request: Request) -> EmailService:
    """Dependency returning the process-wide email service."""
    service = getattr(request.app.state, "email_service", None)
    if service is None:
        raise InternalError("Email service is not available")
    return service
