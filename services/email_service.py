"""Email Service for OTP delivery over an SMTP relay.

If SMTP_HOST is not configured the service runs in dev mode and logs the OTP
instead of sending an email.

Env vars (read through config.Settings):
  SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_TIMEOUT_SECONDS, FROM_NAME, FROM_EMAIL
"""
import asyncio
import logging
import math
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from services.errors import MailDeliveryError

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your verification code"


def expiry_minutes(ttl_seconds: int) -> int:
    return math.ceil(ttl_seconds / 60)


def build_otp_message(sender: str, to_email: str, otp: str, ttl_seconds: int) -> MIMEMultipart:
    minutes = expiry_minutes(ttl_seconds)
    text = f"Your verification code is: {otp}. It expires in {minutes} minutes."
    html = f"""<div style="font-family:Arial,Helvetica,sans-serif">
  <h3>Verify your identity</h3>
  <p>Your verification code is:</p>
  <div style="font-size:22px;font-weight:700;letter-spacing:4px;background:#111;padding:8px;border-radius:6px;display:inline-block;color:#fff">{otp}</div>
  <p style="color:#666">It expires in {minutes} minutes.</p>
</div>"""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = OTP_SUBJECT
    msg["From"] = sender
    msg["To"] = to_email
    msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html, "html"))
    return msg


class EmailService:
    def __init__(self, settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_pass
        self.timeout = settings.smtp_timeout_seconds
        self.sender = formataddr((settings.from_name, settings.from_email))

    @property
    def enabled(self) -> bool:
        return bool(self.host) and self.port > 0

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
        if self.user and self.password:
            server.login(self.user, self.password)
        return server

    def send_otp_email_sync(self, to_email: str, otp: str, ttl_seconds: int) -> bool:
        """Blocking send. Returns True if a real email went out, False in dev mode."""
        if not self.enabled:
            logger.warning(f"Dev mode (no SMTP configured). OTP for {to_email}: {otp}")
            return False
        msg = build_otp_message(self.sender, to_email, otp, ttl_seconds)
        try:
            with self._connect() as server:
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed sending OTP email to {to_email}: {e}")
            raise MailDeliveryError(str(e)) from e
        logger.info(f"Sent OTP email to {to_email}")
        return True

    async def send_otp_email(self, to_email: str, otp: str, ttl_seconds: int) -> bool:
        return await asyncio.to_thread(self.send_otp_email_sync, to_email, otp, ttl_seconds)

    def test_connection(self) -> Optional[str]:
        """Attempt a lightweight SMTP connection to verify credentials."""
        if not self.enabled:
            return "SMTP not fully configured"
        try:
            with self._connect():
                pass
            return "ok"
        except (smtplib.SMTPException, OSError) as e:
            return f"failed: {e}"
