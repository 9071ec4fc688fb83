"""OTP Service - issues and verifies email one-time passcodes.

One live challenge per email: {"otp", "expires_at", "attempts"} stored in an
injected ExpiringStore keyed by the exact email string.
"""
import hmac
import logging
import math
import secrets
import time
from typing import Callable

from services.errors import (
    Expired,
    MailDeliveryError,
    NotFound,
    RateLimited,
    UpstreamFailure,
    ValidationFailed,
)
from services.store import ExpiringStore

logger = logging.getLogger(__name__)


def generate_otp(length: int = 6) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


class OTPService:
    def __init__(
        self,
        store: ExpiringStore,
        mailer,
        ttl_seconds: int = 300,
        resend_grace_seconds: int = 250,
        max_attempts: int = 6,
        length: int = 6,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.mailer = mailer
        self.ttl_seconds = ttl_seconds
        self.resend_grace_seconds = resend_grace_seconds
        self.max_attempts = max_attempts
        self.length = length
        self.clock = clock

    def check_resend_allowed(self, email: str) -> None:
        existing = self.store.get(email)
        now = self.clock()
        if existing and existing["expires_at"] > now:
            secs_left = math.ceil(existing["expires_at"] - now)
            if secs_left > self.ttl_seconds - self.resend_grace_seconds:
                logger.info(f"OTP resend refused for {email} ({secs_left}s left)")
                raise RateLimited("Try again later")

    def create_challenge(self, email: str) -> dict:
        challenge = {
            "otp": generate_otp(self.length),
            "expires_at": self.clock() + self.ttl_seconds,
            "attempts": 0,
        }
        self.store.set(email, challenge)
        return challenge

    async def issue(self, email: str) -> dict:
        """Create a fresh challenge for ``email`` and mail the code.

        A delivery failure discards the new challenge so no unsent code stays live.
        """
        if not email:
            raise ValidationFailed("Email required")
        self.check_resend_allowed(email)
        challenge = self.create_challenge(email)
        try:
            await self.mailer.send_otp_email(email, challenge["otp"], self.ttl_seconds)
        except MailDeliveryError:
            # only drop it if a concurrent issue has not replaced it meanwhile
            current = self.store.get(email)
            if current and current["otp"] == challenge["otp"] and current["expires_at"] == challenge["expires_at"]:
                self.store.delete(email)
            raise UpstreamFailure("Failed to send email", code="mail_failure")
        logger.info(f"OTP issued for {email}")
        return challenge

    def verify(self, email: str, otp: str) -> None:
        """Consume the challenge for ``email`` if ``otp`` matches; raise otherwise."""
        if not email or not otp:
            raise ValidationFailed("Email and OTP required")
        data = self.store.get(email)
        if not data:
            raise NotFound("No OTP requested or already used", code="no_challenge")

        if self.clock() > data["expires_at"]:
            self.store.delete(email)
            raise Expired("OTP expired", code="otp_expired")

        data["attempts"] = data.get("attempts", 0) + 1
        self.store.set(email, data)
        if data["attempts"] > self.max_attempts:
            self.store.delete(email)
            logger.warning(f"Too many OTP attempts for {email}; challenge dropped")
            raise RateLimited("Too many attempts", code="too_many_attempts")

        if not hmac.compare_digest(otp.encode("utf-8"), data["otp"].encode("utf-8")):
            raise ValidationFailed("Invalid OTP", code="invalid_otp")

        self.store.delete(email)

    def sweep(self) -> int:
        return self.store.sweep(self.clock())
