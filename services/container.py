"""Wires the lifecycle services together for one application instance."""
import time
from typing import Callable, Optional

from services.email_service import EmailService
from services.janitor import Janitor
from services.otp_service import OTPService
from services.store import ExpiringStore, MemoryStore
from services.token_service import TokenService
from services.user_directory import UserDirectory


class ServiceContainer:
    def __init__(
        self,
        settings,
        mailer=None,
        otp_store: Optional[ExpiringStore] = None,
        token_store: Optional[ExpiringStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.mailer = mailer or EmailService(settings)
        self.otp = OTPService(
            otp_store or MemoryStore(),
            self.mailer,
            ttl_seconds=settings.otp_expires_seconds,
            resend_grace_seconds=settings.otp_resend_grace_seconds,
            max_attempts=settings.otp_max_attempts,
            length=settings.otp_length,
            clock=clock,
        )
        self.tokens = TokenService(
            token_store or MemoryStore(),
            ttl_seconds=settings.token_expires_seconds,
            clock=clock,
        )
        self.users = UserDirectory(settings.users_file)
        self.janitor = Janitor(self.otp, self.tokens, interval_seconds=settings.janitor_interval_seconds)
