"""Runtime settings for the OTP login service.

All values come from the environment (optionally seeded from a .env file by
main.py). Env vars:
  PORT, HOST, OTP_EXPIRES_SECONDS, TOKEN_EXPIRES_SECONDS, OTP_RESEND_GRACE_SECONDS,
  OTP_MAX_ATTEMPTS, OTP_LENGTH, JANITOR_INTERVAL_SECONDS, USERS_FILE,
  SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_TIMEOUT_SECONDS,
  FROM_NAME, FROM_EMAIL, CORS_ORIGINS, FRONTEND_DIR, LOG_LEVEL
"""
import os
from typing import List, Optional


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Settings:
    def __init__(self):
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = _int_env("PORT", 3000)

        self.otp_expires_seconds = _int_env("OTP_EXPIRES_SECONDS", 300)
        self.token_expires_seconds = _int_env("TOKEN_EXPIRES_SECONDS", 900)
        self.otp_resend_grace_seconds = _int_env("OTP_RESEND_GRACE_SECONDS", 250)
        self.otp_max_attempts = _int_env("OTP_MAX_ATTEMPTS", 6)
        self.otp_length = _int_env("OTP_LENGTH", 6)
        self.janitor_interval_seconds = _int_env("JANITOR_INTERVAL_SECONDS", 60)

        self.users_file = os.getenv("USERS_FILE", "users.json")

        self.smtp_host: Optional[str] = os.getenv("SMTP_HOST") or None
        self.smtp_port = _int_env("SMTP_PORT", 587)
        self.smtp_user: Optional[str] = os.getenv("SMTP_USER") or None
        self.smtp_pass: Optional[str] = os.getenv("SMTP_PASS") or None
        self.smtp_timeout_seconds = _int_env("SMTP_TIMEOUT_SECONDS", 15)
        self.from_name = os.getenv("FROM_NAME", "No Reply")
        self.from_email = os.getenv("FROM_EMAIL") or self.smtp_user or "noreply@example.com"

        self.cors_origins: List[str] = [
            o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
        ]
        self.frontend_dir = os.getenv("FRONTEND_DIR", "frontend")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    def override(self, **values) -> "Settings":
        """Return self after replacing the given attributes (used by tests and scripts)."""
        for key, value in values.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)
        return self
