"""Session tokens minted after a successful OTP verification."""
import secrets
import time
from typing import Callable, Optional

from services.store import ExpiringStore


def generate_token() -> str:
    return secrets.token_hex(20)


class TokenService:
    def __init__(self, store: ExpiringStore, ttl_seconds: int = 900, clock: Callable[[], float] = time.time):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def mint(self, email: str) -> str:
        token = generate_token()
        self.store.set(token, {"email": email, "expires_at": self.clock() + self.ttl_seconds})
        return token

    def resolve(self, token: str) -> Optional[str]:
        """Email bound to a live token, or None. Expired tokens are dropped on sight."""
        if not token:
            return None
        mapping = self.store.get(token)
        if not mapping:
            return None
        if mapping["expires_at"] <= self.clock():
            self.store.delete(token)
            return None
        return mapping["email"]

    def revoke(self, token: str) -> bool:
        return self.store.delete(token)

    def sweep(self) -> int:
        return self.store.sweep(self.clock())
