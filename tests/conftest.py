import copy

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from services.container import ServiceContainer
from services.errors import MailDeliveryError
from services.store import MemoryStore


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeMailer:
    enabled = True

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_otp_email(self, to_email, otp, ttl_seconds):
        if self.fail:
            raise MailDeliveryError("relay unavailable")
        self.sent.append({"to": to_email, "otp": otp, "ttl": ttl_seconds})
        return True

    def test_connection(self):
        return "failed: relay unavailable" if self.fail else "ok"

    def last_code(self, email):
        for msg in reversed(self.sent):
            if msg["to"] == email:
                return msg["otp"]
        return None


class CopyingStore(MemoryStore):
    """Hands out copies, the way an external cache would."""

    def get(self, key):
        return copy.deepcopy(super().get(key))


@pytest.fixture(params=[MemoryStore, CopyingStore], ids=["memory", "copying"])
def store_cls(request):
    return request.param


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def settings(tmp_path):
    return Settings().override(
        users_file=str(tmp_path / "users.json"),
        frontend_dir="",
        otp_expires_seconds=300,
        token_expires_seconds=900,
        otp_resend_grace_seconds=250,
        otp_max_attempts=6,
        otp_length=6,
        cors_origins=["*"],
    )


@pytest.fixture
def services(settings, mailer, clock, store_cls):
    return ServiceContainer(
        settings,
        mailer=mailer,
        otp_store=store_cls(),
        token_store=store_cls(),
        clock=clock,
    )


@pytest.fixture
def client(settings, services):
    return TestClient(create_app(settings, services))


@pytest.fixture
def login(client, mailer):
    """Run send-otp + verify-otp for an email and return the session token."""
    def _login(email):
        resp = client.post("/send-otp", json={"email": email})
        assert resp.status_code == 200, resp.text
        resp = client.post("/verify-otp", json={"email": email, "code": mailer.last_code(email)})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]
    return _login
