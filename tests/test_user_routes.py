"""HTTP tests for /register, /exists, /me and /ping."""
import json

from services.errors import DirectoryError


def _users_on_disk(settings):
    with open(settings.users_file) as f:
        return json.load(f)


def test_end_to_end_registration(client, services, settings):
    assert client.post("/send-otp", json={"email": "a@x.com"}).status_code == 200
    code = services.otp.store.get("a@x.com")["otp"]

    resp = client.post("/verify-otp", json={"email": "a@x.com", "code": code})
    token = resp.json()["token"]

    resp = client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token})
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["name"] == "Alice"
    assert user["email"] == "a@x.com"
    assert len(user["id"]) == 16
    assert isinstance(user["createdAt"], int)

    assert _users_on_disk(settings) == [user]

    resp = client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid or expired token"


def test_register_requires_all_fields(client, login):
    token = login("a@x.com")
    for body in (
        {"email": "a@x.com", "token": token},
        {"name": "Alice", "token": token},
        {"name": "Alice", "email": "a@x.com"},
        {"name": " ", "email": "a@x.com", "token": token},
    ):
        resp = client.post("/register", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Name, email and token required"


def test_register_with_unknown_token(client):
    resp = client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": "f" * 40})
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_token"


def test_register_token_must_match_email_exactly(client, login):
    token = login("a@x.com")
    for email in ("b@x.com", "A@x.com"):
        resp = client.post("/register", json={"name": "Alice", "email": email, "token": token})
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_token"


def test_register_rejects_expired_token(client, login, clock):
    token = login("a@x.com")
    clock.advance(901)
    resp = client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid or expired token"


def test_duplicate_email_in_any_case_is_rejected(client, login, settings):
    token = login("a@x.com")
    assert client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token}).status_code == 200

    token = login("A@X.COM")
    resp = client.post("/register", json={"name": "Other", "email": "A@X.COM", "token": token})
    assert resp.status_code == 400
    assert resp.json() == {"ok": False, "error": "User already exists", "code": "user_exists"}
    assert len(_users_on_disk(settings)) == 1


def test_persistence_failure_keeps_token_for_retry(client, login, services, monkeypatch):
    token = login("a@x.com")
    assert client.post("/exists", json={"email": "a@x.com"}).status_code == 200  # creates the file

    def broken_write(users):
        raise DirectoryError("disk full")

    monkeypatch.setattr(services.users, "_write", broken_write)
    resp = client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to save user"
    assert "disk full" not in resp.text
    assert services.tokens.resolve(token) == "a@x.com"

    monkeypatch.undo()
    resp = client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token})
    assert resp.status_code == 200


def test_exists(client, login):
    resp = client.post("/exists", json={"email": "a@x.com"})
    assert resp.json() == {"ok": True, "exists": False}

    token = login("a@x.com")
    client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token})

    resp = client.post("/exists", json={"email": "A@X.com"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "exists": True}


def test_exists_requires_email(client):
    resp = client.post("/exists", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Email required"


def test_exists_with_corrupt_directory(client, settings):
    with open(settings.users_file, "w") as f:
        f.write("{not json")
    resp = client.post("/exists", json={"email": "a@x.com"})
    assert resp.status_code == 500
    assert resp.json()["code"] == "persistence_failure"


def test_me_requires_token(client):
    resp = client.get("/me")
    assert resp.status_code == 401
    assert resp.json()["error"] == "Token required"


def test_me_with_unknown_token(client):
    resp = client.get("/me", headers={"x-auth-token": "deadbeef"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


def test_me_before_registration_is_404(client, login):
    token = login("a@x.com")
    resp = client.get("/me", headers={"x-auth-token": token})
    assert resp.status_code == 404
    assert resp.json()["error"] == "User not found"


def test_me_returns_registered_user(client, login):
    token = login("a@x.com")
    user = client.post("/register", json={"name": "Alice", "email": "a@x.com", "token": token}).json()["user"]

    # the registration token is consumed; a later login yields a fresh one
    assert client.get("/me", headers={"x-auth-token": token}).status_code == 401

    token = login("A@x.com")
    resp = client.get("/me", headers={"x-auth-token": token})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "user": user}

    resp = client.get("/me", params={"token": token})
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user["id"]


def test_me_token_expires(client, login, clock):
    token = login("a@x.com")
    clock.advance(901)
    assert client.get("/me", params={"token": token}).status_code == 401


def test_unknown_route_is_json_404(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json()["ok"] is False


def test_ping_reports_store_sizes(client, login):
    login("a@x.com")
    client.post("/send-otp", json={"email": "b@x.com"})
    body = client.get("/ping").json()
    assert body["status"] == "healthy"
    assert body["pending_otps"] == 1
    assert body["live_tokens"] == 1


def test_ping_skips_mail_check_by_default(client):
    assert "mail_connection" not in client.get("/ping").json()


def test_ping_can_check_mail_connection(client, mailer):
    resp = client.get("/ping", params={"check_mail": "true"})
    assert resp.status_code == 200
    assert resp.json()["mail_connection"] == "ok"

    mailer.fail = True
    assert client.get("/ping", params={"check_mail": "true"}).json()["mail_connection"].startswith("failed:")


def test_ping_mail_check_in_dev_mode(settings, clock):
    from fastapi.testclient import TestClient
    from main import create_app
    from services.container import ServiceContainer

    settings.override(smtp_host=None)
    dev_client = TestClient(create_app(settings, ServiceContainer(settings, clock=clock)))
    body = dev_client.get("/ping", params={"check_mail": "true"}).json()
    assert body["mail_enabled"] is False
    assert body["mail_connection"] == "SMTP not fully configured"
