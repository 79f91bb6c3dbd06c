from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine
from starlette.websockets import WebSocketDisconnect

from seekers_api.database import get_session
from seekers_api.main import app
from seekers_api.routers.deps import (
    build_chat_services,
    get_chat_services_factory,
    get_email_sender,
    get_password_hasher,
)
from tests.fakes import FakeEmailSender, FakeHasher


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def client(email_sender):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)

    def override_session():
        with Session(engine) as session:
            yield session

    @contextmanager
    def scope():
        with Session(engine) as session:
            yield build_chat_services(session)

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_password_hasher] = lambda: FakeHasher()
    app.dependency_overrides[get_chat_services_factory] = lambda: scope
    yield TestClient(app)
    app.dependency_overrides.clear()
    SQLModel.metadata.drop_all(engine)


def register(client, email_sender, email, name="Alice"):
    res = client.post("/auth/signup", json={
        "account_type": "Client",
        "display_name": name,
        "email": email,
        "city": "Paris",
        "password": "secret123",
    })
    assert res.status_code == 201, res.text
    res = client.post("/auth/verify-otp", json={"email": email, "otp": email_sender.last_otp})
    assert res.status_code == 200, res.text
    client.cookies.clear()
    data = res.json()["data"]
    return data["user"]["id"], {"Authorization": f"Bearer {data['token']}"}


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["service"] == "Seekers API"


def test_signup_verify_sets_cookie_and_me(client, email_sender):
    res = client.post("/auth/signup", json={
        "account_type": "Creator",
        "display_name": "Alice",
        "email": "  Alice@X.com ",
        "city": "Paris",
        "password": "secret123",
    })
    assert res.status_code == 201
    assert res.json()["data"]["email"] == "alice@x.com"
    assert email_sender.sent[0]["to"] == "alice@x.com"

    res = client.post("/auth/verify-otp", json={"email": "alice@x.com", "otp": email_sender.last_otp})
    body = res.json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "Creator"
    assert "session" in res.cookies

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "alice@x.com"

    out = client.post("/auth/logout")
    assert out.json()["message"] == "Logged out successfully."


def test_error_envelopes(client, email_sender):
    res = client.post("/auth/signup", json={"email": "nope", "password": "x"})
    assert res.status_code == 400
    assert res.json()["error"] == "VALIDATION_FAILED"
    assert res.json()["success"] is False

    res = client.get("/chat/conversations")
    assert res.status_code == 401
    assert res.json()["error"] == "AUTHENTICATION_REQUIRED"

    res = client.get("/chat/conversations", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["error"] == "INVALID_TOKEN"

    client.post("/auth/signup", json={
        "account_type": "Client", "display_name": "Bob", "email": "bob@x.com", "city": "Rome", "password": "secret123",
    })
    res = client.post("/auth/resend-otp", json={"email": "bob@x.com"})
    assert res.status_code == 429
    body = res.json()
    assert body["error"] == "OTP_COOLDOWN_WAIT"
    assert body["minutes_left"] == 5
    assert body["data"] is None


def test_login_requires_second_step(client, email_sender):
    register(client, email_sender, "alice@x.com")
    res = client.post("/auth/login", json={"email": "alice@x.com", "password": "secret123"})
    assert res.status_code == 200
    assert res.json()["message"].startswith("Login OTP sent")
    assert "token" not in (res.json()["data"] or {})

    res = client.post("/auth/verify-login-otp", json={"email": "alice@x.com", "otp": email_sender.last_otp})
    assert res.status_code == 200
    assert res.json()["data"]["token"]


def test_chat_flow_over_http(client, email_sender):
    alice_id, alice = register(client, email_sender, "alice@x.com", "Alice")
    bob_id, bob = register(client, email_sender, "bob@x.com", "Bob")

    res = client.post("/chat/send", json={"receiver_id": bob_id, "content": "hi"}, headers=alice)
    assert res.status_code == 403
    assert res.json()["error"] == "CHAT_NOT_ALLOWED"

    res = client.post("/chat/request/send", json={"receiver_id": bob_id, "message": "hey"}, headers=alice)
    assert res.status_code == 201
    request_id = res.json()["data"]["id"]

    pending = client.get("/chat/request/pending", headers=bob).json()["data"]
    assert pending["pagination"]["total"] == 1
    assert pending["requests"][0]["sender"]["name"] == "Alice"

    res = client.post(f"/chat/request/{request_id}/accept", headers=bob)
    assert res.status_code == 200
    conversation_id = res.json()["data"]["conversation_id"]

    res = client.post("/chat/send", json={"receiver_id": bob_id, "content": "hi"}, headers=alice)
    assert res.status_code == 201
    assert res.json()["data"]["conversation_id"] == conversation_id

    conversations = client.get("/chat/conversations", headers=bob).json()["data"]["conversations"]
    assert conversations[0]["last_message"] == "hi"
    assert conversations[0]["other_user"]["id"] == alice_id

    assert client.get("/chat/unread-count", headers=bob).json()["data"]["unread_count"] == 1
    res = client.put(f"/chat/conversations/{conversation_id}/read", headers=bob)
    assert len(res.json()["data"]["message_ids"]) == 1
    assert client.get("/chat/unread-count", headers=bob).json()["data"]["unread_count"] == 0

    found = client.get(f"/chat/conversations/{conversation_id}/search", params={"q": "HI"}, headers=bob).json()
    assert found["data"]["pagination"]["total"] == 1


def test_socket_handshake_requires_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/chat"):
            pass


def test_socket_check_online(client, email_sender):
    alice_id, alice = register(client, email_sender, "alice@x.com")
    token = alice["Authorization"].split(" ", 1)[1]

    with client.websocket_connect(f"/ws/chat?token={token}") as ws:
        ws.send_json({"event": "check_online", "data": {"user_ids": [alice_id, 999]}})
        frame = ws.receive_json()
        assert frame == {"event": "online_status", "data": {"online_users": [alice_id]}}


def test_verify_otp_rejects_non_ascii_digits(client, email_sender):
    client.post("/auth/signup", json={
        "account_type": "Client", "display_name": "Bob", "email": "bob@x.com", "city": "Rome", "password": "secret123",
    })
    res = client.post("/auth/verify-otp", json={"email": "bob@x.com", "otp": "١٢٣٤٥٦"})
    assert res.status_code == 400
    assert res.json()["error"] == "VALIDATION_FAILED"
