"""Registration, verification, login and password reset."""
from datetime import datetime, timedelta

from ladder.models.ladder import Ladder
from ladder.models.user import User
from ladder.services.notifications import PASSWORD_RESET_OTP, VERIFY_EMAIL

PASSWORD = "password123"


def _register(client, email="new@example.com", **fields):
    return client.post("/api/auth/register", json={"email": email, "password": PASSWORD, **fields})


def test_register_queues_verification_email(client, session, ladder, notifier):
    response = _register(client, email="New@Example.com", name="Nia", phone="07123 456789")

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["ladderId"] == ladder.id
    assert notifier.kinds() == [VERIFY_EMAIL]

    user = session.get(User, body["user"]["id"])
    assert user.phone == "+447123456789"
    assert user.email_verified is False
    assert notifier.events[0].context["token"] == user.email_verification_token


def test_register_defaults_to_bottom_ladder(client, session, ladder):
    bottom = Ladder(name="Ladder 4", number=4, end_date=datetime(2025, 12, 31))
    session.add(bottom)
    session.commit()
    assert _register(client).json()["user"]["ladderId"] == bottom.id


def test_register_rejects_duplicates_and_short_passwords(client, ladder, make_user):
    make_user("taken@example.com", ladder=ladder)
    duplicate = _register(client, email="taken@example.com")
    assert duplicate.status_code == 400
    assert duplicate.json() == {"error": "User already exists"}

    short = client.post("/api/auth/register", json={"email": "x@example.com", "password": "abc"})
    assert short.status_code == 400


def test_login_requires_verified_email(client, ladder, make_user):
    make_user("pending@example.com", ladder=ladder, verified=False)
    response = client.post("/api/auth/login", json={"email": "pending@example.com", "password": PASSWORD})
    assert response.status_code == 403


def test_verify_then_login_sets_session_cookie(client, session, ladder, notifier):
    _register(client)
    token = notifier.events[0].context["token"]

    verified = client.get("/api/auth/verify-email", params={"token": token})
    assert verified.status_code == 200
    assert verified.json()["email"] == "new@example.com"

    login = client.post("/api/auth/login", json={"email": "new@example.com", "password": PASSWORD})
    assert login.status_code == 200
    assert login.json()["token"]
    assert "ladder_session" in login.cookies

    # The cookie alone authenticates.
    profile = client.get("/api/profile/info")
    assert profile.status_code == 200
    assert profile.json()["email"] == "new@example.com"

    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/profile/info").status_code == 401


def test_verify_rejects_unknown_and_expired_tokens(client, session, ladder, make_user):
    assert client.get("/api/auth/verify-email", params={"token": "nope"}).status_code == 400

    make_user(
        "late@example.com",
        ladder=ladder,
        verified=False,
        email_verification_token="old-token",
        email_verification_expiry=datetime(2025, 5, 1),
    )
    response = client.get("/api/auth/verify-email", params={"token": "old-token"})
    assert response.status_code == 400
    assert response.json() == {"error": "Verification token has expired"}


def test_wrong_password(client, ladder, make_user):
    make_user("a@example.com", ladder=ladder)
    response = client.post("/api/auth/login", json={"email": "a@example.com", "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password"}


def test_bad_token_is_unauthorized(client):
    response = client.get("/api/profile/info", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


class TestPasswordReset:
    def test_otp_flow(self, client, session, ladder, make_user, notifier):
        user = make_user("a@example.com", ladder=ladder)

        response = client.post("/api/auth/forgot-password", json={"email": "a@example.com"})
        assert response.status_code == 200
        assert notifier.kinds() == [PASSWORD_RESET_OTP]
        otp = notifier.events[0].context["otp_code"]
        assert len(otp) == 6

        reset = client.post(
            "/api/auth/reset-password",
            json={"email": "a@example.com", "otpCode": otp, "newPassword": "new-password"},
        )
        assert reset.status_code == 200
        session.expire_all()
        assert session.get(User, user.id).otp_code is None

        login = client.post("/api/auth/login", json={"email": "a@example.com", "password": "new-password"})
        assert login.status_code == 200

    def test_unknown_email_does_not_leak(self, client, ladder, notifier):
        response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
        assert response.status_code == 200
        assert response.json()["message"].startswith("If the email exists")
        assert notifier.events == []

    def test_sms_needs_a_phone(self, client, ladder, make_user):
        make_user("a@example.com", ladder=ladder)
        response = client.post("/api/auth/forgot-password", json={"email": "a@example.com", "method": "sms"})
        assert response.status_code == 400

    def test_wrong_or_expired_otp(self, client, ladder, make_user):
        make_user(
            "a@example.com",
            ladder=ladder,
            otp_code="123456",
            otp_expiry=datetime(2025, 6, 1, 12, 0) - timedelta(minutes=1),
        )
        body = {"email": "a@example.com", "otpCode": "123456", "newPassword": "new-password"}
        assert client.post("/api/auth/reset-password", json=body).status_code == 400

        body["otpCode"] = "654321"
        assert client.post("/api/auth/reset-password", json=body).status_code == 400
