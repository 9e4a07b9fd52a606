from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.utils import timezone

from storefront.auth_views import COOKIE_NAME

pytestmark = pytest.mark.django_db

User = get_user_model()


def test_register_returns_tokens(api_client):
    res = api_client.post("/api/register", {
        "name": "New Buyer",
        "email": "New@Example.com",
        "password": "long-enough",
        "password_confirmation": "long-enough",
    }, format="json")

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["user"]["email"] == "new@example.com"
    assert data["access"] and data["refresh"]
    assert COOKIE_NAME in res.cookies


def test_register_validates(api_client, user):
    res = api_client.post("/api/register", {
        "name": "Dup",
        "email": user.email,
        "password": "long-enough",
        "password_confirmation": "different",
    }, format="json")

    assert res.status_code == 422
    assert {"email"} <= set(res.json()["errors"])


def test_login_and_me(api_client, user):
    res = api_client.post("/api/login", {"email": "BUYER@example.com", "password": "secret-pass"}, format="json")
    assert res.status_code == 200
    access = res.json()["data"]["access"]

    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    res = api_client.get("/api/auth/me")
    assert res.status_code == 200
    assert res.json()["data"]["id"] == user.id


def test_login_wrong_password(api_client, user):
    res = api_client.post("/api/login", {"email": user.email, "password": "nope"}, format="json")
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid credentials"


def test_refresh_from_cookie(api_client, user):
    api_client.post("/api/login", {"email": user.email, "password": "secret-pass"}, format="json")

    res = api_client.post("/api/auth/refresh", {}, format="json")

    assert res.status_code == 200
    assert res.json()["data"]["access"]


def test_refresh_rejects_garbage(api_client):
    res = api_client.post("/api/auth/refresh", {"refresh": "garbage"}, format="json")
    assert res.status_code == 401


def test_logout_clears_cookie(user_client):
    res = user_client.post("/api/auth/logout")
    assert res.status_code == 200
    assert res.cookies[COOKIE_NAME].value == ""


# -----------------------
# OTP
# -----------------------

def test_forgot_password_mails_otp(api_client, user, mailoutbox):
    res = api_client.post("/api/forgotpass", {"email": user.email}, format="json")

    assert res.status_code == 200
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == [user.email]
    user.refresh_from_db()
    assert user.otp_hash and user.otp_expires_at > timezone.now()


def test_forgot_password_unknown_email(api_client, db):
    res = api_client.post("/api/forgotpass", {"email": "ghost@example.com"}, format="json")
    assert res.status_code == 404


def test_verify_and_reset_password(api_client, user):
    user.otp_hash = make_password("1234")
    user.otp_expires_at = timezone.now() + timedelta(minutes=5)
    user.save()

    assert api_client.post("/api/verify", {"email": user.email, "otp": "9999"}, format="json").status_code == 422
    assert api_client.post("/api/verify", {"email": user.email, "otp": "1234"}, format="json").status_code == 200

    res = api_client.post("/api/resetpass", {
        "email": user.email, "otp": "1234", "password": "brand-new-pass", "password_confirmation": "brand-new-pass",
    }, format="json")

    assert res.status_code == 200
    user.refresh_from_db()
    assert user.check_password("brand-new-pass")
    assert user.otp_hash == ""
    # single use
    assert api_client.post("/api/verify", {"email": user.email, "otp": "1234"}, format="json").status_code == 422


def test_otp_is_burned_after_too_many_misses(api_client, user, settings):
    settings.STOREFRONT = {**settings.STOREFRONT, "OTP_MAX_ATTEMPTS": 3}
    user.otp_hash = make_password("1234")
    user.otp_expires_at = timezone.now() + timedelta(minutes=5)
    user.save()

    for guess in ("0000", "1111"):
        assert api_client.post("/api/verify", {"email": user.email, "otp": guess}, format="json").status_code == 422
    res = api_client.post("/api/resetpass", {
        "email": user.email, "otp": "2222", "password": "brand-new-pass", "password_confirmation": "brand-new-pass",
    }, format="json")
    assert res.status_code == 422

    # the right code no longer works
    assert api_client.post("/api/verify", {"email": user.email, "otp": "1234"}, format="json").status_code == 422
    user.refresh_from_db()
    assert user.otp_hash == ""
    assert user.otp_attempts == 0


def test_expired_otp_is_rejected(api_client, user):
    user.otp_hash = make_password("1234")
    user.otp_expires_at = timezone.now() - timedelta(seconds=1)
    user.save()

    res = api_client.post("/api/verify", {"email": user.email, "otp": "1234"}, format="json")

    assert res.status_code == 422
    assert "otp" in res.json()["errors"]


# -----------------------
# Profile
# -----------------------

def test_profile_self_update(user_client, user):
    res = user_client.put(f"/api/profile/{user.id}", {"name": "Renamed", "phone": "555"}, format="json")

    assert res.status_code == 200
    user.refresh_from_db()
    assert (user.name, user.phone) == ("Renamed", "555")


def test_profile_of_someone_else(user_client, staff_client, user, staff):
    assert user_client.get(f"/api/profile/{staff.id}").status_code == 403
    assert staff_client.get(f"/api/profile/{user.id}").status_code == 200


def test_profile_email_must_be_unique(user_client, user, staff):
    res = user_client.put(f"/api/profile/{user.id}", {"email": staff.email}, format="json")
    assert res.status_code == 422


def test_register_duplicate_in_other_case(api_client, user):
    res = api_client.post("/api/register", {
        "name": "Dup",
        "email": "Buyer@Example.com",
        "password": "long-enough",
        "password_confirmation": "long-enough",
    }, format="json")

    assert res.status_code == 422
    assert "email" in res.json()["errors"]
    assert User.objects.count() == 1


def test_email_change_frees_old_address(user_client, api_client, user):
    res = user_client.put(f"/api/profile/{user.id}", {"email": "Moved@Example.com"}, format="json")
    assert res.status_code == 200
    user.refresh_from_db()
    assert (user.email, user.username) == ("moved@example.com", "moved@example.com")

    res = api_client.post("/api/register", {
        "name": "Newcomer",
        "email": "buyer@example.com",
        "password": "long-enough",
        "password_confirmation": "long-enough",
    }, format="json")
    assert res.status_code == 201
