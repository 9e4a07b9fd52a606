# Standard Library
import logging
import secrets
from datetime import timedelta

# Django
from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.hashers import check_password, make_password
from django.core.mail import send_mail
from django.db import transaction
from django.template.loader import render_to_string
from django.utils.html import strip_tags

# Django REST Framework
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken

# Local
from .permissions import IsSelfOrStaff
from .serializers import (
    LoginSerializer,
    OtpRequestSerializer,
    OtpVerifySerializer,
    PasswordResetSerializer,
    ProfileSerializer,
    RegisterSerializer,
)
from .utilities import (
    _now,
    _options,
    error_response,
    format_datetime,
    not_found_response,
    success_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)

User = get_user_model()

COOKIE_NAME = "refresh_token"
COOKIE_PATH = "/api/auth/"
COOKIE_SECURE = not settings.DEBUG
COOKIE_SAMESITE = "Lax"
COOKIE_MAX_AGE = int(settings.SIMPLE_JWT["REFRESH_TOKEN_LIFETIME"].total_seconds())

OTP_INVALID = {"otp": ["The OTP is invalid or has expired."]}


def _serialize_user(user):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "address": user.address,
        "is_staff": user.is_staff,
        "created_at": format_datetime(user.created_at),
        "updated_at": format_datetime(user.updated_at),
    }

def _issue_tokens(user):
    refresh = RefreshToken.for_user(user)
    return {"access": str(refresh.access_token), "refresh": str(refresh)}

def _set_refresh_cookie(response, refresh):
    response.set_cookie(
        COOKIE_NAME, refresh,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        path=COOKIE_PATH,
    )
    return response

def _find_user(email):
    return User.objects.filter(email__iexact=email.strip()).first()


# -----------------------
# Register / login
# -----------------------

class RegisterAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data
        email = data["email"].lower()
        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    username=email,
                    email=email,
                    password=data["password"],
                    name=data["name"],
                    phone=data.get("phone") or "",
                )
        except Exception:
            logger.exception("Register failed")
            return error_response("Failed to register user", status.HTTP_500_INTERNAL_SERVER_ERROR)

        logger.info("User #%s registered.", user.pk)
        tokens = _issue_tokens(user)
        res = success_response(
            "User registered successfully",
            {"user": _serialize_user(user), **tokens},
            status.HTTP_201_CREATED,
        )
        return _set_refresh_cookie(res, tokens["refresh"])


class LoginAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data

        user = authenticate(request, email=data["email"].lower(), password=data["password"])
        if user is None:
            return error_response("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

        tokens = _issue_tokens(user)
        res = success_response("Login successful", {"user": _serialize_user(user), **tokens})
        return _set_refresh_cookie(res, tokens["refresh"])


class MeAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return success_response("User retrieved successfully", _serialize_user(request.user))


class LogoutAPIView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        res = success_response("Logged out")
        res.delete_cookie(COOKIE_NAME, path=COOKIE_PATH)
        return res


class RefreshAPIView(APIView):
    """POST /api/auth/refresh -> new access token, refresh from body or HttpOnly cookie."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        refresh = request.data.get("refresh") or request.COOKIES.get(COOKIE_NAME)
        if not refresh:
            return error_response("Refresh token missing", status.HTTP_401_UNAUTHORIZED)
        serializer = TokenRefreshSerializer(data={"refresh": refresh})
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError:
            return error_response("Token is invalid or expired", status.HTTP_401_UNAUTHORIZED)
        return success_response("Token refreshed", serializer.validated_data)


# -----------------------
# OTP password reset
# -----------------------

def _otp_matches(user, otp):
    if not user.otp_hash or user.otp_expires_at is None:
        return False
    if user.otp_expires_at < _now():
        return False
    return check_password(otp, user.otp_hash)

def _clear_otp(user):
    user.otp_hash = ""
    user.otp_expires_at = None
    user.otp_attempts = 0

def _record_otp_miss(user):
    """Count a wrong code; too many misses burn the OTP."""
    if not user.otp_hash:
        return
    user.otp_attempts += 1
    if user.otp_attempts >= int(_options().get("OTP_MAX_ATTEMPTS", 5)):
        logger.warning("Too many OTP attempts for user #%s; OTP cleared.", user.pk)
        _clear_otp(user)
    user.save(update_fields=["otp_hash", "otp_expires_at", "otp_attempts", "updated_at"])

def issue_otp(user):
    """Store a fresh hashed 4-digit OTP on the user and return the plain code."""
    otp = str(secrets.randbelow(9000) + 1000)
    ttl = int(_options().get("OTP_TTL_MINUTES", 10))
    user.otp_hash = make_password(otp)
    user.otp_expires_at = _now() + timedelta(minutes=ttl)
    user.otp_attempts = 0
    user.save(update_fields=["otp_hash", "otp_expires_at", "otp_attempts", "updated_at"])
    return otp

def send_otp_mail(user, otp):
    ttl = int(_options().get("OTP_TTL_MINUTES", 10))
    html = render_to_string("emails/otp_mail.html", {"user": user, "otp": otp, "ttl": ttl})
    send_mail(
        subject="Your password reset code",
        message=strip_tags(html),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
        html_message=html,
    )


class ForgotPasswordAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = OtpRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        user = _find_user(serializer.validated_data["email"])
        if user is None:
            return not_found_response("User not found")

        try:
            otp = issue_otp(user)
            send_otp_mail(user, otp)
        except Exception:
            logger.exception("Sending OTP to user #%s failed", user.pk)
            return error_response("Failed to send OTP", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return success_response("OTP sent to your email")


class VerifyOtpAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = OtpVerifySerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data

        user = _find_user(data["email"])
        if user is None:
            return not_found_response("User not found")
        if not _otp_matches(user, data["otp"]):
            _record_otp_miss(user)
            return validation_error_response(OTP_INVALID, message="Invalid OTP")
        return success_response("OTP verified")


class ResetPasswordAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = PasswordResetSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data

        user = _find_user(data["email"])
        if user is None:
            return not_found_response("User not found")
        if not _otp_matches(user, data["otp"]):
            _record_otp_miss(user)
            return validation_error_response(OTP_INVALID, message="Invalid OTP")

        user.set_password(data["password"])
        _clear_otp(user)
        user.save()
        logger.info("User #%s reset their password.", user.pk)
        return success_response("Password reset successfully")


# -----------------------
# Profile
# -----------------------

class ProfileAPIView(APIView):
    permission_classes = [IsAuthenticated, IsSelfOrStaff]

    def _get(self, request, pk):
        user = User.objects.filter(pk=pk).first()
        if user is not None:
            self.check_object_permissions(request, user)
        return user

    def get(self, request, pk):
        user = self._get(request, pk)
        if user is None:
            return not_found_response("User not found")
        return success_response("Profile retrieved successfully", _serialize_user(user))

    def put(self, request, pk):
        user = self._get(request, pk)
        if user is None:
            return not_found_response("User not found")
        serializer = ProfileSerializer(user, data=request.data, partial=True)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        for field, value in serializer.validated_data.items():
            setattr(user, field, value)
        if "email" in serializer.validated_data:
            user.username = user.email
        user.save()
        return success_response("Profile updated successfully", _serialize_user(user))

    patch = put
