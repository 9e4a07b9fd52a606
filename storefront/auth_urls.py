from django.urls import path

from .auth_views import (
    ForgotPasswordAPIView,
    LoginAPIView,
    LogoutAPIView,
    MeAPIView,
    ProfileAPIView,
    RefreshAPIView,
    RegisterAPIView,
    ResetPasswordAPIView,
    VerifyOtpAPIView,
)

urlpatterns = [
    path("register", RegisterAPIView.as_view(), name="register"),
    path("login", LoginAPIView.as_view(), name="login"),
    path("forgotpass", ForgotPasswordAPIView.as_view(), name="forgotpass"),
    path("verify", VerifyOtpAPIView.as_view(), name="verify"),
    path("resetpass", ResetPasswordAPIView.as_view(), name="resetpass"),
    path("profile/<int:pk>", ProfileAPIView.as_view(), name="profile"),
    path("auth/me", MeAPIView.as_view(), name="auth-me"),
    path("auth/logout", LogoutAPIView.as_view(), name="auth-logout"),
    path("auth/refresh", RefreshAPIView.as_view(), name="auth-refresh"),
]
