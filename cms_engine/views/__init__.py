"""
REST API views for django-cms-engine.
"""
from .accounts import (
    ChangePasswordView,
    ForgotPasswordView,
    LoginView,
    LogoutView,
    MeView,
    RefreshView,
    RegisterView,
    ResetPasswordView,
    UserViewSet,
)
from .comments import CommentViewSet
from .posts import PostViewSet
from .site import DashboardStatsView, MediaViewSet, SettingViewSet
from .taxonomy import CategoryViewSet, TagViewSet

__all__ = [
    "ChangePasswordView",
    "ForgotPasswordView",
    "LoginView",
    "LogoutView",
    "MeView",
    "RefreshView",
    "RegisterView",
    "ResetPasswordView",
    "UserViewSet",
    "CommentViewSet",
    "PostViewSet",
    "DashboardStatsView",
    "MediaViewSet",
    "SettingViewSet",
    "CategoryViewSet",
    "TagViewSet",
]
