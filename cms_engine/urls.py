"""
URL configuration for django-cms-engine.

Include in your project urls.py:

    path('api/', include('cms_engine.urls')),
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = "cms_engine"

router = DefaultRouter()
router.register("posts", views.PostViewSet, basename="post")
router.register("comments", views.CommentViewSet, basename="comment")
router.register("categories", views.CategoryViewSet, basename="category")
router.register("tags", views.TagViewSet, basename="tag")
router.register("settings", views.SettingViewSet, basename="setting")
router.register("media", views.MediaViewSet, basename="media")
router.register("users", views.UserViewSet, basename="user")

urlpatterns = [
    # Auth
    path("auth/register/", views.RegisterView.as_view(), name="auth_register"),
    path("auth/login/", views.LoginView.as_view(), name="auth_login"),
    path("auth/logout/", views.LogoutView.as_view(), name="auth_logout"),
    path("auth/refresh/", views.RefreshView.as_view(), name="auth_refresh"),
    path("auth/me/", views.MeView.as_view(), name="auth_me"),
    path("auth/forgot-password/", views.ForgotPasswordView.as_view(), name="auth_forgot_password"),
    path("auth/reset-password/", views.ResetPasswordView.as_view(), name="auth_reset_password"),
    path("auth/change-password/", views.ChangePasswordView.as_view(), name="auth_change_password"),

    # Dashboard
    path("dashboard/stats/", views.DashboardStatsView.as_view(), name="dashboard_stats"),

    path("", include(router.urls)),
]
