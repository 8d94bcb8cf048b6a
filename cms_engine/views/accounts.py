"""
Authentication and user management endpoints.

Access tokens are returned in the response body; the refresh token lives
in an httpOnly cookie (``REFRESH_COOKIE_NAME``) and may also be posted as
``refresh``.
"""
import logging

from django.conf import settings
from django.contrib.auth.models import update_last_login
from django.db import transaction
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import RefreshToken

from .. import policy
from ..conf import cms_settings
from ..exceptions import PermissionDenied, ValidationError
from ..filters import UserFilter
from ..models import User
from ..pagination import CMSPagination
from ..permissions import PolicyPermission
from ..serializers import (
    ChangePasswordSerializer,
    ForgotPasswordSerializer,
    LoginSerializer,
    RegisterSerializer,
    ResetPasswordSerializer,
    UserSerializer,
)
from .base import ActorMixin

logger = logging.getLogger(__name__)


def _token_response(request, user, status_code=status.HTTP_200_OK):
    refresh = RefreshToken.for_user(user)
    response = Response(
        {"user": UserSerializer(user).data, "access": str(refresh.access_token)},
        status=status_code,
    )
    response.set_cookie(
        cms_settings.REFRESH_COOKIE_NAME,
        str(refresh),
        max_age=cms_settings.REFRESH_COOKIE_MAX_AGE,
        httponly=True,
        secure=request.is_secure(),
        samesite="Strict",
    )
    return response


def _unauthorized(detail):
    response = Response({"detail": detail}, status=status.HTTP_401_UNAUTHORIZED)
    response.delete_cookie(cms_settings.REFRESH_COOKIE_NAME)
    return response


class RegisterView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            user = serializer.save()
        logger.info("User %s registered", user.pk)
        return _token_response(request, user, status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = User.objects.filter(email__iexact=serializer.validated_data["email"]).first()
        if user is None or not user.check_password(serializer.validated_data["password"]):
            logger.warning("Failed login for %s", serializer.validated_data["email"])
            raise AuthenticationFailed("Invalid credentials.")
        if not user.is_active:
            logger.warning("Login refused for inactive user %s", user.pk)
            raise AuthenticationFailed("Account is inactive.")
        update_last_login(None, user)
        logger.info("User %s logged in", user.pk)
        return _token_response(request, user)


class LogoutView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        response = Response({"detail": "Logged out."})
        response.delete_cookie(cms_settings.REFRESH_COOKIE_NAME)
        return response


class RefreshView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        raw = request.COOKIES.get(cms_settings.REFRESH_COOKIE_NAME) or request.data.get("refresh")
        if not raw:
            return _unauthorized("Refresh token not provided.")
        try:
            refresh = RefreshToken(raw)
        except TokenError:
            return _unauthorized("Refresh token is invalid or expired.")

        user_id = refresh.payload.get(jwt_settings.USER_ID_CLAIM)
        user = User.objects.filter(pk=user_id, is_active=True).first()
        if user is None:
            return _unauthorized("User is not valid.")
        return Response({"access": str(refresh.access_token)})


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"user": UserSerializer(request.user).data})


class ForgotPasswordView(APIView):
    """Always answers the same way; the token is echoed only when DEBUG is on."""

    permission_classes = [AllowAny]

    def post(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = {"detail": "If the email exists, a reset link has been sent."}
        user = User.objects.filter(
            email__iexact=serializer.validated_data["email"], is_active=True
        ).first()
        if user is not None:
            token = user.issue_password_reset()
            if settings.DEBUG:
                payload["reset_token"] = token
        return Response(payload)


class ResetPasswordView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = User.for_reset_token(serializer.validated_data["token"])
        if user is None:
            raise ValidationError("Reset token is invalid or expired.")
        user.reset_password(serializer.validated_data["password"])
        return Response({"detail": "Password has been reset."})


class ChangePasswordView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        user = request.user
        if not user.check_password(serializer.validated_data["current_password"]):
            raise ValidationError("Current password is incorrect.")
        user.set_password(serializer.validated_data["new_password"])
        user.save(update_fields=["password", "updated_at"])
        logger.info("User %s changed password", user.pk)
        return Response({"detail": "Password changed."})


class UserViewSet(
    ActorMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Users. Admins manage everyone; members read and edit their own profile."""

    queryset = User.objects.all()
    serializer_class = UserSerializer
    lookup_value_regex = r"\d+"
    pagination_class = CMSPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = UserFilter
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "user"
    policy_actions = {
        "list": policy.LIST,
        "retrieve": policy.READ,
        "update": policy.UPDATE,
        "partial_update": policy.UPDATE,
        "destroy": policy.DELETE,
    }

    def update(self, request, *args, **kwargs):
        kwargs["partial"] = True
        return super().update(request, *args, **kwargs)

    def perform_update(self, serializer):
        user = serializer.instance
        data = serializer.validated_data
        managed = [name for name in ("role", "status") if name in data and data[name] != getattr(user, name)]
        if managed and not policy.is_allowed(self.actor, "user", policy.MANAGE):
            raise PermissionDenied("Only administrators can change role or status.")
        serializer.save()
        if managed:
            logger.info("User %s %s changed by user %s", user.pk, "/".join(managed), self.actor.id)

    def perform_destroy(self, instance):
        if instance.pk == self.actor.id:
            raise ValidationError("You cannot delete your own account.")
        logger.info("User %s deleted by user %s", instance.pk, self.actor.id)
        instance.delete()
