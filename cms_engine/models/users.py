"""
User model for django-cms-engine.

Set ``AUTH_USER_MODEL = "cms_engine.User"`` in the host project.
"""
import logging
import secrets
from datetime import timedelta

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models
from django.utils import timezone

from ..choices import Role, UserStatus
from ..conf import cms_settings

logger = logging.getLogger(__name__)


class CMSUserManager(UserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("role", Role.SUPER_ADMIN)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """
    A CMS account with a role.

    ``is_active`` follows ``status`` so that inactive accounts are rejected
    by Django authentication and by token issuance alike.
    """

    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.SUBSCRIBER)
    status = models.CharField(max_length=20, choices=UserStatus.choices, default=UserStatus.ACTIVE)
    bio = models.TextField(blank=True)
    avatar = models.URLField(max_length=500, blank=True)

    email_verified = models.BooleanField(default=False)
    email_verification_token = models.CharField(max_length=64, blank=True)
    password_reset_token = models.CharField(max_length=64, blank=True, db_index=True)
    password_reset_expires = models.DateTimeField(null=True, blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    objects = CMSUserManager()

    class Meta:
        ordering = ["-date_joined"]

    def __str__(self):
        return self.username

    def save(self, *args, **kwargs):
        self.is_active = self.status == UserStatus.ACTIVE
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "status" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"is_active"}
        super().save(*args, **kwargs)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.username

    @property
    def effective_role(self):
        return Role.SUPER_ADMIN.value if self.is_superuser else self.role

    def issue_password_reset(self):
        """Create a single-use reset token valid for PASSWORD_RESET_TIMEOUT_MINUTES."""
        self.password_reset_token = secrets.token_hex(32)
        self.password_reset_expires = timezone.now() + timedelta(
            minutes=cms_settings.PASSWORD_RESET_TIMEOUT_MINUTES
        )
        self.save(update_fields=["password_reset_token", "password_reset_expires", "updated_at"])
        logger.info("Password reset requested for user %s", self.pk)
        return self.password_reset_token

    def reset_password(self, raw_password):
        self.set_password(raw_password)
        self.password_reset_token = ""
        self.password_reset_expires = None
        self.save()
        logger.info("Password reset completed for user %s", self.pk)

    @classmethod
    def for_reset_token(cls, token):
        """Return the user holding an unexpired reset token, or None."""
        if not token:
            return None
        return cls.objects.filter(
            password_reset_token=token,
            password_reset_expires__gt=timezone.now(),
        ).first()
