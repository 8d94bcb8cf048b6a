"""Django app configuration for cms_engine."""
from django.apps import AppConfig


class CMSEngineConfig(AppConfig):
    """Configuration for the CMS engine app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "cms_engine"
    verbose_name = "CMS Engine"
