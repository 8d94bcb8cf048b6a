"""
Site settings stored as typed key/value rows.
"""
import json
import logging

from django.db import models

from ..choices import SettingType
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "on")


class Setting(models.Model):
    """
    A site-wide setting.

    ``value`` is stored as text and decoded according to ``type``:

        >>> Setting(value="42", type="number").parsed_value
        42
    """

    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=SettingType.choices, default=SettingType.STRING)
    category = models.CharField(max_length=50, default="general", db_index=True)
    description = models.TextField(blank=True)
    is_public = models.BooleanField(default=False, help_text="Readable without authentication")
    is_editable = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["category", "sort_order", "key"]

    def __str__(self):
        return self.key

    @property
    def parsed_value(self):
        return self.decode_value(self.value, self.type)

    @staticmethod
    def decode_value(raw, value_type):
        if value_type == SettingType.NUMBER:
            try:
                number = float(raw)
            except (TypeError, ValueError):
                return None
            return int(number) if number.is_integer() else number
        if value_type == SettingType.BOOLEAN:
            return str(raw).strip().lower() in TRUE_VALUES
        if value_type in (SettingType.JSON, SettingType.ARRAY):
            try:
                return json.loads(raw)
            except (TypeError, ValueError):
                return [] if value_type == SettingType.ARRAY else None
        return raw

    @staticmethod
    def encode_value(value, value_type):
        """Encode a Python value for storage, rejecting values of the wrong kind."""
        if value_type == SettingType.NUMBER:
            if isinstance(value, bool):
                raise ValidationError("Expected a number.")
            try:
                float(value)
            except (TypeError, ValueError):
                raise ValidationError("Expected a number.")
            return str(value)
        if value_type == SettingType.BOOLEAN:
            if isinstance(value, bool):
                return "true" if value else "false"
            return "true" if str(value).strip().lower() in TRUE_VALUES else "false"
        if value_type == SettingType.ARRAY:
            if isinstance(value, str):
                try:
                    value = json.loads(value) if value.strip().startswith("[") else [value]
                except ValueError:
                    raise ValidationError("Expected a JSON list.")
            if not isinstance(value, (list, tuple)):
                raise ValidationError("Expected a list.")
            return json.dumps(list(value))
        if value_type == SettingType.JSON:
            if isinstance(value, str):
                try:
                    json.loads(value)
                except ValueError:
                    raise ValidationError("Expected valid JSON.")
                return value
            return json.dumps(value)
        return "" if value is None else str(value)

    def set_value(self, value, value_type=None):
        """Encode and save ``value``; non-editable settings are refused."""
        if not self.is_editable:
            raise ValidationError(f"Setting {self.key} is not editable.")
        if value_type is not None:
            self.type = value_type
        self.value = self.encode_value(value, self.type)
        self.save()
        logger.info("Setting %s updated", self.key)
        return self

    @classmethod
    def get_value(cls, key, default=None):
        setting = cls.objects.filter(key=key).first()
        if setting is None:
            return default
        return setting.parsed_value
