"""
Shared model behaviour.
"""
from types import SimpleNamespace

from django.db.models import DEFERRED

from ..exceptions import ConflictError


class TrackChangesMixin:
    """
    Remember the column values an instance was loaded (or last saved) with.

    ``has_changed("title")`` compares against that snapshot; new instances
    report every field as changed.
    """

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_values = {
            name: value for name, value in zip(field_names, values) if value is not DEFERRED
        }
        return instance

    def remember_state(self):
        deferred = self.get_deferred_fields()
        self._loaded_values = {
            f.attname: getattr(self, f.attname)
            for f in self._meta.concrete_fields
            if f.attname not in deferred
        }

    def loaded_snapshot(self):
        """The loaded values as an attribute namespace, or None if unknown."""
        if self._state.adding or not hasattr(self, "_loaded_values"):
            return None
        return SimpleNamespace(**self._loaded_values)

    def has_changed(self, attname):
        loaded = getattr(self, "_loaded_values", None)
        if self._state.adding or loaded is None or attname not in loaded:
            return True
        return loaded[attname] != getattr(self, attname)

    def ensure_unique(self, message=None, **lookup):
        """Raise ConflictError if another row already has these values."""
        queryset = type(self)._default_manager.filter(**lookup)
        if self.pk is not None:
            queryset = queryset.exclude(pk=self.pk)
        if queryset.exists():
            fields = ", ".join(lookup)
            raise ConflictError(message or f"A {self._meta.verbose_name} with this {fields} already exists.")

    counter_fields = ()

    def protect_counters(self, kwargs):
        """Leave ``counter_fields`` out of a plain ``save()`` of an existing row."""
        if self._state.adding or not self.counter_fields or kwargs.get("force_insert"):
            return kwargs
        if kwargs.get("update_fields") is None:
            kwargs["update_fields"] = [
                f.name
                for f in self._meta.concrete_fields
                if not f.primary_key and f.name not in self.counter_fields
            ]
        return kwargs
