"""
DRF permission backed by the engine's permission table.
"""
from rest_framework.permissions import BasePermission

from . import policy


class PolicyPermission(BasePermission):
    """
    Gate viewset actions on ``policy.PERMISSIONS``.

    Views set ``policy_resource`` and ``policy_actions``, a mapping of
    action name to an operation or a ``(resource, operation)`` pair.
    Actions missing from the mapping are left to the view.

        class TagViewSet(viewsets.ModelViewSet):
            permission_classes = [PolicyPermission]
            policy_resource = "tag"
            policy_actions = {"create": policy.CREATE, "destroy": policy.DELETE}
    """

    message = "You do not have permission to perform this action."

    def _rule(self, view):
        entry = getattr(view, "policy_actions", {}).get(view.action)
        if entry is None:
            return None
        if isinstance(entry, tuple):
            return entry
        return view.policy_resource, entry

    def has_permission(self, request, view):
        rule = self._rule(view)
        if rule is None:
            return True
        resource, operation = rule
        return policy.may_attempt(policy.Actor.from_user(request.user), resource, operation)

    def has_object_permission(self, request, view, obj):
        rule = self._rule(view)
        if rule is None:
            return True
        resource, operation = rule
        actor = policy.Actor.from_user(request.user)
        return policy.is_allowed(actor, resource, operation, owner=policy.owner_id(resource, obj))
