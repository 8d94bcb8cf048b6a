"""
Visibility & state engine.

Decides whether an actor may read or change a post, comment or other CMS
entity, and which field mutations must accompany an allowed change.

Every call takes the actor explicitly:

    actor = Actor.from_user(request.user)
    decision = evaluate(actor, "post", UPDATE, target=post, changes={"title": "New"})
    decision.enforce()
    apply_side_effects(post, decision.side_effects)

Callers apply the returned side effects inside the same transaction as the
primary write. Relative side effects (counters) are applied with
``as_update_kwargs`` so that concurrent requests never lose an update.
"""
from dataclasses import dataclass
from typing import NamedTuple, Optional

from django.db.models import F, IntegerField, Q, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from . import exceptions
from .choices import CommentStatus, PostStatus, Role
from .conf import cms_settings
from .text import make_slug, reading_time

ANONYMOUS = "anonymous"

SUPER_ADMINS = frozenset({Role.SUPER_ADMIN.value})
ADMINS = SUPER_ADMINS | {Role.ADMIN.value}
MODERATORS = ADMINS | {Role.EDITOR.value}
CONTRIBUTORS = MODERATORS | {Role.AUTHOR.value}
MEMBERS = frozenset(Role.values)
EVERYONE = MEMBERS | {ANONYMOUS}
NOBODY = frozenset()

# Operations
READ = "read"
LIST = "list"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
TRANSITION = "transition"
MANAGE = "manage"
AUTO_APPROVE = "auto_approve"

# Like toggle outcomes
LIKE_CREATED = "created"
LIKE_REMOVED = "removed"
LIKE_CHANGED = "changed"


class Rule(NamedTuple):
    """Roles allowed on any object, and roles allowed only on objects they own."""

    any_roles: frozenset
    own_roles: frozenset = NOBODY


PERMISSIONS = {
    # Posts: reading unpublished posts needs a moderator role or ownership.
    ("post", READ): Rule(MODERATORS, MEMBERS),
    ("post", CREATE): Rule(CONTRIBUTORS),
    ("post", UPDATE): Rule(MODERATORS, frozenset({Role.AUTHOR.value})),
    ("post", TRANSITION): Rule(MODERATORS, frozenset({Role.AUTHOR.value})),
    ("post", DELETE): Rule(MODERATORS, frozenset({Role.AUTHOR.value})),
    # Comments: reading non-approved comments is for moderators only.
    ("comment", READ): Rule(MODERATORS),
    ("comment", LIST): Rule(MODERATORS),
    ("comment", CREATE): Rule(EVERYONE),
    ("comment", AUTO_APPROVE): Rule(CONTRIBUTORS),
    ("comment", TRANSITION): Rule(MODERATORS),
    ("comment", DELETE): Rule(MODERATORS, MEMBERS),
    ("like", CREATE): Rule(MEMBERS),
    ("category", CREATE): Rule(MODERATORS),
    ("category", UPDATE): Rule(MODERATORS),
    ("category", DELETE): Rule(ADMINS),
    ("tag", CREATE): Rule(CONTRIBUTORS),
    ("tag", UPDATE): Rule(MODERATORS),
    ("tag", DELETE): Rule(ADMINS),
    # Settings: READ covers private settings; public ones are readable by all.
    ("setting", READ): Rule(ADMINS),
    ("setting", UPDATE): Rule(ADMINS),
    ("setting", CREATE): Rule(SUPER_ADMINS),
    ("setting", DELETE): Rule(SUPER_ADMINS),
    ("media", LIST): Rule(MEMBERS),
    ("media", READ): Rule(ADMINS, MEMBERS),
    ("media", CREATE): Rule(MEMBERS),
    ("media", UPDATE): Rule(ADMINS, MEMBERS),
    ("media", DELETE): Rule(ADMINS, MEMBERS),
    ("user", LIST): Rule(ADMINS),
    ("user", READ): Rule(ADMINS, MEMBERS),
    ("user", UPDATE): Rule(ADMINS, MEMBERS),
    ("user", MANAGE): Rule(ADMINS),
    ("user", DELETE): Rule(ADMINS),
    ("dashboard", READ): Rule(MODERATORS),
}

OWNER_FIELDS = {
    "post": "author_id",
    "comment": "user_id",
    "like": "user_id",
    "media": "uploaded_by_id",
    "user": "pk",
}


@dataclass(frozen=True)
class Actor:
    """The authenticated (or anonymous) entity performing an operation."""

    id: Optional[int] = None
    role: str = ANONYMOUS

    def __post_init__(self):
        # Choices members hash by name, so roles are kept as plain strings.
        object.__setattr__(self, "role", str(self.role))

    @classmethod
    def from_user(cls, user):
        if user is None or not getattr(user, "is_authenticated", False):
            return ANONYMOUS_ACTOR
        if user.is_superuser:
            return cls(id=user.pk, role=Role.SUPER_ADMIN.value)
        return cls(id=user.pk, role=str(user.role))

    @property
    def is_anonymous(self):
        return self.id is None

    @property
    def is_moderator(self):
        return self.role in MODERATORS

    def owns(self, owner_id):
        return self.id is not None and owner_id is not None and owner_id == self.id


ANONYMOUS_ACTOR = Actor()


class SideEffect(NamedTuple):
    """
    A field mutation that must accompany an allowed change.

    ``relative`` effects add ``value`` to the current column value (counters).
    ``entity`` names the row to change: ``"self"`` for the target itself,
    ``"post"`` for the post a comment belongs to.
    """

    field: str
    value: object
    relative: bool = False
    entity: str = "self"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    side_effects: tuple = ()
    reason: str = ""
    error: type = exceptions.PermissionDenied

    def __bool__(self):
        return self.allowed

    def enforce(self):
        """Raise the decision's error when the operation is not allowed."""
        if not self.allowed:
            raise self.error(self.reason or None)
        return self

    def effects_for(self, entity):
        return [effect for effect in self.side_effects if effect.entity == entity]


def allow(*side_effects):
    return Decision(True, tuple(side_effects))


def deny(reason, error=exceptions.PermissionDenied):
    return Decision(False, (), reason, error)


def owner_id(resource, target):
    """Return the owning user id of ``target``, or None."""
    if target is None:
        return None
    return getattr(target, OWNER_FIELDS.get(resource, "pk"), None)


def is_allowed(actor, resource, operation, owner=None):
    """
    Evaluate the permission table.

    With ``owner=None`` this answers "may the actor do this to any object",
    so ownership-only grants do not apply.
    """
    rule = PERMISSIONS.get((resource, operation))
    if rule is None:
        return False
    if actor.role in rule.any_roles:
        return True
    return actor.role in rule.own_roles and actor.owns(owner)


def may_attempt(actor, resource, operation):
    """Whether the actor's role could be allowed on at least some objects."""
    rule = PERMISSIONS.get((resource, operation))
    if rule is None:
        return False
    return actor.role in rule.any_roles or (
        actor.role in rule.own_roles and not actor.is_anonymous
    )


def require(actor, resource, operation, owner=None):
    if not is_allowed(actor, resource, operation, owner):
        raise exceptions.PermissionDenied(f"You are not allowed to {operation} this {resource}.")


# Posts

def is_publicly_visible(post, now=None):
    now = now or timezone.now()
    return (
        post.status == PostStatus.PUBLISHED
        and post.published_at is not None
        and post.published_at <= now
    )


def can_read_post(actor, post, now=None):
    if is_allowed(actor, "post", READ, owner=post.author_id):
        return True
    return is_publicly_visible(post, now)


def visible_posts_filter(actor, now=None):
    """The post read rule as a ``Q`` object for querysets."""
    if is_allowed(actor, "post", READ):
        return Q()
    now = now or timezone.now()
    public = Q(status=PostStatus.PUBLISHED, published_at__lte=now)
    if actor.role in PERMISSIONS[("post", READ)].own_roles and not actor.is_anonymous:
        return public | Q(author_id=actor.id)
    return public


def post_side_effects(before, changes, now=None):
    """
    Field mutations implied by creating (``before=None``) or editing a post.

    - title set or changed: slug regenerated, unless the edit supplies a new slug
    - content set or changed: reading time recomputed
    - status becomes published with no publish time: publish time set to now
    - publish time already set: it is pinned to its current value
    """
    now = now or timezone.now()
    creating = before is None
    effects = []

    def changed(name):
        if name not in changes:
            return False
        return creating or changes[name] != getattr(before, name)

    explicit_slug = bool(changes.get("slug")) and (creating or changes["slug"] != before.slug)
    if changed("title") and not explicit_slug:
        effects.append(SideEffect("slug", make_slug(changes["title"])))

    if changed("content"):
        effects.append(SideEffect("reading_time", reading_time(changes["content"])))

    published_at = None if creating else before.published_at
    if published_at is not None:
        if "published_at" in changes and changes["published_at"] != published_at:
            effects.append(SideEffect("published_at", published_at))
    else:
        status = changes.get("status", None if creating else before.status)
        if status == PostStatus.PUBLISHED and changes.get("published_at") is None:
            effects.append(SideEffect("published_at", now))

    return effects


def _evaluate_post(actor, operation, post, changes, now):
    if operation == READ:
        if can_read_post(actor, post, now):
            return allow()
        return deny("Post not found.", exceptions.NotFound)

    if operation == CREATE:
        if not is_allowed(actor, "post", CREATE):
            return deny("Your role cannot create posts.")
        return allow(*post_side_effects(None, changes, now))

    if operation in (UPDATE, TRANSITION):
        if not is_allowed(actor, "post", operation, owner=post.author_id):
            return deny("You are not allowed to edit this post.")
        if operation == TRANSITION and changes.get("status") not in PostStatus.values:
            return deny("Unknown post status.", exceptions.ValidationError)
        return allow(*post_side_effects(post, changes, now))

    if operation == DELETE:
        if not is_allowed(actor, "post", DELETE, owner=post.author_id):
            return deny("You are not allowed to delete this post.")
        return allow()

    return deny(f"Unsupported post operation: {operation}.", exceptions.ValidationError)


# Comments

def approved_delta(before_status, after_status):
    """Change in a post's approved comment count for a status change."""
    return int(after_status == CommentStatus.APPROVED) - int(before_status == CommentStatus.APPROVED)


def initial_comment_status(actor):
    if not cms_settings.MODERATE_COMMENTS or is_allowed(actor, "comment", AUTO_APPROVE):
        return CommentStatus.APPROVED.value
    return CommentStatus.PENDING.value


def visible_comment_statuses(actor):
    """Comment statuses the actor may list; None means all."""
    if is_allowed(actor, "comment", LIST):
        return None
    return [CommentStatus.APPROVED.value]


def _evaluate_comment(actor, operation, target, changes, now):
    if operation == READ:
        if target.status == CommentStatus.APPROVED or is_allowed(actor, "comment", READ):
            return allow()
        return deny("Comment not found.", exceptions.NotFound)

    if operation == CREATE:
        # The target of a comment creation is the post being commented on.
        if actor.is_anonymous and not cms_settings.ALLOW_ANONYMOUS_COMMENTS:
            return deny("You must be logged in to comment.")
        if not can_read_post(actor, target, now):
            return deny("Post not found.", exceptions.NotFound)
        if not target.allow_comments:
            return deny("Comments are disabled for this post.")
        status = initial_comment_status(actor)
        effects = [SideEffect("status", status)]
        if status == CommentStatus.APPROVED:
            effects.append(SideEffect("comments_count", 1, relative=True, entity="post"))
        return allow(*effects)

    if operation == TRANSITION:
        if not is_allowed(actor, "comment", TRANSITION):
            return deny("Only moderators can change a comment's status.")
        new_status = changes.get("status")
        if new_status not in CommentStatus.values:
            return deny("Unknown comment status.", exceptions.ValidationError)
        if new_status == target.status:
            return deny(f"Comment is already {target.status}.", exceptions.ConflictError)
        if target.status == CommentStatus.APPROVED and new_status == CommentStatus.PENDING:
            return deny("An approved comment cannot return to pending.", exceptions.ConflictError)
        effects = [SideEffect("status", new_status)]
        delta = approved_delta(target.status, new_status)
        if delta:
            effects.append(SideEffect("comments_count", delta, relative=True, entity="post"))
        return allow(*effects)

    if operation == DELETE:
        if not is_allowed(actor, "comment", DELETE, owner=target.user_id):
            return deny("You are not allowed to delete this comment.")
        if target.status == CommentStatus.APPROVED:
            return allow(SideEffect("comments_count", -1, relative=True, entity="post"))
        return allow()

    return deny(f"Unsupported comment operation: {operation}.", exceptions.ValidationError)


# Likes

class LikeTransition(NamedTuple):
    action: str
    delta: int


def like_transition(existing_type, requested_type):
    """
    Three-state like toggle keyed by (existing like?, same type?).

    none -> created (+1); same type -> removed (-1); other type -> changed (0).
    """
    if existing_type is None:
        return LikeTransition(LIKE_CREATED, 1)
    if existing_type == requested_type:
        return LikeTransition(LIKE_REMOVED, -1)
    return LikeTransition(LIKE_CHANGED, 0)


# Settings

def can_read_setting(actor, setting):
    return setting.is_public or is_allowed(actor, "setting", READ)


_EVALUATORS = {
    "post": _evaluate_post,
    "comment": _evaluate_comment,
}


def evaluate(actor, resource, operation, target=None, changes=None, now=None):
    """
    Decide whether ``actor`` may perform ``operation`` on ``target``.

    Returns a ``Decision`` carrying the side effects to apply with the write.
    Resources without dedicated rules fall back to the permission table.
    """
    changes = changes or {}
    now = now or timezone.now()
    evaluator = _EVALUATORS.get(resource)
    if evaluator is not None:
        return evaluator(actor, operation, target, changes, now)
    if is_allowed(actor, resource, operation, owner=owner_id(resource, target)):
        return allow()
    return deny(f"You are not allowed to {operation} this {resource}.")


def apply_side_effects(instance, side_effects):
    """Set absolute side effects on an unsaved instance; relative ones are skipped."""
    for effect in side_effects:
        if not effect.relative:
            setattr(instance, effect.field, effect.value)
    return instance


def as_update_kwargs(side_effects):
    """
    Convert side effects to ``QuerySet.update()`` keyword arguments.

    Relative effects on the same field are summed and become one ``F()``
    expression floored at zero, so a counter can never go negative.
    """
    kwargs = {}
    deltas = {}
    for effect in side_effects:
        if effect.relative:
            deltas[effect.field] = deltas.get(effect.field, 0) + effect.value
        else:
            kwargs[effect.field] = effect.value
    for name, delta in deltas.items():
        if delta:
            kwargs[name] = Greatest(F(name) + delta, Value(0), output_field=IntegerField())
    return kwargs
