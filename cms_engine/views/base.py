"""
Helpers shared by the API views.
"""
from .. import policy
from ..models import Comment


class ActorMixin:
    """Expose the request's ``policy.Actor`` as ``self.actor``."""

    @property
    def actor(self):
        return policy.Actor.from_user(self.request.user)


def client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR") or None


def submit_comment(request, actor, post, data):
    """Create a comment from validated ``CommentCreateSerializer`` data."""
    author = {
        "author_name": data.get("author_name", ""),
        "author_email": data.get("author_email", ""),
        "author_url": data.get("author_url", ""),
    }
    if not actor.is_anonymous:
        user = request.user
        author["author_name"] = author["author_name"] or user.full_name
        author["author_email"] = author["author_email"] or user.email
    return Comment.submit(
        actor,
        post,
        data["content"],
        parent=data.get("parent"),
        author_ip=client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT", "")[:500],
        **author,
    )
