"""
Models for django-cms-engine.

All models are importable from cms_engine.models:

    from cms_engine.models import Post, Category, Tag, Comment, Like, Media, Setting, User
"""
from .users import User
from .posts import Category, Tag, Post
from .comments import Comment, Like
from .media import Media
from .site_settings import Setting

__all__ = [
    "User",
    # Posts
    "Category",
    "Tag",
    "Post",
    # Comments
    "Comment",
    "Like",
    # Media
    "Media",
    # Site
    "Setting",
]
