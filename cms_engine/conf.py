"""
Configuration settings for django-cms-engine.

Override these in your Django settings.py:

    CMS_ENGINE = {
        'POSTS_PER_PAGE': 10,
        'MODERATE_COMMENTS': True,
        'ALLOW_ANONYMOUS_COMMENTS': True,
        ...
    }
"""
from django.conf import settings

DEFAULTS = {
    # Posts
    "POSTS_PER_PAGE": 10,
    "MAX_PAGE_SIZE": 100,
    "WORDS_PER_MINUTE": 200,
    "RELATED_POSTS_LIMIT": 5,
    "POPULAR_POSTS_DAYS": 30,

    # Comments
    "ALLOW_ANONYMOUS_COMMENTS": True,
    "MODERATE_COMMENTS": True,
    "COMMENT_MAX_LENGTH": 2000,
    "COMMENTS_PER_PAGE": 20,

    # Media
    "MEDIA_UPLOAD_PATH": "uploads/%Y/%m/",
    "MEDIA_MAX_SIZE_MB": 10,
    "ALLOWED_MEDIA_TYPES": [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "video/mp4",
        "video/webm",
        "audio/mp3",
        "audio/wav",
    ],

    # Auth
    "REFRESH_COOKIE_NAME": "refresh_token",
    "REFRESH_COOKIE_MAX_AGE": 30 * 24 * 60 * 60,
    "PASSWORD_RESET_TIMEOUT_MINUTES": 15,

    # SEO
    "SLUG_MAX_LENGTH": 300,
}


class CMSEngineSettings:
    """
    Lazy settings object that reads from Django settings.

    Access via: from cms_engine.conf import cms_settings
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid cms_engine setting: {name}")

        user_settings = getattr(settings, "CMS_ENGINE", {})
        return user_settings.get(name, DEFAULTS[name])


cms_settings = CMSEngineSettings()
