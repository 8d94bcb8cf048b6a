"""
Text helpers shared by models and the policy engine.
"""
import math
import re

from django.utils.text import slugify

from .conf import cms_settings

_SEPARATORS = re.compile(r"[-_]+")


def make_slug(value, max_length=None):
    """
    Build a URL slug from ``value``.

    Lowercase, ASCII only, words joined by single hyphens:

        >>> make_slug("Hello, World!")
        'hello-world'
        >>> make_slug("Café  au_lait")
        'cafe-au-lait'
    """
    if max_length is None:
        max_length = cms_settings.SLUG_MAX_LENGTH
    slug = _SEPARATORS.sub("-", slugify(value or "")).strip("-")
    return slug[:max_length].rstrip("-")


def word_count(content):
    return len((content or "").split())


def reading_time(content, words_per_minute=None):
    """Estimated reading time in whole minutes, rounded up."""
    if words_per_minute is None:
        words_per_minute = cms_settings.WORDS_PER_MINUTE
    return math.ceil(word_count(content) / words_per_minute)
