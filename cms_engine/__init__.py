"""
django-cms-engine - A Django content-management engine.

Features:
- Role-based visibility for posts and comments
- Publishing workflow with one-time publish timestamps
- Moderated, threaded comments with denormalized counters
- Like/reaction toggling on posts and comments
- Hierarchical categories and flat tags
- Typed site settings
- JWT-authenticated REST API
"""

__version__ = "0.1.0"
__author__ = "Nestor Wheelock"
