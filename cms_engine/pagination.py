"""
Pagination for the CMS API.

Responses are wrapped as::

    {"results": [...], "pagination": {"current_page": 1, "total_pages": 3, ...}}
"""
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from .conf import cms_settings


class CMSPagination(PageNumberPagination):
    page_query_param = "page"
    page_size_query_param = "limit"

    def __init__(self):
        self.page_size = cms_settings.POSTS_PER_PAGE
        self.max_page_size = cms_settings.MAX_PAGE_SIZE

    def get_paginated_response(self, data):
        page = self.page
        return Response({
            "results": data,
            "pagination": {
                "current_page": page.number,
                "total_pages": page.paginator.num_pages,
                "total_items": page.paginator.count,
                "items_per_page": page.paginator.per_page,
                "has_next_page": page.has_next(),
                "has_prev_page": page.has_previous(),
            },
        })

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "results": schema,
                "pagination": {"type": "object"},
            },
        }


class CommentPagination(CMSPagination):
    def __init__(self):
        super().__init__()
        self.page_size = cms_settings.COMMENTS_PER_PAGE
