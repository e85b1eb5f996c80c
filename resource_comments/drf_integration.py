from rest_framework.pagination import PageNumberPagination

from .conf import comments_settings


class CommentPagination(PageNumberPagination):
    """
    Pagination for the comments and subscriptions API.

    Pages are wrapped in the success envelope:
        {"status": "success", "data": {"count": ..., "next": ..., "previous": ..., "results": [...]}}

    Usage in settings.py:
        RESOURCE_COMMENTS = {
            'PAGE_SIZE': 20,
            'PAGE_SIZE_QUERY_PARAM': 'page_size',
            'MAX_PAGE_SIZE': 100,
        }
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        if comments_settings.PAGE_SIZE:
            self.page_size = comments_settings.PAGE_SIZE

        if comments_settings.PAGE_SIZE_QUERY_PARAM:
            self.page_size_query_param = comments_settings.PAGE_SIZE_QUERY_PARAM

        if comments_settings.MAX_PAGE_SIZE:
            self.max_page_size = comments_settings.MAX_PAGE_SIZE

    def get_paginated_response(self, data):
        from .api.responses import success

        return success({
            'count': self.page.paginator.count,
            'next': self.get_next_link(),
            'previous': self.get_previous_link(),
            'results': data,
        })

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'status': {'type': 'string', 'example': 'success'},
                'data': super().get_paginated_response_schema(schema),
            },
        }
