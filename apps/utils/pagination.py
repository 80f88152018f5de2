from django.conf import settings
from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"

    @property
    def max_page_size(self):
        return getattr(settings, "ORDER_LIST_MAX_PAGE_SIZE", 100)
