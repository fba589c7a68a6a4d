from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page-number pagination shared by every list endpoint.

    `?page_size=` is honoured up to 250 rows; ledger and movement listings
    can otherwise grow without bound for busy locations.
    """

    page_size_query_param = "page_size"
    max_page_size = 250
