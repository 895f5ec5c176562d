from functools import reduce
from operator import and_

from django.db.models import Q, QuerySet

from .models import RegistryRecord


MAX_RESULTS = 100


def build_registry_search_queryset(query: str, limit: int = MAX_RESULTS) -> QuerySet:
    """Return registry records where every term matches the RNC or the legal name."""

    terms = query.split()
    if not terms:
        raise ValueError("no search terms provided")

    conditions = [Q(rnc__icontains=term) | Q(legal_name__icontains=term) for term in terms]

    return RegistryRecord.objects.filter(reduce(and_, conditions)).order_by("legal_name", "rnc")[:limit]
