"""Smart collections — saved filter predicates."""

from __future__ import annotations

from prompt_library.core.search import SearchFilters
from prompt_library.db.models import Collection, CollectionFilters


def create_collection(name: str, filters: CollectionFilters) -> Collection:
    """New collection for ``filters``.

    Raises:
        ValueError: the name is blank or no filter criterion is set.
    """
    name = name.strip()
    if not name:
        raise ValueError("Collection name must not be empty")
    if filters.is_empty():
        raise ValueError("Set at least one filter (search, category, client or status) before saving")
    return Collection(name=name, filters=filters.model_copy())


def search_filters(filters: CollectionFilters) -> SearchFilters:
    """The exact-match part of a collection's predicate."""
    return SearchFilters(
        category=filters.category or None,
        client=filters.client or None,
        status=filters.status or None,
    )
