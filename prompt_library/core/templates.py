"""Template helpers: duplication, listing order and search."""

from __future__ import annotations

from collections.abc import Iterable

from prompt_library.db.models import Template, generate_id


def duplicate_template(template: Template) -> Template:
    return template.model_copy(
        update={"id": generate_id(), "description": f"{template.description} (Copy)"},
        deep=True,
    )


def sort_templates(templates: Iterable[Template]) -> list[Template]:
    """Favourites first, then ascending ``order``."""
    return sorted(templates, key=lambda t: (not t.is_favourite, t.order))


def filter_templates(templates: Iterable[Template], query: str) -> list[Template]:
    """Case-insensitive substring match on description and template text."""
    items = list(templates)
    if not query:
        return items
    needle = query.casefold()
    return [
        t
        for t in items
        if needle in (t.description or "").casefold() or needle in (t.template_text or "").casefold()
    ]
