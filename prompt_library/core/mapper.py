"""Mapping between internal documents and the backup (import/export) format.

The backup format uses the legacy field names (``prompt_title``,
``template_desc``, ``isFavorite`` ...). Imports accept either the legacy or
the internal names so a vault file can be imported as well.
"""

from __future__ import annotations

from typing import Any

from prompt_library.db.models import Prompt, PromptStatus, Template, Version, generate_id, is_valid_id, utc_now


def prompt_to_export(p: Prompt) -> dict[str, Any]:
    return {
        "id": p.id,
        "prompt_id": p.id,
        "prompt_title": p.title,
        "prompt_desc": p.description,
        "prompt_text": p.prompt_text,
        "tags": p.tags,
        "prompt_status": p.status.value,
        "notes": p.notes,
        "category": p.category or "",
        "client": p.client or "",
        "date_created": p.date_created,
        "versions": [v.model_dump(mode="json") for v in p.versions],
        "embedding": p.embedding,
        "embedding_hash": p.embedding_hash,
    }


def _status(value: Any) -> PromptStatus:
    try:
        return PromptStatus(value)
    except ValueError:
        return PromptStatus.DRAFT


def _import_id(*candidates: Any) -> str:
    """First non-empty id among ``candidates``, or a fresh one.

    Raises:
        ValueError: the id contains characters that cannot go in a filename.
    """
    value = next((str(c) for c in candidates if c), None)
    if value is None:
        return generate_id()
    if not is_valid_id(value):
        raise ValueError(f"Invalid document id '{value}': use letters, digits, '.', '_' or '-'")
    return value


def prompt_from_import(p: dict[str, Any]) -> Prompt:
    return Prompt(
        id=_import_id(p.get("id"), p.get("prompt_id")),
        title=p.get("title") or p.get("prompt_title") or "Untitled",
        description=p.get("description") or p.get("prompt_desc") or "",
        prompt_text=p.get("prompt_text") or "",
        tags=p.get("tags") or "",
        status=_status(p.get("status") or p.get("prompt_status") or "draft"),
        notes=p.get("notes") or "",
        category=p.get("category") or "",
        client=p.get("client") or "",
        date_created=p.get("date_created") or utc_now(),
        versions=[Version.model_validate(v) for v in p.get("versions") or []],
        embedding=p.get("embedding") or None,
        embedding_hash=p.get("embedding_hash") or None,
    )


def template_to_export(t: Template) -> dict[str, Any]:
    return {
        "template_id": t.id,
        "template_desc": t.description,
        "template_text": t.template_text,
        "template_notes": t.notes or "",
        "isFavorite": t.is_favourite,
        "order": t.order,
    }


def template_from_import(t: dict[str, Any]) -> Template:
    return Template(
        id=_import_id(t.get("template_id"), t.get("id")),
        description=t.get("template_desc") or t.get("description") or "No Description",
        template_text=t.get("template_text") or "",
        notes=t.get("template_notes") or t.get("notes") or "",
        is_favourite=bool(t.get("isFavorite") or t.get("is_favourite")),
        order=int(t.get("order") or 0),
    )
