"""Version snapshots — commit, history and restore for prompts."""

from __future__ import annotations

import structlog

from prompt_library.db.models import Prompt, Version, utc_now

logger = structlog.get_logger()


def next_version_no(prompt: Prompt) -> int:
    """One past the highest version number ever used for ``prompt``."""
    return max((v.version_no for v in prompt.versions), default=0) + 1


def create_version(prompt: Prompt) -> Version:
    """Snapshot the prompt's current body and notes (does not attach it)."""
    return Version(
        version_no=next_version_no(prompt),
        prompt_text=prompt.prompt_text,
        notes=prompt.notes,
        date_created=utc_now(),
    )


def find_version(prompt: Prompt, version_no: int) -> Version | None:
    return next((v for v in prompt.versions if v.version_no == version_no), None)


class VersionControl:
    """Append-only version history stored inside each prompt document.

    Versions are never edited or removed individually; they disappear only
    with the prompt that owns them.
    """

    def commit(self, prompt: Prompt) -> Version:
        """Append a snapshot of the prompt's current text and return it."""
        version = create_version(prompt)
        prompt.versions.append(version)
        logger.info("vcs.commit", prompt_id=prompt.id, version=version.version_no)
        return version

    def history(self, prompt: Prompt, limit: int | None = None) -> list[Version]:
        """Versions, most recent first."""
        ordered = sorted(prompt.versions, key=lambda v: v.version_no, reverse=True)
        return ordered[:limit] if limit is not None else ordered

    def get_version(self, prompt: Prompt, version_no: int) -> Version | None:
        return find_version(prompt, version_no)

    def restore(self, prompt: Prompt, version_no: int) -> Prompt | None:
        """Copy a snapshot's body and notes back into the working prompt.

        The history itself is left untouched; commit afterwards to record the
        restored text as a new version.
        """
        target = find_version(prompt, version_no)
        if target is None:
            return None
        prompt.prompt_text = target.prompt_text
        prompt.notes = target.notes
        logger.info("vcs.restore", prompt_id=prompt.id, version=version_no)
        return prompt
