"""Directory vault backend — one JSON file per prompt or template.

The vault is a plain directory the user points us at, so it can be synced,
versioned or edited with other tools. There is no transaction and no
separate namespace per collection: a file is a prompt when its object has a
``prompt_text`` key and a template when it has ``template_text``.

Filenames are ``<slug>__<id>.json`` (templates get a ``TEMPLATE_`` prefix).
Because the slug follows the title, an id's filename changes on rename; the
``FilenameIndex`` remembers where each id currently lives so updates and
deletes do not have to rescan the directory.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from prompt_library.db.models import Document, DocumentKind, Prompt, Template, is_valid_id
from prompt_library.errors import BackendConnectionError, NotConnectedError

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 50

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def slugify(text: str) -> str:
    """Replace every character outside [A-Za-z0-9] with an underscore."""
    return _UNSAFE_CHARS.sub("_", text)


def filename_for(doc: Prompt | Template) -> str:
    """Human-readable, id-unique filename for a document."""
    if isinstance(doc, Prompt):
        return f"{slugify(doc.title or 'Untitled')}__{doc.id}.json"
    return f"TEMPLATE_{slugify(doc.description or 'Template')}__{doc.id}.json"


def classify(data: Any) -> Prompt | Template | None:
    """Build a document from a parsed JSON object, or None if it is neither kind.

    Raises:
        ValidationError: the object looks like a document but is malformed.
    """
    if not isinstance(data, dict):
        return None
    if "prompt_text" in data:
        return Prompt.model_validate(data)
    if "template_text" in data:
        return Template.model_validate(data)
    return None


class FilenameIndex:
    """In-memory map from document id to its current filename.

    Never persisted. ``complete`` is True only after a full directory scan
    rebuilt the map; until then a miss does not prove the id has no file.
    """

    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        self.complete = False

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, id: str) -> bool:
        return id in self._names

    def get(self, id: str) -> str | None:
        return self._names.get(id)

    def set(self, id: str, filename: str) -> None:
        self._names[id] = filename

    def discard(self, id: str) -> None:
        self._names.pop(id, None)

    def rebuild(self, entries: dict[str, str]) -> None:
        self._names = dict(entries)
        self.complete = True

    def reset(self) -> None:
        self._names.clear()
        self.complete = False

    def filenames(self) -> list[str]:
        return list(self._names.values())


@dataclass
class VaultSnapshot:
    """Result of one full directory scan."""

    prompts: list[Prompt] = field(default_factory=list)
    templates: list[Template] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class _Entry:
    filename: str
    doc: Prompt | Template | None = None
    error: str | None = None


class VaultRepository:
    """File-per-document implementation of the storage contract."""

    def __init__(
        self,
        directory: Path | str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.directory: Path | None = Path(directory) if directory else None
        self.batch_size = batch_size
        self.index = FilenameIndex()

    @property
    def is_connected(self) -> bool:
        return self.directory is not None

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        if self.directory is None:
            logger.info("vault.not_connected")
            return
        await asyncio.to_thread(self._check_directory, self.directory)
        logger.info("vault.connected", directory=str(self.directory))

    async def connect(self, directory: Path | str) -> None:
        """Select the vault directory; forgets everything known about the old one."""
        path = Path(directory).expanduser()
        await asyncio.to_thread(self._check_directory, path)
        self.directory = path
        self.index.reset()
        logger.info("vault.connected", directory=str(path))

    @staticmethod
    def _check_directory(path: Path) -> None:
        if not path.is_dir():
            raise BackendConnectionError(f"Vault directory '{path}' does not exist or is not a directory")
        if not os.access(path, os.R_OK | os.W_OK | os.X_OK):
            raise BackendConnectionError(
                f"Vault directory '{path}' is not readable and writable. Grant access and reconnect."
            )

    async def close(self) -> None:
        self.index.reset()

    def _require_directory(self, operation: str) -> Path:
        if self.directory is None:
            raise NotConnectedError(operation)
        return self.directory

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    async def load_all(self) -> VaultSnapshot:
        """Scan the whole directory once and rebuild the filename index."""
        if self.directory is None:
            return VaultSnapshot()

        entries = await self._scan(self.directory)
        snapshot = VaultSnapshot()
        names: dict[str, str] = {}
        for entry in entries:
            if entry.doc is None:
                snapshot.skipped.append(entry.filename)
                logger.warning("vault.file_skipped", file=entry.filename, reason=entry.error)
                continue
            names[entry.doc.id] = entry.filename
            if isinstance(entry.doc, Prompt):
                snapshot.prompts.append(entry.doc)
            else:
                snapshot.templates.append(entry.doc)
        self.index.rebuild(names)

        logger.debug(
            "vault.loaded",
            prompts=len(snapshot.prompts),
            templates=len(snapshot.templates),
            skipped=len(snapshot.skipped),
        )
        return snapshot

    async def _scan(self, directory: Path) -> list[_Entry]:
        """Read every *.json file, ``batch_size`` files at a time."""
        filenames = await asyncio.to_thread(self._json_filenames, directory)
        entries: list[_Entry] = []
        for start in range(0, len(filenames), self.batch_size):
            batch = filenames[start : start + self.batch_size]
            entries.extend(
                await asyncio.gather(
                    *(asyncio.to_thread(self._read_entry, directory, name) for name in batch)
                )
            )
        return entries

    @staticmethod
    def _json_filenames(directory: Path) -> list[str]:
        return sorted(p.name for p in directory.iterdir() if p.suffix == ".json" and p.is_file())

    @staticmethod
    def _read_entry(directory: Path, filename: str) -> _Entry:
        try:
            data = json.loads((directory / filename).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            return _Entry(filename, error=str(e))
        try:
            doc = classify(data)
        except ValidationError as e:
            return _Entry(filename, error=f"invalid document: {e.error_count()} errors")
        if doc is None:
            return _Entry(filename, error="neither prompt_text nor template_text present")
        return _Entry(filename, doc=doc)

    async def _scan_for_id(self, directory: Path, id: str) -> list[str]:
        """Filenames whose parsed content carries ``id``."""
        entries = await self._scan(directory)
        return [e.filename for e in entries if e.doc is not None and e.doc.id == id]

    # -------------------------------------------------------------------------
    # Storage contract
    # -------------------------------------------------------------------------

    async def list(self, kind: DocumentKind) -> list[Document]:
        if kind is DocumentKind.COLLECTIONS:
            return []
        snapshot = await self.load_all()
        if kind is DocumentKind.PROMPTS:
            return list(snapshot.prompts)
        return list(snapshot.templates)

    async def query_prompts(
        self,
        category: str | None = None,
        client: str | None = None,
    ) -> list[Prompt]:
        snapshot = await self.load_all()
        return [
            p
            for p in snapshot.prompts
            if (not category or p.category == category) and (not client or p.client == client)
        ]

    async def upsert(self, kind: DocumentKind, doc: Document) -> Document:
        directory = self._require_directory("save")
        if kind is DocumentKind.COLLECTIONS:
            return doc
        expected = Prompt if kind is DocumentKind.PROMPTS else Template
        if not isinstance(doc, expected):
            raise TypeError(f"Expected {expected.__name__} for '{kind.value}', got {type(doc).__name__}")
        if not is_valid_id(doc.id):
            raise ValueError(f"Document id '{doc.id}' cannot be used in a vault filename")

        new_name = filename_for(doc)
        old_names = await self._known_filenames(directory, doc.id)

        await asyncio.to_thread(self._write_file, directory, new_name, doc)
        self.index.set(doc.id, new_name)

        for old_name in old_names:
            if old_name == new_name:
                continue
            try:
                await asyncio.to_thread((directory / old_name).unlink)
                logger.info("vault.renamed", id=doc.id, old=old_name, new=new_name)
            except FileNotFoundError:
                logger.warning("vault.rename_source_missing", id=doc.id, file=old_name)

        logger.debug("vault.saved", kind=kind.value, id=doc.id, file=new_name)
        return doc

    async def _known_filenames(self, directory: Path, id: str) -> list[str]:
        cached = self.index.get(id)
        if cached is not None:
            return [cached]
        if self.index.complete:
            return []
        return await self._scan_for_id(directory, id)

    @staticmethod
    def _write_file(directory: Path, filename: str, doc: Document) -> None:
        target = directory / filename
        tmp = directory / f".{filename}.tmp"
        payload = json.dumps(doc.model_dump(mode="json"), indent=2, ensure_ascii=False)
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, target)

    async def remove(self, kind: DocumentKind, id: str) -> None:
        directory = self._require_directory("delete")
        if kind is DocumentKind.COLLECTIONS:
            return

        cached = self.index.get(id)
        if cached is not None:
            try:
                await asyncio.to_thread((directory / cached).unlink)
                self.index.discard(id)
                logger.debug("vault.removed", id=id, file=cached)
                return
            except FileNotFoundError:
                logger.warning("vault.index_stale", id=id, file=cached)
                self.index.discard(id)

        for name in await self._scan_for_id(directory, id):
            try:
                await asyncio.to_thread((directory / name).unlink)
                logger.debug("vault.removed", id=id, file=name, via="scan")
            except FileNotFoundError:
                pass

    async def clear_all(self) -> None:
        directory = self._require_directory("clear")
        await self.load_all()
        for name in self.index.filenames():
            try:
                await asyncio.to_thread((directory / name).unlink)
            except FileNotFoundError:
                pass
        self.index.rebuild({})
        logger.info("vault.cleared", directory=str(directory))
