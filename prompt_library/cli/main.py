"""Prompt library CLI — prompt-library command."""

from __future__ import annotations

import json
import sys
from typing import Any

import click

from prompt_library.cli.client import LibraryClient

PROMPT_COLUMNS = ["id", "title", "status", "category", "client"]
HIT_COLUMNS = ["score", "id", "title", "status", "category", "client"]


def _format_table(rows: list[dict], columns: list[str]) -> str:
    """Simple table formatter."""
    if not rows:
        return "No results."
    widths = {c: len(c) for c in columns}
    for row in rows:
        for c in columns:
            val = _cell(row.get(c))
            widths[c] = max(widths[c], len(val))

    header = "  ".join(c.upper().ljust(widths[c]) for c in columns)
    separator = "  ".join("-" * widths[c] for c in columns)
    lines = [header, separator]
    for row in rows:
        line = "  ".join(_cell(row.get(c)).ljust(widths[c]) for c in columns)
        lines.append(line)
    return "\n".join(lines)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


@click.group()
@click.option("--api", default="http://localhost:8400", envvar="PROMPT_LIBRARY_API", help="API base URL")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def cli(ctx: click.Context, api: str, output_format: str) -> None:
    """Prompt library CLI — manage prompts, templates and collections."""
    ctx.obj = LibraryClient(base_url=api)
    ctx.meta["output_format"] = output_format


def _output(ctx: click.Context, data: Any, columns: list[str] | None = None) -> None:
    fmt = ctx.meta.get("output_format", "table")
    if fmt == "json":
        click.echo(json.dumps(data, indent=2, default=str))
    elif isinstance(data, list) and columns:
        click.echo(_format_table(data, columns))
    else:
        click.echo(json.dumps(data, indent=2, default=str))


def _output_hits(ctx: click.Context, result: dict) -> None:
    if ctx.meta.get("output_format", "table") == "json":
        _output(ctx, result)
        return
    rows = [{**hit["prompt"], "score": hit.get("score")} for hit in result.get("results", [])]
    _output(ctx, rows, HIT_COLUMNS)
    if result.get("mode") == "semantic" and result.get("semantic_state") != "ready":
        click.echo(f"(semantic model {result.get('semantic_state')}; keyword results shown)", err=True)


# --- Prompt commands ---


@cli.group()
def prompt() -> None:
    """Manage prompts."""


@prompt.command("list")
@click.pass_context
def prompt_list(ctx: click.Context) -> None:
    """List all prompts."""
    client: LibraryClient = ctx.obj
    _output(ctx, client.list_prompts(), PROMPT_COLUMNS)


@prompt.command("create")
@click.option("--title", required=True)
@click.option("--description", default="")
@click.option("--text", "prompt_text", default=None, help="Prompt body; read from stdin when omitted")
@click.option("--tags", default="")
@click.option("--category", default="")
@click.option("--client", "client_name", default="")
@click.option("--status", type=click.Choice(["draft", "live", "archived"]), default="draft")
@click.pass_context
def prompt_create(
    ctx: click.Context,
    title: str,
    description: str,
    prompt_text: str | None,
    tags: str,
    category: str,
    client_name: str,
    status: str,
) -> None:
    """Create a prompt."""
    client: LibraryClient = ctx.obj
    if prompt_text is None:
        prompt_text = sys.stdin.read()
    data = {
        "title": title,
        "description": description,
        "prompt_text": prompt_text,
        "tags": tags,
        "category": category,
        "client": client_name,
        "status": status,
    }
    _output(ctx, client.create_prompt(data))


@prompt.command("show")
@click.argument("prompt_id")
@click.pass_context
def prompt_show(ctx: click.Context, prompt_id: str) -> None:
    """Show prompt details."""
    client: LibraryClient = ctx.obj
    _output(ctx, client.get_prompt(prompt_id))


@prompt.command("update")
@click.argument("prompt_id")
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--text", "prompt_text", default=None)
@click.option("--tags", default=None)
@click.option("--notes", default=None)
@click.option("--category", default=None)
@click.option("--client", "client_name", default=None)
@click.option("--status", type=click.Choice(["draft", "live", "archived"]), default=None)
@click.pass_context
def prompt_update(
    ctx: click.Context,
    prompt_id: str,
    title: str | None,
    description: str | None,
    prompt_text: str | None,
    tags: str | None,
    notes: str | None,
    category: str | None,
    client_name: str | None,
    status: str | None,
) -> None:
    """Update prompt fields; unset options are left as they are."""
    client: LibraryClient = ctx.obj
    fields = {
        "title": title,
        "description": description,
        "prompt_text": prompt_text,
        "tags": tags,
        "notes": notes,
        "category": category,
        "client": client_name,
        "status": status,
    }
    data = {k: v for k, v in fields.items() if v is not None}
    if not data:
        raise click.UsageError("Nothing to update")
    _output(ctx, client.update_prompt(prompt_id, data))


@prompt.command("duplicate")
@click.argument("prompt_id")
@click.pass_context
def prompt_duplicate(ctx: click.Context, prompt_id: str) -> None:
    """Copy a prompt under a new id."""
    client: LibraryClient = ctx.obj
    _output(ctx, client.duplicate_prompt(prompt_id))


@prompt.command("delete")
@click.argument("prompt_id")
@click.pass_context
def prompt_delete(ctx: click.Context, prompt_id: str) -> None:
    """Delete a prompt."""
    client: LibraryClient = ctx.obj
    client.delete_prompt(prompt_id)
    click.echo(f"Deleted prompt '{prompt_id}'")


# --- Version commands ---


@cli.group()
def version() -> None:
    """Manage version snapshots."""


@version.command("commit")
@click.argument("prompt_id")
@click.pass_context
def version_commit(ctx: click.Context, prompt_id: str) -> None:
    """Snapshot the prompt's current text and notes."""
    client: LibraryClient = ctx.obj
    _output(ctx, client.commit_version(prompt_id))


@version.command("history")
@click.argument("prompt_id")
@click.option("--limit", type=int, default=None)
@click.pass_context
def version_history(ctx: click.Context, prompt_id: str, limit: int | None) -> None:
    """Show version history, newest first."""
    client: LibraryClient = ctx.obj
    _output(ctx, client.list_versions(prompt_id, limit), ["version_no", "date_created", "notes"])


@version.command("restore")
@click.argument("prompt_id")
@click.argument("version_no", type=int)
@click.pass_context
def version_restore(ctx: click.Context, prompt_id: str, version_no: int) -> None:
    """Copy a version's text back into the prompt."""
    client: LibraryClient = ctx.obj
    _output(ctx, client.restore_version(prompt_id, version_no))


# --- Search ---


@cli.command()
@click.argument("query", default="")
@click.option("--mode", type=click.Choice(["semantic", "keyword"]), default="semantic")
@click.option("--category", default=None)
@click.option("--client", "client_name", default=None)
@click.option("--status", default=None)
@click.option(
    "--sort",
    type=click.Choice(["date-desc", "date-asc", "name-asc", "cat-asc", "client-asc"]),
    default="date-desc",
)
@click.option("--min-score", type=click.FloatRange(0.0, 1.0), default=None)
@click.option("--limit", type=int, default=None)
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    mode: str,
    category: str | None,
    client_name: str | None,
    status: str | None,
    sort: str,
    min_score: float | None,
    limit: int | None,
) -> None:
    """Search prompts by meaning or by keyword."""
    client: LibraryClient = ctx.obj
    result = client.search(
        query,
        mode=mode,
        category=category,
        client=client_name,
        status=status,
        sort=sort,
        min_score=min_score,
        limit=limit,
    )
    _output_hits(ctx, result)


# --- Templates ---


@cli.group()
def template() -> None:
    """Manage templates."""


@template.command("list")
@click.option("--query", "-q", default="")
@click.pass_context
def template_list(ctx: click.Context, query: str) -> None:
    """List templates, favourites first."""
    client: LibraryClient = ctx.obj
    _output(ctx, client.list_templates(query), ["id", "description", "is_favourite", "order"])


@template.command("create")
@click.option("--description", required=True)
@click.option("--file", "-f", "file_path", default=None, help="Template text file; stdin when omitted")
@click.option("--favourite", is_flag=True, default=False)
@click.pass_context
def template_create(ctx: click.Context, description: str, file_path: str | None, favourite: bool) -> None:
    """Create a template."""
    client: LibraryClient = ctx.obj
    if file_path:
        with open(file_path, encoding="utf-8") as f:
            text = f.read()
    else:
        text = sys.stdin.read()
    data = {"description": description, "template_text": text, "is_favourite": favourite}
    _output(ctx, client.create_template(data))


@template.command("delete")
@click.argument("template_id")
@click.pass_context
def template_delete(ctx: click.Context, template_id: str) -> None:
    """Delete a template."""
    client: LibraryClient = ctx.obj
    client.delete_template(template_id)
    click.echo(f"Deleted template '{template_id}'")


# --- Collections ---


@cli.group()
def collection() -> None:
    """Manage smart collections."""


@collection.command("list")
@click.pass_context
def collection_list(ctx: click.Context) -> None:
    """List saved collections."""
    client: LibraryClient = ctx.obj
    rows = [{**c, **c.get("filters", {})} for c in client.list_collections()]
    _output(ctx, rows, ["id", "name", "search", "category", "client", "status"])


@collection.command("save")
@click.argument("name")
@click.option("--search", "search_text", default="")
@click.option("--category", default="")
@click.option("--client", "client_name", default="")
@click.option("--status", default="")
@click.pass_context
def collection_save(
    ctx: click.Context, name: str, search_text: str, category: str, client_name: str, status: str
) -> None:
    """Save the given filters as a named collection."""
    client: LibraryClient = ctx.obj
    filters = {"search": search_text, "category": category, "client": client_name, "status": status}
    _output(ctx, client.save_collection(name, filters))


@collection.command("apply")
@click.argument("collection_id")
@click.option("--mode", type=click.Choice(["semantic", "keyword"]), default="semantic")
@click.pass_context
def collection_apply(ctx: click.Context, collection_id: str, mode: str) -> None:
    """Show the prompts currently matching a collection."""
    client: LibraryClient = ctx.obj
    _output_hits(ctx, client.apply_collection(collection_id, mode=mode))


@collection.command("delete")
@click.argument("collection_id")
@click.pass_context
def collection_delete(ctx: click.Context, collection_id: str) -> None:
    """Delete a collection."""
    client: LibraryClient = ctx.obj
    client.delete_collection(collection_id)
    click.echo(f"Deleted collection '{collection_id}'")


# --- Backup ---


@cli.group()
def backup() -> None:
    """Export and import backups."""


@backup.command("export")
@click.option("--output", "-o", "output_path", default=None, help="Write to file instead of stdout")
@click.pass_context
def backup_export(ctx: click.Context, output_path: str | None) -> None:
    """Export all prompts and templates as JSON."""
    client: LibraryClient = ctx.obj
    data = client.export_backup()
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Exported {len(data.get('prompts', []))} prompts to {output_path}", err=True)
    else:
        click.echo(text)


@backup.command("import")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", is_flag=True, default=False, help="Do not ask for confirmation")
@click.pass_context
def backup_import(ctx: click.Context, file_path: str, yes: bool) -> None:
    """Import a backup. Replaces all data when the server uses the local database."""
    client: LibraryClient = ctx.obj
    with open(file_path, encoding="utf-8") as f:
        data = json.load(f)
    if not yes:
        click.confirm("Importing may replace all existing data. Continue?", abort=True)
    result = client.import_backup(data)
    click.echo(f"Imported {result['prompts']} prompts and {result['templates']} templates")


# --- Vault / status ---


@cli.group()
def vault() -> None:
    """Vault directory storage."""


@vault.command("connect")
@click.argument("path", type=click.Path(file_okay=False))
@click.pass_context
def vault_connect(ctx: click.Context, path: str) -> None:
    """Point the server at a vault directory."""
    client: LibraryClient = ctx.obj
    client.connect_vault(path)
    click.echo(f"Connected vault '{path}'")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show server health and semantic model state."""
    client: LibraryClient = ctx.obj
    data = {**client.health(), "semantic_status": client.semantic_status()}
    _output(ctx, data)


if __name__ == "__main__":
    cli()
