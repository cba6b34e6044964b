"""Command line interface for modelshelf."""

from __future__ import annotations

import difflib
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from modelshelf.backup import archive_name, read_archive, write_archive
from modelshelf.backup.service import COLLECTIONS_STRATEGIES, RESTORE_STRATEGIES
from modelshelf.config import ConfigError, ConfigManager, ModelshelfConfig, resolve_library_paths
from modelshelf.logging_setup import configure_logging
from modelshelf.service import CollectionService
from modelshelf.state.errors import CollectionNotFoundError, StoreError, ValidationError
from modelshelf.sync.derivation import STRATEGIES

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Whether JSON mode is active.
        details: Optional structured details for the JSON payload.
        original: Original exception, chained in non-JSON mode.

    Raises:
        SystemExit: In JSON mode, after printing the error payload.
        click.ClickException: Otherwise.
    """
    if json_output:
        payload: dict[str, Any] = {"success": False, "error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


@contextmanager
def _cli_errors(action: str, *, json_output: bool) -> Iterator[None]:
    """Translate domain exceptions raised inside a command into CLI errors."""
    try:
        yield
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except ValidationError as exc:
        _handle_cli_error(str(exc), code="validation_error", json_output=json_output, original=exc)
    except CollectionNotFoundError as exc:
        _handle_cli_error(str(exc), code="not_found", json_output=json_output, original=exc)
    except StoreError as exc:
        _handle_cli_error(str(exc), code="store_error", json_output=json_output, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)
    except OSError as exc:
        _handle_cli_error(
            f"Filesystem error while {action}: {exc}",
            code="io_error",
            json_output=json_output,
            original=exc,
        )


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: One of ``detail``, ``summary``, ``warning``, or ``error``.
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """
    if quiet and mode != "error":
        return
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _emit_errors(errors: list[str], *, quiet: bool, summary_only: bool) -> None:
    if not errors:
        return
    _emit_message("[red]Errors encountered:[/red]", mode="error", quiet=quiet, summary_only=summary_only)
    for entry in errors:
        _emit_message(f"  - {entry}", mode="error", quiet=quiet, summary_only=summary_only)


def _load_config() -> ModelshelfConfig:
    """Load configuration, anchor library paths at the working directory, and set up logging."""
    manager = ConfigManager()
    manager.ensure_exists()
    config = resolve_library_paths(manager.load(), Path.cwd())
    configure_logging(config.logging)
    return config


def _output_modes(
    ctx: click.Context,
    config: ModelshelfConfig,
    *,
    json_output: bool,
    quiet: bool,
    summary_mode: bool,
) -> tuple[bool, bool]:
    """Resolve quiet/summary flags against configured defaults.

    Returns:
        tuple[bool, bool]: Effective ``(quiet, summary_only)`` flags.

    Raises:
        click.ClickException: If the flags conflict.
    """
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException("Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags.")
    return quiet_enabled, summary_only


def _output_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the shared ``--json/--summary/--quiet`` options to a command."""
    func = click.option("--quiet", is_flag=True, help="Suppress non-error output.")(func)
    func = click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")(func)
    func = click.option("--json", "json_output", is_flag=True, help="Emit JSON output.")(func)
    return func


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="modelshelf")
def cli() -> None:
    """Modelshelf keeps 3D-model collections in sync with the folders on disk."""


@cli.command("list")
@_output_options
@click.pass_context
def list_collections(ctx: click.Context, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """List stored collections."""
    with _cli_errors("listing collections", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        with CollectionService.from_config(config) as service:
            collections = service.list_collections()

        if json_output:
            console.print_json(data={"success": True, "collections": [item.to_document() for item in collections]})
            return

        table = Table(title="Collections")
        table.add_column("ID", overflow="fold")
        table.add_column("Name")
        table.add_column("Category")
        table.add_column("Models", justify="right")
        table.add_column("Parent", overflow="fold")
        for item in collections:
            table.add_row(item.id, item.name, item.category, str(len(item.model_ids)), item.parent_id or "")
        _emit_message(table, mode="detail", quiet=quiet_enabled, summary_only=summary_only)
        _emit_message(
            _format_summary_line("List", config.library.collections_file, {"collections": len(collections)}),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.argument("name")
@click.option("--id", "collection_id", type=str, help="Update the collection with this id instead of creating one.")
@click.option("--description", type=str, default="", help="Collection description.")
@click.option("--model", "model_ids", multiple=True, help="Model id to include (repeatable).")
@click.option("--parent", "parent_id", type=str, help="Parent collection id.")
@click.option("--category", type=str, default="", help="Category label.")
@click.option("--tag", "tags", multiple=True, help="Tag to attach (repeatable).")
@click.option("--on-disk", is_flag=True, help="Create a backing folder under the models root.")
@_output_options
@click.pass_context
def create(
    ctx: click.Context,
    name: str,
    collection_id: str | None,
    description: str,
    model_ids: tuple[str, ...],
    parent_id: str | None,
    category: str,
    tags: tuple[str, ...],
    on_disk: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Create a collection called NAME, or update one with --id."""
    with _cli_errors("saving the collection", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        with CollectionService.from_config(config) as service:
            saved = service.save_collection(
                collection_id=collection_id,
                create_on_disk=on_disk,
                name=name,
                description=description,
                model_ids=list(model_ids),
                parent_id=parent_id,
                category=category,
                tags=list(tags) if tags else None,
            )

        if json_output:
            console.print_json(data={"success": True, "collection": saved.to_document()})
            return
        _emit_message(
            f"[green]Saved collection {saved.name} ({saved.id}).[/green]",
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.argument("collection_id")
@_output_options
@click.pass_context
def delete(ctx: click.Context, collection_id: str, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Delete the collection COLLECTION_ID."""
    with _cli_errors("deleting the collection", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        with CollectionService.from_config(config) as service:
            service.delete_collection(collection_id)

        if json_output:
            console.print_json(data={"success": True, "id": collection_id})
            return
        _emit_message(
            f"[green]Deleted collection {collection_id}.[/green]",
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command("import")
@click.option("--folder", type=str, help="Folder below the models root to scan.")
@click.option("--strategy", type=click.Choice(STRATEGIES), help="Derivation strategy.")
@click.option("--clear-previous", is_flag=True, help="Remove earlier auto-imported collections first.")
@_output_options
@click.pass_context
def import_collections(
    ctx: click.Context,
    folder: str | None,
    strategy: str | None,
    clear_previous: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Derive collections from the models folder tree."""
    with _cli_errors("importing collections", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        with CollectionService.from_config(config) as service:
            report = service.auto_import(folder=folder, strategy=strategy, clear_previous=clear_previous)

        if json_output:
            console.print_json(
                data={
                    "success": True,
                    "message": report.message,
                    "strategy": report.strategy,
                    "discovered": report.discovered,
                    "added": report.merge.added,
                    "updated": report.merge.updated,
                    "pruned": report.merge.pruned,
                    "tagged": report.tagged,
                    "errors": report.errors,
                }
            )
            return

        _emit_message(report.message, mode="detail", quiet=quiet_enabled, summary_only=summary_only)
        _emit_errors(report.errors, quiet=quiet_enabled, summary_only=summary_only)
        _emit_message(
            _format_summary_line(
                "Import",
                report.scan_root,
                {
                    "strategy": report.strategy,
                    "discovered": report.discovered,
                    "added": report.merge.added,
                    "updated": report.merge.updated,
                    "pruned": report.merge.pruned,
                    "tagged": report.tagged,
                },
            ),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@_output_options
@click.pass_context
def reconcile(ctx: click.Context, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Set each model's hidden flag from its collection membership."""
    with _cli_errors("reconciling hidden flags", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        with CollectionService.from_config(config) as service:
            report = service.reconcile_now()

        if json_output:
            console.print_json(
                data={
                    "success": True,
                    "hidden": report.hidden,
                    "shown": report.shown,
                    "unchanged": report.unchanged,
                    "errors": report.errors,
                }
            )
            return

        _emit_errors(report.errors, quiet=quiet_enabled, summary_only=summary_only)
        _emit_message(
            _format_summary_line(
                "Reconcile",
                config.library.models_dir,
                {"hidden": len(report.hidden), "shown": len(report.shown), "unchanged": report.unchanged},
            ),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.argument("output", type=click.Path(path_type=Path))
@click.option("--no-compress", is_flag=True, help="Write plain JSON instead of gzip.")
@_output_options
@click.pass_context
def backup(
    ctx: click.Context,
    output: Path,
    no_compress: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Write a backup of all metadata and collections to OUTPUT.

    OUTPUT may be a file or an existing directory, in which case a timestamped
    archive name is used.
    """
    with _cli_errors("writing the backup", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        with CollectionService.from_config(config) as service:
            envelope = service.backup()

        compress = config.backup.compress and not no_compress
        target = output.expanduser()
        if target.is_dir():
            name = archive_name(envelope)
            target = target / (name if compress else name[: -len(".gz")] + ".json")
        written = write_archive(envelope, target, compress=compress)

        if json_output:
            console.print_json(
                data={
                    "success": True,
                    "path": str(written),
                    "files": len(envelope.files),
                    "collections": len(envelope.collections or []),
                }
            )
            return
        _emit_message(
            _format_summary_line(
                "Backup",
                written,
                {"files": len(envelope.files), "collections": len(envelope.collections or []), "compressed": compress},
            ),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strategy", type=click.Choice(RESTORE_STRATEGIES), help="How backed-up files find their target.")
@click.option(
    "--collections",
    "collections_strategy",
    type=click.Choice(COLLECTIONS_STRATEGIES),
    help="Merge backed-up collections into the store or replace it.",
)
@_output_options
@click.pass_context
def restore(
    ctx: click.Context,
    archive: Path,
    strategy: str | None,
    collections_strategy: str | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Restore metadata and collections from ARCHIVE."""
    with _cli_errors("restoring the backup", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        envelope = read_archive(archive)
        with CollectionService.from_config(config) as service:
            result = service.restore(
                envelope,
                strategy=strategy or config.backup.default_strategy,
                collections_strategy=collections_strategy or config.backup.collections_strategy,
            )

        if json_output:
            console.print_json(data={"success": True, **result.to_document()})
            return

        for entry in result.restored:
            _emit_message(
                f"  [cyan]{entry.original_path}[/cyan] -> {entry.restored_path} ({entry.reason})",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        for skipped in result.skipped:
            _emit_message(
                f"[yellow]Skipped {skipped.original_path}: {skipped.reason}[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _emit_errors(
            [f"{failure.original_path}: {failure.error}" for failure in result.errors],
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
        _emit_message(
            _format_summary_line(
                "Restore",
                archive,
                {
                    "strategy": result.strategy,
                    "restored": len(result.restored),
                    "skipped": len(result.skipped),
                    "errors": len(result.errors),
                    "collections": result.collections.restored,
                },
            ),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command("hash-check")
@click.option("--type", "file_type", type=click.Choice(["3mf", "stl"]), default="3mf", show_default=True)
@_output_options
@click.pass_context
def hash_check(ctx: click.Context, file_type: str, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Compare model file hashes with the hashes stored in their metadata."""
    with _cli_errors("checking hashes", json_output=json_output):
        config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        with CollectionService.from_config(config) as service:
            entries = service.check_integrity(file_type)  # type: ignore[arg-type]

        counts: dict[str, int] = {"ok": 0, "missing_metadata": 0, "changed": 0, "error": 0}
        for entry in entries:
            counts[entry.status] = counts.get(entry.status, 0) + 1

        if json_output:
            console.print_json(
                data={"success": True, "results": [entry.model_dump() for entry in entries], "counts": counts}
            )
            return

        problems = [entry for entry in entries if entry.status != "ok"]
        if problems:
            table = Table(title="Hash check findings")
            table.add_column("Model", overflow="fold")
            table.add_column("Status")
            table.add_column("Details", overflow="fold")
            for entry in problems:
                table.add_row(entry.model or entry.base_name, entry.status, entry.details)
            _emit_message(table, mode="warning", quiet=quiet_enabled, summary_only=summary_only)
        _emit_message(
            _format_summary_line("Hash check", config.library.models_dir, counts),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.group()
def config() -> None:
    """Manage modelshelf configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


def _without_stamp(text: str) -> list[str]:
    return [line for line in text.splitlines() if not line.startswith("# Last updated:")]


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value addressed by a dotted KEY such as ``scan.auto_tag``."""
    manager = ConfigManager()
    manager.ensure_exists()

    dotted = ".".join(segment.strip() for segment in key.split(".") if segment.strip())
    if not dotted:
        raise click.ClickException("KEY must specify a dotted path such as 'scan.default_strategy'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    before = _without_stamp(manager.read_text())
    try:
        manager.set_value(dotted, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    after = _without_stamp(manager.read_text())

    if before == after:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    diff = difflib.unified_diff(
        before,
        after,
        fromfile="config.yaml (before)",
        tofile="config.yaml (after)",
        lineterm="",
    )
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {dotted}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
