"""Command line interface for linkimport."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from linkimport.config import ConfigError, ConfigManager, LinkImportConfig, flatten_for_env
from linkimport.ingestion import ImportResult, ImportRootError
from linkimport.logging_setup import configure_logging
from linkimport.service import ImportService
from linkimport.state import ROOT_FOLDER_ID, MaterializationStore, StateError

console = Console()

_POLICIES = ("content_hash", "path_identity", "name_in_parent")


@dataclass
class _Output:
    """Route command output according to the --json, --quiet and --summary flags."""

    json_output: bool = False
    quiet: bool = False
    summary_only: bool = False

    def detail(self, message: Any) -> None:
        if not (self.quiet or self.summary_only):
            console.print(message)

    def summary(self, message: Any) -> None:
        if not self.quiet:
            console.print(message)

    def error(self, message: Any) -> None:
        console.print(message)

    def payload(self, data: dict[str, Any]) -> None:
        console.print_json(data=data)

    def fail(self, message: str, *, code: str, details: dict[str, Any] | None = None) -> NoReturn:
        """Abort the command with a non-zero exit.

        JSON mode prints ``{"error": {"code", "message", "details"?}}`` on stdout
        and exits with status 1; otherwise click reports ``message`` on stderr.
        """
        if self.json_output:
            error: dict[str, Any] = {"code": code, "message": message}
            if details:
                error["details"] = details
            self.payload({"error": error})
            raise SystemExit(1)
        raise click.ClickException(message)


def _summary_line(root: Path, counts: dict[str, int]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in counts.items())
    return f"[green]Import summary for {root}: {parts}.[/green]"


def _flag(ctx: click.Context, name: str, value: bool, default: bool) -> bool:
    """Prefer a flag given on the command line over the configured default."""
    if ctx.get_parameter_source(name) == ParameterSource.COMMANDLINE:
        return value
    return default


def _load_config(overrides: dict[str, Any], output: _Output) -> LinkImportConfig:
    try:
        return ConfigManager().load(cli_overrides=overrides)
    except ConfigError as exc:
        output.fail(str(exc), code="config_error")


def _work_dir_overrides(work_dir: Path | None) -> dict[str, Any]:
    return {"importer.work_dir": str(work_dir)} if work_dir is not None else {}


def _report_run(result: ImportResult, store: MaterializationStore, output: _Output) -> None:
    if output.json_output:
        output.payload(
            {
                "run": result.to_payload(),
                "store": {"path": str(store.path) if store.path else None, **store.counts()},
            }
        )
        return

    if result.errors:
        output.error("[red]Errors encountered:[/red]")
        for entry in result.errors:
            output.error(f"  - {entry}")
    if result.cancelled:
        output.summary(
            "[yellow]Import was cancelled before the whole tree was visited.[/yellow]"
        )
    output.detail(
        f"[cyan]Visited {len(result.node_results)} entries in "
        f"{result.duration_seconds:.2f}s.[/cyan]"
    )
    output.summary(_summary_line(result.root, result.counts()))


def _folder_tree(store: MaterializationStore, label: str) -> Tree:
    """Render the stored folder hierarchy with per-folder file counts."""
    children: dict[int, list[Any]] = {}
    for folder in store.list_folders():
        children.setdefault(folder.parent_id, []).append(folder)
    file_counts: dict[int, int] = {}
    for record in store.list_files():
        file_counts[record.parent_id] = file_counts.get(record.parent_id, 0) + 1

    tree = Tree(f"[bold]{label}[/bold] ({file_counts.get(ROOT_FOLDER_ID, 0)} files)")
    pending = [(ROOT_FOLDER_ID, tree)]
    while pending:
        parent_id, branch = pending.pop()
        for folder in sorted(children.get(parent_id, []), key=lambda item: item.name):
            node = branch.add(f"{folder.name} ({file_counts.get(folder.id, 0)} files)")
            pending.append((folder.id, node))
    return tree


def _lookup(config: LinkImportConfig, key: str) -> Any:
    node: Any = config.model_dump(mode="json")
    for segment in key.split("."):
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="linkimport")
def cli() -> None:
    """linkimport materializes a local import directory into managed storage."""


@cli.command()
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Work directory containing the import directory.",
)
@click.option("--import-dir", "import_dirname", type=str, help="Name of the import directory.")
@click.option("--policy", type=click.Choice(_POLICIES), help="Dedup policy for this run.")
@click.option("--workers", type=click.IntRange(min=1), help="Worker pool size for file I/O.")
@click.option("--copy", "force_copy", is_flag=True, help="Copy files instead of hard linking.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the run.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("-v", "--verbose", is_flag=True, help="Log every per-file decision.")
@click.pass_context
def run(
    ctx: click.Context,
    work_dir: Path | None,
    import_dirname: str | None,
    policy: str | None,
    workers: int | None,
    force_copy: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Import the contents of the import directory once.

    Files already recorded are skipped, so the command is safe to repeat.
    """
    overrides = _work_dir_overrides(work_dir)
    if import_dirname:
        overrides["importer.import_dirname"] = import_dirname
    if policy:
        overrides["importer.dedup_policy"] = policy
    if workers:
        overrides["importer.max_workers"] = workers
    if force_copy:
        overrides["importer.prefer_hardlink"] = False

    output = _Output(json_output=json_output)
    config = _load_config(overrides, output)
    output.quiet = _flag(ctx, "quiet", quiet, config.cli.quiet_default)
    output.summary_only = _flag(ctx, "summary_mode", summary_mode, config.cli.summary_default)

    configure_logging(
        config.logging,
        log_dir=config.store_dir(),
        level_override="DEBUG" if verbose else ("ERROR" if output.quiet else None),
        console_output=not json_output,
    )

    service = ImportService(config)
    try:
        result = service.run()
    except ImportRootError as exc:
        output.fail(
            str(exc),
            code="import_root_error",
            details={"import_root": str(config.importer.import_root())},
        )
    except ConfigError as exc:
        output.fail(str(exc), code="config_error")
    except StateError as exc:
        output.fail(str(exc), code="state_error")

    _report_run(result, service.store, output)


@cli.command()
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Work directory whose store should be inspected.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit store status as JSON.")
@click.option("--tree", "show_tree", is_flag=True, help="Render the stored folder hierarchy.")
def status(work_dir: Path | None, json_output: bool, show_tree: bool) -> None:
    """Display the folders and files recorded for a work directory."""
    output = _Output(json_output=json_output)
    config = _load_config(_work_dir_overrides(work_dir), output)
    try:
        store = MaterializationStore.open(
            config.store_dir(),
            filename=config.store.filename,
            autosave_every=config.store.autosave_every,
        )
    except StateError as exc:
        output.fail(str(exc), code="state_error")

    counts = store.counts()
    if json_output:
        output.payload(
            {
                "store": str(store.path),
                "counts": counts,
                "folders": [
                    {"id": folder.id, "path": "/".join(store.folder_path(folder.id))}
                    for folder in sorted(store.list_folders(), key=lambda item: item.id)
                ],
            }
        )
        return

    table = Table(title="linkimport store")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Folders", str(counts["folders"]))
    table.add_row("Files", str(counts["files"]))
    table.add_row("Bytes", str(sum(record.size for record in store.list_files())))
    console.print(table)

    if show_tree:
        console.print(_folder_tree(store, config.importer.import_dirname))


@cli.group()
def config() -> None:
    """Manage linkimport configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore LINKIMPORT__ environment variables.")
@click.option("--as-env", is_flag=True, help="Print the settings as environment variables.")
def config_view(no_env: bool, as_env: bool) -> None:
    """Show the effective settings after file, environment and defaults are merged."""
    try:
        effective = ConfigManager().load(use_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for name, value in flatten_for_env(effective).items():
            console.print(f"{name}={value}", markup=False, highlight=False, soft_wrap=True)
        return
    text = yaml.safe_dump(effective.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Store a dotted KEY such as importer.max_workers in the settings file."""
    manager = ConfigManager()
    try:
        previous = _lookup(manager.load(use_env=False), key)
        updated = _lookup(manager.set_value(key, value), key)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if previous == updated:
        console.print(f"[yellow]{key} is already {updated!r}; nothing changed.[/yellow]")
        return
    console.print(f"[green]Updated {key}: {previous!r} -> {updated!r}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
