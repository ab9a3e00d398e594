"""CLI for inspecting flows, checkpoints and result history."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from stagekit.config import AppConfig, StoreFactory, load_app_config
from stagekit.constants import PACKAGE_VERSION

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="stagekit flow orchestration, checkpoint and history tooling.",
)
checkpoints_app = typer.Typer(no_args_is_help=True, help="Inspect and clear flow checkpoints.")
history_app = typer.Typer(no_args_is_help=True, help="Browse and prune result history.")
app.add_typer(checkpoints_app, name="checkpoints")
app.add_typer(history_app, name="history")
console = Console()

ConfigOption = typer.Option(None, "--config", help="Path to settings.yaml override.")
RootOption = typer.Option(None, "--root", help="Storage root directory override.")


@app.callback()
def configure(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """Configure logging for every command."""
    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def version() -> None:
    """Print the stagekit version."""
    typer.echo(PACKAGE_VERSION)


@app.command("validate-config")
def validate_config(
    config: Path | None = ConfigOption,
) -> None:
    """Validate configuration and print the configured flows."""
    config_model = _load_config(config, None)

    table = Table(title="Flows")
    table.add_column("Flow")
    table.add_column("Name")
    table.add_column("Stages")
    table.add_column("Back Nav")
    for flow_id, flow in config_model.flows.items():
        table.add_row(
            flow_id,
            flow.name,
            " -> ".join(stage.id for stage in flow.stages),
            "yes" if flow.allows_back_navigation else "no",
        )
    console.print(table)
    console.print(
        f"[green]OK[/green] root={config_model.storage.root_dir} "
        f"ttl_days={config_model.checkpoints.ttl_days} "
        f"max_results={config_model.history.max_results}"
    )


@app.command("show-flow")
def show_flow(
    flow_id: str = typer.Argument(..., help="Flow id from config."),
    config: Path | None = ConfigOption,
) -> None:
    """Print the stages of one flow."""
    factory = StoreFactory(_load_config(config, None))
    try:
        flow = factory.build_flow(flow_id)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    table = Table(title=f"{flow.name} ({flow.id})")
    table.add_column("#", justify="right")
    table.add_column("Stage")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Flags")
    for index, stage in enumerate(flow.stages, start=1):
        flags = [
            name
            for name, enabled in (
                ("required", stage.is_required),
                ("skippable", stage.can_skip),
                ("back", stage.can_go_back),
            )
            if enabled
        ]
        table.add_row(str(index), stage.id, stage.stage_kind.value, stage.title, ", ".join(flags))
    console.print(table)


@checkpoints_app.command("status")
def checkpoints_status(
    config: Path | None = ConfigOption,
    root: Path | None = RootOption,
) -> None:
    """Show saved checkpoints per flow type."""
    config_model = _load_config(config, root)
    with StoreFactory(config_model).create_checkpoint_store() as store:
        flow_types = sorted(set(config_model.flows) | set(store.saved_flow_types()))
        table = Table(title="Flow Checkpoints")
        table.add_column("Flow Type")
        table.add_column("Stage")
        table.add_column("Saved")
        for flow_type in flow_types:
            info = store.get_saved_state_info(flow_type)
            if info is None:
                table.add_row(flow_type, "-", "no saved state")
                continue
            age = store.saved_state_age(flow_type) or timedelta(0)
            table.add_row(
                flow_type,
                store.readable_stage_name(flow_type) or info.stage_id,
                _format_age(age),
            )
        console.print(table)
        console.print(f"Media files: {len(store.media.list_files())}")


@checkpoints_app.command("clear")
def checkpoints_clear(
    flow_type: str | None = typer.Option(None, "--flow-type", help="Flow type to clear."),
    clear_all: bool = typer.Option(False, "--all", help="Clear every checkpoint and media file."),
    config: Path | None = ConfigOption,
    root: Path | None = RootOption,
) -> None:
    """Delete saved checkpoints."""
    if bool(flow_type) == clear_all:
        raise typer.BadParameter("Provide exactly one of --flow-type or --all.")
    config_model = _load_config(config, root)
    with StoreFactory(config_model).create_checkpoint_store() as store:
        if clear_all:
            store.clear_all().result()
            console.print("[green]Cleared all checkpoints[/green]")
            return
        assert flow_type is not None
        try:
            store.clear(flow_type).result()
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
        console.print(f"[green]Cleared {flow_type} checkpoint[/green]")


@history_app.command("list")
def history_list(
    category: str = typer.Option(..., "--category", help="Result category."),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum rows to show."),
    config: Path | None = ConfigOption,
    root: Path | None = RootOption,
) -> None:
    """List stored results, newest first."""
    config_model = _load_config(config, root)
    with StoreFactory(config_model).create_history_store() as store:
        try:
            entries = store.results(category)
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
        table = Table(title=f"{category} results ({len(entries)})")
        table.add_column("Id")
        table.add_column("Created")
        table.add_column("Score", justify="right")
        table.add_column("Label")
        table.add_column("Media")
        for entry in entries[:limit]:
            media = [
                role if store.media_path(entry, role) else f"{role} (missing)"
                for role in sorted(entry.media_files)
            ]
            table.add_row(
                entry.id,
                entry.created_at.isoformat(timespec="seconds"),
                str(entry.overall_score),
                entry.label or "-",
                ", ".join(media) or "-",
            )
        console.print(table)


@history_app.command("delete")
def history_delete(
    category: str = typer.Option(..., "--category", help="Result category."),
    result_id: str = typer.Option(..., "--id", help="Result id to delete."),
    config: Path | None = ConfigOption,
    root: Path | None = RootOption,
) -> None:
    """Delete one stored result and its media."""
    config_model = _load_config(config, root)
    with StoreFactory(config_model).create_history_store() as store:
        try:
            entry = store.get(category, result_id)
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
        if entry is None:
            console.print(f"[red]No {category} result with id {result_id}[/red]")
            raise typer.Exit(code=1)
        store.delete(entry).result()
        console.print(f"[green]Deleted {category} result {result_id}[/green]")


def _load_config(config: Path | None, root: Path | None) -> AppConfig:
    overrides: dict[str, Any] = {}
    if root is not None:
        overrides["root_dir"] = root
    try:
        return load_app_config(config, cli_overrides=overrides)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Configuration validation failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _format_age(age: timedelta) -> str:
    seconds = max(0, int(age.total_seconds()))
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"
