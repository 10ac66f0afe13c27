"""
antisplit CLI.

Command-line interface for merging split APK containers.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .core.config import Config, get_config
from .core.exceptions import AntiSplitError
from .core.logging import setup_logging
from .core.workspace import format_file_size
from .models.apk import MemberSet
from .models.merge import ContainerReport, MergeResult, UnsignedFallback

app = typer.Typer(
    name="antisplit",
    help="Merge split APK containers (XAPK/ZIP) into a single installable APK",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"antisplit v{__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """antisplit: split APK container to single APK."""
    pass


def _prepare(verbose: bool = False, sequential: bool = False) -> Config:
    config = get_config().model_copy(deep=True)
    if verbose:
        config.log_level = "DEBUG"
    if sequential:
        config.merge.parallel_classification = False
    setup_logging(config)
    return config


def _fail(error: AntiSplitError, verbose: bool) -> None:
    console.print(f"\n[bold red]✗ {type(error).__name__}[/bold red]: {error}")
    if verbose:
        console.print_exception()
    raise typer.Exit(1)


def _members_table(members: MemberSet, title: str = "Members") -> Table:
    table = Table(title=title)
    table.add_column("File", style="cyan")
    table.add_column("Role")
    table.add_column("Split")
    table.add_column("Size", justify="right")
    table.add_column("Architectures")
    table.add_column("Source", style="dim")

    for member in members.members:
        role = member.role.value
        if member.confidence.value == "heuristic":
            role += " [yellow](heuristic)[/yellow]"
        table.add_row(
            member.file_name,
            role,
            member.split_name or "-",
            format_file_size(member.file_size),
            ", ".join(member.architectures) or "-",
            member.metadata_source.value,
        )
    return table


def _show_report(report: ContainerReport, verbose: bool) -> None:
    base = report.members.base
    table = Table(title="Package")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    if base is not None:
        table.add_row("Package", base.package_name or "unknown")
        table.add_row("Version", f"{base.version_name or '?'} ({base.version_code})")
        table.add_row("Min SDK", base.min_sdk_version or "-")
        table.add_row("Target SDK", base.target_sdk_version or "-")
    table.add_row("Members", str(len(report.members)))
    table.add_row("Total Size", format_file_size(report.members.total_size))
    table.add_row("Architectures", ", ".join(report.members.architectures) or "-")
    xapk = report.xapk_manifest
    if xapk is not None:
        if xapk.name:
            table.add_row("Display Name", xapk.name)
        table.add_row("Expansion Files", str(len(xapk.expansions)))
    console.print(table)
    console.print(_members_table(report.members))

    if verbose and base is not None and base.permissions:
        console.print("\n[bold]Permissions:[/bold]")
        for permission in sorted(base.permissions):
            console.print(f"  • {permission}")

    if verbose and xapk is not None and xapk.expansions:
        console.print("\n[bold]Expansion files:[/bold]")
        for expansion in xapk.expansions:
            console.print(f"  • {expansion.file} -> {expansion.install_path or expansion.install_location or '-'}")

    manifest = report.base_manifest
    if manifest is not None:
        console.print("\n[bold]Base manifest:[/bold]")
        console.print(f"  Application: {manifest.application.name or '-'}")
        console.print(f"  Activities: {len(manifest.activities)}")
        console.print(f"  Services: {len(manifest.services)}")
        console.print(f"  Receivers: {len(manifest.receivers)}")
        console.print(f"  Providers: {len(manifest.providers)}")

    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def _show_result(result: MergeResult) -> None:
    console.print("\n[bold green]✓ Merge completed![/bold green]\n")
    console.print(_members_table(result.members, title="Merged Members"))

    table = Table(title="Merge Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Run ID", result.run_id)
    table.add_row("Duration", f"{(result.completed_at - result.started_at).total_seconds():.1f}s")
    table.add_row("Output", str(result.output_path))
    table.add_row("Original Size", format_file_size(result.original_size))
    table.add_row("Merged Size", format_file_size(result.merged_size))
    table.add_row("Difference", format_file_size(result.size_difference))
    table.add_row("Conflicts", str(len(result.conflicts)))
    table.add_row("Renumbered Class Files", str(len(result.renumbered)))
    table.add_row("Signed", "[green]YES[/green]" if result.signed else "[yellow]NO[/yellow]")
    console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if isinstance(result.signing, UnsignedFallback):
        console.print(f"\n[bold yellow]{result.signing.caveat}[/bold yellow]")


@app.command()
def merge(
    input_path: Path = typer.Argument(
        ...,
        help="Path to the .xapk or .zip container",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output APK path (default: <input>_merged.apk)",
    ),
    keystore: Optional[Path] = typer.Option(
        None,
        "--keystore",
        "-k",
        help="Keystore used to sign the merged APK",
        exists=True,
        dir_okay=False,
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        help="Write a JSON merge report to this path",
    ),
    android_sdk: Optional[Path] = typer.Option(
        None,
        "--android-sdk",
        help="Android SDK root (overrides discovery)",
    ),
    sequential: bool = typer.Option(
        False,
        "--sequential",
        help="Classify members one at a time",
    ),
    use_prefect: bool = typer.Option(
        False,
        "--prefect",
        help="Run through the Prefect flow",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
) -> None:
    """Merge a split APK container into a single APK."""
    config = _prepare(verbose, sequential)

    console.print(Panel.fit(
        "[bold blue]antisplit[/bold blue]\n"
        "Split APK container → Single APK",
        border_style="blue",
    ))
    console.print(f"\n[bold]Input:[/bold] {input_path}")
    if keystore:
        console.print(f"[bold]Keystore:[/bold] {keystore}")

    async def run_async() -> MergeResult:
        if use_prefect:
            from .orchestration.flow import antisplit_flow
            return await antisplit_flow(
                container_path=input_path,
                output_path=output,
                keystore=keystore,
                report_path=report,
                android_sdk=android_sdk,
                config=config,
            )

        from .orchestration import MergePipeline

        pipeline = MergePipeline(config=config, android_sdk=android_sdk)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Merging...", total=None)
            result = await pipeline.run(input_path, output, keystore, report)
            progress.update(task, completed=True)
        return result

    try:
        result = asyncio.run(run_async())
    except AntiSplitError as e:
        _fail(e, verbose)
    else:
        _show_result(result)


@app.command()
def info(
    input_path: Path = typer.Argument(
        ...,
        help="Path to the .xapk or .zip container",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    android_sdk: Optional[Path] = typer.Option(
        None,
        "--android-sdk",
        help="Android SDK root (overrides discovery)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show permissions and the decoded base manifest",
    ),
) -> None:
    """Show the members of a container without merging."""
    config = _prepare(verbose)
    console.print(f"[bold]Inspecting:[/bold] {input_path}")

    async def run_async() -> ContainerReport:
        from .orchestration import MergePipeline

        pipeline = MergePipeline(config=config, android_sdk=android_sdk)
        return await pipeline.inspect(input_path, include_manifest=verbose)

    try:
        report = asyncio.run(run_async())
    except AntiSplitError as e:
        _fail(e, verbose)
    else:
        _show_report(report, verbose)


@app.command()
def extract(
    input_path: Path = typer.Argument(
        ...,
        help="Path to the .xapk or .zip container",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    directory: Path = typer.Argument(
        ...,
        help="Directory the member APKs are copied into",
        file_okay=False,
        dir_okay=True,
    ),
    android_sdk: Optional[Path] = typer.Option(
        None,
        "--android-sdk",
        help="Android SDK root (overrides discovery)",
    ),
) -> None:
    """Copy the validated member APKs out of a container."""
    config = _prepare()

    async def run_async() -> list[Path]:
        from .orchestration import MergePipeline

        pipeline = MergePipeline(config=config, android_sdk=android_sdk)
        return await pipeline.extract(input_path, directory)

    try:
        copied = asyncio.run(run_async())
    except AntiSplitError as e:
        _fail(e, False)
    else:
        console.print(f"\n[bold green]✓ Extracted {len(copied)} APKs to {directory}[/bold green]")
        for path in copied:
            console.print(f"  • {path.name}")


@app.command()
def config() -> None:
    """Show current configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Android SDK", str(cfg.tools.android_sdk_root or "auto-discover"))
    table.add_row("Build Tools", cfg.tools.build_tools_version or "newest")
    table.add_row("Tool Timeout", f"{cfg.tools.tool_timeout_seconds}s")
    table.add_row("Tool Attempts", str(cfg.tools.tool_attempts))
    table.add_row("Parallel Classification", str(cfg.merge.parallel_classification))
    table.add_row("Max Workers", str(cfg.merge.max_workers))
    table.add_row("Compression Level", str(cfg.merge.compression_level))
    table.add_row("Stored Entries", ", ".join(cfg.merge.store_patterns))
    table.add_row("Keystore Password", "set" if cfg.signing.keystore_password else "not set")
    table.add_row("Key Alias", cfg.signing.key_alias or "-")
    table.add_row("Workspace Root", str(cfg.workspace.temp_root or "system temp"))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  ANTISPLIT_LOG_LEVEL, ANTISPLIT_ANDROID_SDK, ANTISPLIT_BUILD_TOOLS")
    console.print("  ANTISPLIT_KS_PASS, ANTISPLIT_KEY_ALIAS, ANTISPLIT_KEY_PASS")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
