"""CLI entrypoints for quartoship."""

import logging
import shutil
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import Config, PublishBackend, load_config
from .environment import prepare_environment
from .errors import StageError
from .lock import RunLockedError
from .pipeline import PipelineAbort, run_pipeline
from .publish import publish_site
from .render import check_determinism, render_site
from .reporting import PipelineReport, StageStatus
from .runner import run_subprocess
from .scaffold import ScaffoldError, ScaffoldResult, init_project, scaffold_post
from .stamp import stamp_domain
from .trigger import TriggerEvent, evaluate_trigger
from .validation import DocumentIssue, IssueSeverity, lint_workspace
from .workflow import write_workflow

console = Console()
app = typer.Typer(help="Render a Quarto site, stamp its domain, and publish it.")

ConfigPathOption = Annotated[
    str,
    typer.Option("--config", "-c", help="Path to configuration file or project directory."),
]
ForceFlag = Annotated[
    bool,
    typer.Option("--force", "-f", help="Overwrite existing files if they already exist."),
]

_STATUS_STYLES = {
    StageStatus.SUCCEEDED: "green",
    StageStatus.FAILED: "red",
    StageStatus.SKIPPED: "yellow",
}


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging from pipeline stages."),
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def run(
    config_path: ConfigPathOption = "quartoship.yml",
    local: Annotated[
        bool,
        typer.Option("--local", help="Run outside CI, without a push event."),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Publish even when the output matches the last publish."),
    ] = False,
    skip_environment: Annotated[
        bool,
        typer.Option("--skip-environment", help="Trust the current runtime instead of preparing it."),
    ] = False,
    backend: Annotated[
        PublishBackend | None,
        typer.Option("--backend", help="Override the configured publish backend."),
    ] = None,
) -> None:
    """Run checkout, environment, render, stamp, and publish in order."""
    config: Config = _load(config_path)
    if backend is not None:
        config.publish.backend = backend

    event = TriggerEvent.from_env()
    decision = evaluate_trigger(event, config, allow_local=local)
    if not decision.should_run:
        console.print(f"[bold yellow]Skipped[/]: {decision.reason}")
        raise typer.Exit()

    console.print(f"[bold blue]Pipeline[/]: {decision.reason}")
    try:
        report = run_pipeline(
            config,
            event,
            run_subprocess,
            force=force,
            skip_environment=skip_environment,
        )
    except RunLockedError as exc:
        console.print(f"[bold red]Run refused[/]: {exc}")
        raise typer.Exit(code=1) from exc
    except PipelineAbort as exc:
        _print_stage_table(exc.report)
        console.print(f"[bold red]Aborted[/]: {exc.stage.value} failed: {exc.cause}")
        raise typer.Exit(code=1) from exc

    _print_stage_table(report)
    outcome = report.outcome.value if report.outcome else "unknown"
    console.print(
        f"[bold green]Done[/]: {outcome} "
        f"(duration {report.duration_seconds:.2f}s, digest {(report.output_digest or '')[:12]})"
    )


@app.command()
def prepare(config_path: ConfigPathOption = "quartoship.yml") -> None:
    """Verify the pinned runtime, install its libraries, and check the renderer."""
    config: Config = _load(config_path)
    try:
        report = prepare_environment(config, run_subprocess)
    except StageError as exc:
        console.print(f"[bold red]Environment not ready[/]: {exc}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[bold green]Environment ready[/]: {config.runtime.name} {report.runtime_version}, "
        f"{len(report.packages)} package(s), {config.renderer.executable} {report.renderer_version}"
    )


@app.command()
def render(config_path: ConfigPathOption = "quartoship.yml") -> None:
    """Render the content tree into a fresh output directory."""
    config: Config = _load(config_path)
    try:
        result = render_site(config, run_subprocess)
    except StageError as exc:
        console.print(f"[bold red]Render failed[/]: {exc}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[bold green]Rendered[/]: {len(result.pages)} page(s), {result.file_count} file(s) in "
        f"{_display_path(result.output_dir)}"
    )


@app.command()
def stamp(
    config_path: ConfigPathOption = "quartoship.yml",
    domain: Annotated[
        str | None,
        typer.Option("--domain", "-d", help="Override the configured custom domain."),
    ] = None,
) -> None:
    """Write the custom-domain marker into the rendered output."""
    config: Config = _load(config_path)
    try:
        target = stamp_domain(config.output_dir, domain or config.domain.name, config.domain.marker_filename)
    except StageError as exc:
        console.print(f"[bold red]Stamp failed[/]: {exc}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[bold green]Stamped[/]: {_display_path(target)} -> {target.read_text(encoding='utf-8').strip()}"
    )


@app.command()
def publish(config_path: ConfigPathOption = "quartoship.yml") -> None:
    """Push the stamped output to the hosting branch without re-rendering."""
    config: Config = _load(config_path)
    event = TriggerEvent.from_env()
    try:
        result = publish_site(config, run_subprocess, sha=event.sha)
    except StageError as exc:
        console.print(f"[bold red]Publish failed[/]: {exc}")
        raise typer.Exit(code=1) from exc
    commit = f" at {result.commit[:12]}" if result.commit else ""
    console.print(
        f"[bold green]Published[/]: {result.files} file(s) to {result.branch} "
        f"via {result.backend}{commit}"
    )


@app.command("check-determinism")
def check_determinism_command(config_path: ConfigPathOption = "quartoship.yml") -> None:
    """Render twice and report files that differ beyond timestamps."""
    config: Config = _load(config_path)
    try:
        diff = check_determinism(config, run_subprocess)
    except StageError as exc:
        console.print(f"[bold red]Render failed[/]: {exc}")
        raise typer.Exit(code=1) from exc

    if diff.is_empty:
        console.print("[bold green]Deterministic[/]: both renders match modulo timestamps.")
        return
    for label, paths in (("added", diff.added), ("removed", diff.removed), ("changed", diff.changed)):
        for path in paths:
            console.print(f"[bold red]{label}[/] {path}")
    raise typer.Exit(code=1)


@app.command()
def lint(
    config_path: ConfigPathOption = "quartoship.yml",
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Treat warnings as errors."),
    ] = False,
) -> None:
    """Check content metadata headers for common problems."""
    config: Config = _load(config_path)
    report = lint_workspace(config)

    if not report.issues:
        console.print(
            f"[bold green]Lint clean[/]: {report.document_count} document(s), no issues detected."
        )
        raise typer.Exit()

    for issue in sorted(report.issues, key=_lint_sort_key):
        style = "red" if issue.severity is IssueSeverity.ERROR else "yellow"
        location = issue.source_path
        if issue.pointer:
            location = f"{location} :: {issue.pointer}"
        console.print(f"[bold {style}]{issue.severity.name}[/] {location} - {issue.message}")

    console.print(
        f"[bold blue]Summary[/]: {report.error_count} error(s), {report.warning_count} warning(s) "
        f"across {report.document_count} document(s)."
    )

    exit_code = 0
    if report.error_count > 0 or (strict and report.warning_count > 0):
        exit_code = 1
    raise typer.Exit(code=exit_code)


@app.command()
def new(
    slug: Annotated[str, typer.Argument(..., help="Slug used for the post directory.")],
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Override the default title derived from the slug."),
    ] = None,
    author: Annotated[str | None, typer.Option("--author", "-a", help="Post author.")] = None,
    category: Annotated[
        list[str] | None,
        typer.Option("--category", help="Category for listings; repeat for several."),
    ] = None,
    config_path: ConfigPathOption = "quartoship.yml",
    force: ForceFlag = False,
) -> None:
    """Create a new post with a metadata header."""
    config: Config = _load(config_path)
    try:
        result = scaffold_post(
            config,
            slug,
            title=title,
            author=author,
            categories=category or [],
            force=force,
        )
    except ScaffoldError as exc:
        console.print(f"[bold red]Cannot scaffold[/]: {exc}")
        raise typer.Exit(code=1) from exc
    _print_scaffold_summary("post", result)


@app.command()
def init(
    target: Annotated[Path, typer.Argument(help="Project directory to initialize.")] = Path("."),
    domain: Annotated[str | None, typer.Option("--domain", "-d", help="Custom domain to publish under.")] = None,
    force: ForceFlag = False,
) -> None:
    """Write a default quartoship.yml."""
    try:
        result = init_project(target, domain=domain, force=force)
    except ScaffoldError as exc:
        console.print(f"[bold red]Cannot initialize[/]: {exc}")
        raise typer.Exit(code=1) from exc
    _print_scaffold_summary("project", result)


@app.command()
def workflow(
    config_path: ConfigPathOption = "quartoship.yml",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Destination for the workflow file."),
    ] = None,
    install_spec: Annotated[
        str,
        typer.Option("--install-spec", help="pip requirement used to install quartoship in CI."),
    ] = "quartoship",
    force: ForceFlag = False,
) -> None:
    """Generate the GitHub Actions workflow that publishes on push."""
    config: Config = _load(config_path)
    try:
        target = write_workflow(config, output, install_spec=install_spec, force=force)
    except FileExistsError as exc:
        console.print(f"[bold red]Workflow exists[/]: {exc}; pass --force to overwrite.")
        raise typer.Exit(code=1) from exc
    console.print(f"[bold green]Workflow written[/]: {_display_path(target)}")


@app.command()
def clean(
    config_path: ConfigPathOption = "quartoship.yml",
    include_cache: Annotated[
        bool,
        typer.Option("--cache", help="Also remove the cache directory (locks, state, reports)."),
    ] = False,
) -> None:
    """Remove the rendered output and, optionally, the cache."""
    config: Config = _load(config_path)
    targets: list[tuple[str, Path]] = [("site output", config.output_dir)]
    if include_cache:
        targets.append(("cache", config.cache_dir))

    removed = 0
    for label, path in targets:
        if path.exists():
            console.print(f"[bold green]Removing[/]: {label} ({_display_path(path)})")
            shutil.rmtree(path, ignore_errors=True)
            removed += 1
        else:
            console.print(f"[bold yellow]Skipping[/]: {label} ({_display_path(path)}) not found")

    noun = "directory" if removed == 1 else "directories"
    console.print(f"[bold green]Clean complete[/]: removed {removed} {noun}.")


def _print_stage_table(report: PipelineReport) -> None:
    for entry in report.stages:
        style = _STATUS_STYLES[entry.status]
        detail = f" - {entry.detail}" if entry.detail else ""
        console.print(
            f"[bold {style}]{entry.stage.value}[/] {entry.status.value} "
            f"({entry.duration_seconds:.2f}s){detail}"
        )


def _print_scaffold_summary(kind: str, result: ScaffoldResult) -> None:
    console.print(f"[bold green]Scaffold ready[/]: {kind}")
    for path in result.created:
        console.print(f"- {_display_path(path)} (new)")
    for path in result.updated:
        console.print(f"- {_display_path(path)} (updated)")
    if result.notes:
        console.print("[bold blue]Next steps[/]:")
        for note in result.notes:
            console.print(f"- {note}")


def _lint_sort_key(issue: DocumentIssue) -> tuple[int, str, str]:
    severity_order = 0 if issue.severity is IssueSeverity.ERROR else 1
    return (severity_order, issue.source_path, issue.pointer or "")


def _display_path(path: Path) -> str:
    try:
        return path.relative_to(Path.cwd()).as_posix()
    except ValueError:
        return path.as_posix()


def _load(path: str) -> Config:
    try:
        return load_config(path)
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Config file not found: {path}") from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
