from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import click

from .config import WorkbenchSettings
from .dependency_tree import find_paths
from .filter_engine import FacetedFilterEngine
from .loader import ResultStatus
from .logging_setup import setup_logging
from .reporting import display, render_paths, render_summary, render_tree, render_view, write_output
from .result_index import ResultIndex
from .types_identifier import Identifier
from .workbench import Workbench

VIEW_FORMATS = ["markdown", "md", "json", "html"]


def _open(ctx: click.Context, report: str) -> Workbench:
    settings: WorkbenchSettings = ctx.obj["settings"]
    workbench = Workbench(settings=settings)
    ctx.call_on_close(workbench.close)
    state = workbench.load(report).result()
    if state.status != ResultStatus.READY:
        click.echo(state.error or f"Unable to load {report}", err=True)
        raise SystemExit(1)
    return workbench


def _loaded_index(workbench: Workbench) -> ResultIndex:
    index = workbench.index
    if index is None:
        raise click.ClickException("No result is loaded.")
    return index


def _apply_filters(engine: FacetedFilterEngine, text: Optional[str], filters: dict[str, Optional[str]]) -> None:
    if text:
        engine.update_criterion("text", text)
    for dimension, raw in filters.items():
        if raw is None:
            continue
        options = engine.options(dimension)
        matches = [option for option in options if display(option) == raw]
        if not matches:
            matches = [option for option in options if display(option).lower() == raw.lower()]
        if not matches:
            available = ", ".join(display(option) for option in options) or "none"
            click.echo(f"Unknown value '{raw}' for --{dimension.replace('_', '-')}. Available: {available}", err=True)
            raise SystemExit(2)
        engine.update_criterion(dimension, matches[0])


def _emit(output: Optional[str], rendered: str) -> None:
    write_output(rendered, Path(output) if output else None)
    if not output:
        click.echo(rendered)


def view_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option(
        "--output",
        type=click.Path(dir_okay=False, writable=True, path_type=str),
        help="Write the view to a file instead of stdout.",
    )(func)
    func = click.option(
        "--format",
        "fmt",
        type=click.Choice(VIEW_FORMATS, case_sensitive=False),
        default="markdown",
        show_default=True,
        help="Output format for the view.",
    )(func)
    func = click.option("--text", help="Case-sensitive substring to search for.")(func)
    func = click.argument("report", type=str)(func)
    return func


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (defaults to RESULT_WORKBENCH_LOG_LEVEL or WARNING).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    help="Log format (defaults to RESULT_WORKBENCH_LOG_FORMAT or console).",
)
@click.option(
    "--http-timeout",
    type=float,
    help="HTTP timeout (seconds) when the result is a URL; defaults to RESULT_WORKBENCH_HTTP_TIMEOUT or 8s.",
)
@click.pass_context
def main(
    ctx: click.Context,
    log_level: Optional[str],
    log_format: Optional[str],
    http_timeout: Optional[float],
) -> None:
    """Explore dependency-analysis results from the command line."""

    settings = WorkbenchSettings.from_env()
    if log_level:
        settings.log_level = log_level.upper()
    if log_format:
        settings.log_format = log_format.lower()
    if http_timeout:
        settings.http_timeout = http_timeout
    setup_logging(settings.log_level, settings.log_format)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.argument("report", type=str)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["markdown", "md", "json"], case_sensitive=False),
    default="markdown",
    show_default=True,
)
@click.option("--output", type=click.Path(dir_okay=False, writable=True, path_type=str))
@click.pass_context
def summary(ctx: click.Context, report: str, fmt: str, output: Optional[str]) -> None:
    """Count projects, packages and findings of a result."""

    workbench = _open(ctx, report)
    _emit(output, render_summary(_loaded_index(workbench).summary(), fmt))


@main.command()
@view_options
@click.option("--type", "type_", help="Package type, e.g. Maven or NPM.")
@click.option("--namespace", help="Package namespace.")
@click.option("--project", help="Coordinates of a project referencing the package.")
@click.option("--scope", help="Scope name referencing the package.")
@click.option("--license", "license_", help="Single license from the resolved licenses.")
@click.option("--issue-status", help="HAS_ISSUES or NO_ISSUES.")
@click.option("--violation-status", help="HAS_VIOLATIONS or NO_VIOLATIONS.")
@click.option("--vulnerability-status", help="HAS_VULNERABILITY or NO_VULNERABILITY.")
@click.option("--exclusion-status", help="EXCLUDED or INCLUDED.")
@click.pass_context
def packages(
    ctx: click.Context,
    report: str,
    text: Optional[str],
    fmt: str,
    output: Optional[str],
    type_: Optional[str],
    namespace: Optional[str],
    project: Optional[str],
    scope: Optional[str],
    license_: Optional[str],
    issue_status: Optional[str],
    violation_status: Optional[str],
    vulnerability_status: Optional[str],
    exclusion_status: Optional[str],
) -> None:
    """List projects and packages."""

    workbench = _open(ctx, report)
    _apply_filters(
        workbench.packages,
        text,
        {
            "type": type_,
            "namespace": namespace,
            "project": project,
            "scope": scope,
            "license": license_,
            "issue_status": issue_status,
            "violation_status": violation_status,
            "vulnerability_status": vulnerability_status,
            "exclusion_status": exclusion_status,
        },
    )
    _emit(output, render_view("packages", workbench.packages.snapshot, fmt))


@main.command()
@view_options
@click.option("--identifier", help="Coordinates of the affected package or project.")
@click.option("--resolution-status", help="RESOLVED or UNRESOLVED.")
@click.option("--severity", help="ERROR, WARNING or HINT.")
@click.option("--source", help="Component that reported the issue.")
@click.option("--tool", help="ANALYZER, SCANNER or ADVISOR.")
@click.pass_context
def issues(
    ctx: click.Context,
    report: str,
    text: Optional[str],
    fmt: str,
    output: Optional[str],
    identifier: Optional[str],
    resolution_status: Optional[str],
    severity: Optional[str],
    source: Optional[str],
    tool: Optional[str],
) -> None:
    """List issues."""

    workbench = _open(ctx, report)
    _apply_filters(
        workbench.issues,
        text,
        {
            "identifier": identifier,
            "resolution_status": resolution_status,
            "severity": severity,
            "source": source,
            "tool": tool,
        },
    )
    _emit(output, render_view("issues", workbench.issues.snapshot, fmt))


@main.command()
@view_options
@click.option("--identifier", help="Coordinates of the affected package or project.")
@click.option("--license", "license_", help="License the rule fired for.")
@click.option("--license-source", help="DECLARED, DETECTED or CONCLUDED.")
@click.option("--resolution-status", help="RESOLVED or UNRESOLVED.")
@click.option("--rule", help="Rule name.")
@click.option("--severity", help="ERROR, WARNING or HINT.")
@click.pass_context
def violations(
    ctx: click.Context,
    report: str,
    text: Optional[str],
    fmt: str,
    output: Optional[str],
    identifier: Optional[str],
    license_: Optional[str],
    license_source: Optional[str],
    resolution_status: Optional[str],
    rule: Optional[str],
    severity: Optional[str],
) -> None:
    """List rule violations."""

    workbench = _open(ctx, report)
    _apply_filters(
        workbench.violations,
        text,
        {
            "identifier": identifier,
            "license": license_,
            "license_source": license_source,
            "resolution_status": resolution_status,
            "rule": rule,
            "severity": severity,
        },
    )
    _emit(output, render_view("violations", workbench.violations.snapshot, fmt))


@main.command()
@view_options
@click.option("--advisor", help="Advisor that reported the vulnerability.")
@click.option("--identifier", help="Coordinates of the affected package.")
@click.option("--resolution-status", help="RESOLVED or UNRESOLVED.")
@click.option("--scoring-system", help="Scoring system of a reference, e.g. CVSS3.")
@click.option("--severity", help="Severity of a reference.")
@click.pass_context
def vulnerabilities(
    ctx: click.Context,
    report: str,
    text: Optional[str],
    fmt: str,
    output: Optional[str],
    advisor: Optional[str],
    identifier: Optional[str],
    resolution_status: Optional[str],
    scoring_system: Optional[str],
    severity: Optional[str],
) -> None:
    """List vulnerabilities."""

    workbench = _open(ctx, report)
    _apply_filters(
        workbench.vulnerabilities,
        text,
        {
            "advisor": advisor,
            "identifier": identifier,
            "resolution_status": resolution_status,
            "scoring_system": scoring_system,
            "severity": severity,
        },
    )
    _emit(output, render_view("vulnerabilities", workbench.vulnerabilities.snapshot, fmt))


@main.command()
@click.argument("report", type=str)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
)
@click.option("--max-depth", type=int, help="Cut the tree off below this depth (defaults to RESULT_WORKBENCH_MAX_TREE_DEPTH).")
@click.option("--output", type=click.Path(dir_okay=False, writable=True, path_type=str))
@click.pass_context
def tree(ctx: click.Context, report: str, fmt: str, max_depth: Optional[int], output: Optional[str]) -> None:
    """Print the dependency tree of every project."""

    if max_depth:
        ctx.obj["settings"].max_tree_depth = max_depth
    workbench = _open(ctx, report)
    _emit(output, render_tree(workbench.dependency_tree, fmt))


@main.command()
@click.argument("report", type=str)
@click.argument("identifier", type=str)
@click.pass_context
def why(ctx: click.Context, report: str, identifier: str) -> None:
    """Show every dependency path leading to IDENTIFIER (type:namespace:name:version)."""

    workbench = _open(ctx, report)
    id = Identifier.from_coordinates(identifier)
    click.echo(render_paths(id, find_paths(workbench.dependency_tree, id)))


if __name__ == "__main__":
    main()
