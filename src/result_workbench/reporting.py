from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List

from jinja2 import Environment, select_autoescape

from .dependency_tree import (
    DependencyTreeItem,
    TreeError,
    TreeNode,
    TreePackage,
    TreeProject,
    TreeScope,
    iter_nodes,
)
from .filters_packages import PackageInfo
from .result_index import ResultSummary
from .types_filters import FilterSnapshot
from .types_findings import Issue, RuleViolation, Vulnerability
from .types_identifier import Identifier


env = Environment(autoescape=select_autoescape(["html", "xml"]))

VIEW_TITLES = {
    "packages": "Packages",
    "issues": "Issues",
    "violations": "Rule violations",
    "vulnerabilities": "Vulnerabilities",
}


def display(value: Any) -> str:
    if value is None:
        return "all"
    if isinstance(value, Identifier):
        return value.to_coordinates()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _resolution_text(resolutions) -> str:
    return "; ".join(f"{r.reason}: {r.comment}" if r.comment else r.reason for r in resolutions)


def _package_rows(items: Iterable[PackageInfo]) -> Iterable[dict]:
    for pkg in items:
        yield {
            "id": pkg.id.to_coordinates(),
            "kind": "project" if pkg.is_project else "package",
            "licenses": pkg.resolved_license.license_names(),
            "projects": sorted({ref.project.to_coordinates() for ref in pkg.references}),
            "scopes": sorted({ref.scope for ref in pkg.references}),
            "issues": len(pkg.issues),
            "violations": len(pkg.violations),
            "vulnerabilities": len(pkg.vulnerabilities),
            "excluded": pkg.excluded,
        }


def _issue_rows(items: Iterable[Issue]) -> Iterable[dict]:
    for issue in items:
        yield {
            "id": issue.id.to_coordinates() if issue.id else None,
            "severity": issue.severity.value,
            "tool": issue.tool.value,
            "source": issue.source,
            "message": issue.message,
            "timestamp": issue.timestamp.isoformat() if issue.timestamp else None,
            "resolved": bool(issue.resolutions),
            "resolutions": _resolution_text(issue.resolutions),
        }


def _violation_rows(items: Iterable[RuleViolation]) -> Iterable[dict]:
    for violation in items:
        yield {
            "id": violation.pkg.to_coordinates() if violation.pkg else None,
            "rule": violation.rule,
            "severity": violation.severity.value,
            "license": violation.license,
            "license_source": violation.license_source.value if violation.license_source else None,
            "message": violation.message,
            "how_to_fix": violation.how_to_fix,
            "resolved": bool(violation.resolutions),
            "resolutions": _resolution_text(violation.resolutions),
        }


def _vulnerability_rows(items: Iterable[Vulnerability]) -> Iterable[dict]:
    for vuln in items:
        yield {
            "id": vuln.pkg.to_coordinates(),
            "vulnerability": vuln.id,
            "advisor": vuln.advisor,
            "summary": vuln.summary,
            "references": [
                {"url": ref.url, "scoring_system": ref.scoring_system, "severity": ref.severity}
                for ref in vuln.references
            ],
            "resolved": bool(vuln.resolutions),
            "resolutions": _resolution_text(vuln.resolutions),
        }


ROW_BUILDERS: Dict[str, Callable[[Iterable[Any]], Iterable[dict]]] = {
    "packages": _package_rows,
    "issues": _issue_rows,
    "violations": _violation_rows,
    "vulnerabilities": _vulnerability_rows,
}

COLUMNS: Dict[str, List[tuple[str, str]]] = {
    "packages": [
        ("id", "Identifier"),
        ("kind", "Kind"),
        ("licenses", "Licenses"),
        ("scopes", "Scopes"),
        ("issues", "Issues"),
        ("violations", "Violations"),
        ("vulnerabilities", "Vulnerabilities"),
        ("excluded", "Excluded"),
    ],
    "issues": [
        ("severity", "Severity"),
        ("id", "Identifier"),
        ("tool", "Tool"),
        ("source", "Source"),
        ("message", "Message"),
        ("resolutions", "Resolutions"),
    ],
    "violations": [
        ("severity", "Severity"),
        ("rule", "Rule"),
        ("id", "Identifier"),
        ("license", "License"),
        ("message", "Message"),
        ("resolutions", "Resolutions"),
    ],
    "vulnerabilities": [
        ("vulnerability", "ID"),
        ("id", "Identifier"),
        ("advisor", "Advisor"),
        ("summary", "Summary"),
        ("resolutions", "Resolutions"),
    ],
}


def _cell(value: Any) -> str:
    if value is None or value == "" or value == []:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value).replace("|", "\\|").replace("\n", " ")


def _facets_as_dict(snapshot: FilterSnapshot) -> dict:
    return {
        dimension: {
            "selected": None if data.selected is None else display(data.selected),
            "options": [display(option) for option in data.options],
        }
        for dimension, data in snapshot.facets.items()
    }


def empty_message(kind: str) -> str:
    return f"No {VIEW_TITLES[kind].lower()} found."


def render_json(kind: str, snapshot: FilterSnapshot) -> str:
    payload = {
        "view": kind,
        "text": snapshot.text,
        "count": len(snapshot.items),
        "filters": _facets_as_dict(snapshot),
        "items": list(ROW_BUILDERS[kind](snapshot.items)),
    }
    return json.dumps(payload, indent=2)


def render_markdown(kind: str, snapshot: FilterSnapshot) -> str:
    lines = [f"# {VIEW_TITLES[kind]}", ""]
    active = [
        f"{dimension}={display(data.selected)}"
        for dimension, data in snapshot.facets.items()
        if data.selected is not None
    ]
    if snapshot.text:
        active.insert(0, f"text~{snapshot.text}")
    lines.append(f"Filters: {', '.join(active) if active else 'none'}")
    lines.append(f"Showing: {len(snapshot.items)}")
    lines.append("")

    rows = list(ROW_BUILDERS[kind](snapshot.items))
    if not rows:
        lines.append(empty_message(kind))
        return "\n".join(lines)

    columns = COLUMNS[kind]
    lines.append("| " + " | ".join(title for _, title in columns) + " |")
    lines.append("| " + " | ".join("---" for _ in columns) + " |")
    for row in rows:
        lines.append("| " + " | ".join(_cell(row[key]) for key, _ in columns) + " |")
    return "\n".join(lines)


def render_html(kind: str, snapshot: FilterSnapshot) -> str:
    template = env.from_string(
        """
<!doctype html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\" />
  <title>{{ title }}</title>
  <style>
    body { font-family: Arial, sans-serif; margin: 2rem; }
    h1 { color: #1f2937; }
    table { border-collapse: collapse; width: 100%; margin-bottom: 1.5rem; }
    th, td { border: 1px solid #d1d5db; padding: 0.5rem; vertical-align: top; }
    th { background: #f3f4f6; text-align: left; }
    .filters span { display: inline-block; margin-right: 0.75rem; }
    .empty { color: #6b7280; font-style: italic; }
  </style>
</head>
<body>
  <h1>{{ title }}</h1>
  <p class=\"filters\">
    {% if text %}<span>Text: <strong>{{ text }}</strong></span>{% endif %}
    {% for name, facet in filters.items() %}
    <span>{{ name }}: <strong>{{ facet.selected or "all" }}</strong> ({{ facet.options | length }} options)</span>
    {% endfor %}
  </p>
  {% if rows %}
  <table>
    <thead><tr>{% for key, label in columns %}<th>{{ label }}</th>{% endfor %}</tr></thead>
    <tbody>
      {% for row in rows %}
      <tr>{% for key, label in columns %}<td>{{ cell(row[key]) }}</td>{% endfor %}</tr>
      {% endfor %}
    </tbody>
  </table>
  {% else %}
  <p class=\"empty\">{{ empty }}</p>
  {% endif %}
</body>
</html>
"""
    )

    return template.render(
        title=VIEW_TITLES[kind],
        text=snapshot.text,
        filters=_facets_as_dict(snapshot),
        columns=COLUMNS[kind],
        rows=list(ROW_BUILDERS[kind](snapshot.items)),
        cell=_cell,
        empty=empty_message(kind),
    )


def render_view(kind: str, snapshot: FilterSnapshot, fmt: str) -> str:
    fmt = fmt.lower()
    if kind not in ROW_BUILDERS:
        raise ValueError(f"Unknown view: {kind}")
    if fmt == "json":
        return render_json(kind, snapshot)
    if fmt in {"md", "markdown"}:
        return render_markdown(kind, snapshot)
    if fmt == "html":
        return render_html(kind, snapshot)
    raise ValueError(f"Unknown output format: {fmt}")


def tree_label(item: DependencyTreeItem) -> str:
    if isinstance(item, TreeProject):
        licenses = ", ".join(item.resolved_license.license_names()) or "no license"
        return f"[project] {item.project.id.to_coordinates()} ({item.linkage.value}; {licenses})"
    if isinstance(item, TreeScope):
        suffix = " [excluded]" if item.excluded else ""
        return f"[scope] {item.scope.name}{suffix}"
    if isinstance(item, TreePackage):
        licenses = ", ".join(item.resolved_license.license_names()) or "no license"
        suffix = " [excluded]" if item.excluded else ""
        issues = f"; {len(item.issues)} issue(s)" if item.issues else ""
        return f"{item.id.to_coordinates()} ({item.linkage.value}; {licenses}{issues}){suffix}"
    if isinstance(item, TreeError):
        return f"[error] {item.message}"
    raise TypeError(f"Unknown dependency tree item: {item!r}")


def tree_item_as_dict(item: DependencyTreeItem) -> dict:
    if isinstance(item, TreeProject):
        return {
            "kind": "project",
            "id": item.project.id.to_coordinates(),
            "linkage": item.linkage.value,
            "licenses": item.resolved_license.license_names(),
            "issues": len(item.issues),
        }
    if isinstance(item, TreeScope):
        return {"kind": "scope", "name": item.scope.name, "excluded": item.excluded}
    if isinstance(item, TreePackage):
        return {
            "kind": "package",
            "id": item.id.to_coordinates(),
            "linkage": item.linkage.value,
            "licenses": item.resolved_license.license_names(),
            "issues": len(item.issues),
            "excluded": item.excluded,
        }
    if isinstance(item, TreeError):
        return {"kind": "error", "id": item.id.to_coordinates(), "message": item.message}
    raise TypeError(f"Unknown dependency tree item: {item!r}")


def _tree_as_dict(node: TreeNode) -> dict:
    payload = tree_item_as_dict(node.value)
    payload["children"] = [_tree_as_dict(child) for child in node.children]
    return payload


def render_tree(forest: List[TreeNode], fmt: str = "text") -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return json.dumps([_tree_as_dict(node) for node in forest], indent=2)
    if fmt != "text":
        raise ValueError(f"Unknown tree format: {fmt}")
    if not forest:
        return "No projects found."
    return "\n".join("  " * depth + tree_label(node.value) for depth, node in iter_nodes(forest))


def render_paths(id: Identifier, paths: List[List[DependencyTreeItem]]) -> str:
    if not paths:
        return f"{id.to_coordinates()} is not reachable from any project."
    lines = [f"{id.to_coordinates()} is reachable through {len(paths)} path(s):"]
    for path in paths:
        lines.append("  " + " -> ".join(tree_label(item) for item in path))
    return "\n".join(lines)


def render_summary(summary: ResultSummary, fmt: str = "markdown") -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return json.dumps(summary.as_dict(), indent=2, default=str)
    if fmt not in {"md", "markdown"}:
        raise ValueError(f"Unknown summary format: {fmt}")

    lines = [
        "# Result summary",
        "",
        f"Projects: {summary.projects}",
        f"Packages: {summary.packages} ({summary.excluded_packages} excluded)",
        "",
        "| Finding | " + " | ".join(summary.issues) + " | Unresolved |",
        "| --- | " + " | ".join("---" for _ in summary.issues) + " | --- |",
        "| Issues | "
        + " | ".join(str(count) for count in summary.issues.values())
        + f" | {summary.unresolved_issues} |",
        "| Rule violations | "
        + " | ".join(str(count) for count in summary.rule_violations.values())
        + f" | {summary.unresolved_violations} |",
        "",
        f"Vulnerabilities: {summary.vulnerabilities} ({summary.unresolved_vulnerabilities} unresolved)",
    ]
    for key, value in summary.metadata.items():
        lines.append(f"{key}: {value}")
    return "\n".join(lines)


def write_output(output: str, destination: Path | None) -> str:
    if destination:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(output)
    return output
