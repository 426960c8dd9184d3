"""Read analysis results from JSON/YAML files or URLs into :class:`Report` objects."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import requests  # type: ignore[import-untyped]
import structlog
import yaml

from .types_findings import (
    Issue,
    LicenseSource,
    Resolution,
    ResolutionRule,
    Resolutions,
    RuleViolation,
    Severity,
    Tool,
    Vulnerability,
    VulnerabilityReference,
)
from .types_identifier import Identifier
from .types_report import (
    Excludes,
    LicenseFinding,
    Package,
    PackageLinkage,
    PackageReference,
    PathExclude,
    Project,
    Report,
    Scope,
    ScopeExclude,
)

log = structlog.get_logger("result_workbench.reader")

YAML_SUFFIXES = {".yml", ".yaml"}


class ReportLoadError(Exception):
    """Raised when a result cannot be read or does not have the expected shape."""


def _identifier(value: Any) -> Identifier:
    if isinstance(value, Identifier):
        return value
    if isinstance(value, str):
        return Identifier.from_coordinates(value)
    if isinstance(value, Mapping):
        return Identifier(
            type=str(value.get("type", "")),
            namespace=str(value.get("namespace", "")),
            name=str(value.get("name", "")),
            version=str(value.get("version", "")),
        )
    raise ReportLoadError(f"Invalid identifier: {value!r}")


def _optional_identifier(value: Any) -> Optional[Identifier]:
    return None if value in (None, "") else _identifier(value)


def _enum(enum_type, value: Any, default=None):
    if value in (None, ""):
        return default
    try:
        return enum_type(str(value).upper())
    except ValueError as exc:
        raise ReportLoadError(f"Invalid {enum_type.__name__} value: {value!r}") from exc


def _timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ReportLoadError(f"Expected a list for '{what}', got {type(value).__name__}")
    return value


def _strings(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def _resolutions(entries: Any) -> tuple[Resolution, ...]:
    return tuple(
        Resolution(reason=str(entry.get("reason", "")), comment=str(entry.get("comment", "")))
        for entry in _list(entries, "resolutions")
    )


def _issue(entry: Mapping[str, Any]) -> Issue:
    return Issue(
        id=_optional_identifier(entry.get("id")),
        message=str(entry.get("message", "")),
        source=str(entry.get("source", "")),
        tool=_enum(Tool, entry.get("tool"), Tool.ANALYZER),
        severity=_enum(Severity, entry.get("severity"), Severity.ERROR),
        timestamp=_timestamp(entry.get("timestamp")),
        resolutions=_resolutions(entry.get("resolutions")),
    )


def _reference(entry: Mapping[str, Any]) -> PackageReference:
    return PackageReference(
        id=_identifier(entry.get("id")),
        linkage=_enum(PackageLinkage, entry.get("linkage"), PackageLinkage.DYNAMIC),
        excluded=bool(entry.get("excluded", False)),
        issues=tuple(_issue(issue) for issue in _list(entry.get("issues"), "issues")),
        dependencies=tuple(_reference(child) for child in _list(entry.get("dependencies"), "dependencies")),
    )


def _project(entry: Mapping[str, Any]) -> Project:
    return Project(
        id=_identifier(entry.get("id")),
        definition_file_path=str(entry.get("definition_file_path", "")),
        declared_licenses=_strings(entry.get("declared_licenses")),
        scopes=tuple(
            Scope(
                name=str(scope.get("name", "")),
                dependencies=tuple(_reference(ref) for ref in _list(scope.get("dependencies"), "dependencies")),
                excluded=bool(scope.get("excluded", False)),
            )
            for scope in _list(entry.get("scopes"), "scopes")
        ),
        excluded=bool(entry.get("excluded", False)),
        homepage_url=str(entry.get("homepage_url", "")),
        vcs_url=str(entry.get("vcs_url", "")),
    )


def _package(entry: Mapping[str, Any]) -> Package:
    return Package(
        id=_identifier(entry.get("id")),
        declared_licenses=_strings(entry.get("declared_licenses")),
        concluded_license=entry.get("concluded_license") or None,
        description=str(entry.get("description", "")),
        homepage_url=str(entry.get("homepage_url", "")),
        vcs_url=str(entry.get("vcs_url", "")),
        curations=_strings(entry.get("curations")),
    )


def _violation(entry: Mapping[str, Any]) -> RuleViolation:
    return RuleViolation(
        pkg=_optional_identifier(entry.get("pkg")),
        rule=str(entry.get("rule", "")),
        message=str(entry.get("message", "")),
        license=entry.get("license") or None,
        license_source=_enum(LicenseSource, entry.get("license_source")),
        severity=_enum(Severity, entry.get("severity"), Severity.ERROR),
        how_to_fix=str(entry.get("how_to_fix", "")),
        resolutions=_resolutions(entry.get("resolutions")),
    )


def _vulnerability(entry: Mapping[str, Any]) -> Vulnerability:
    return Vulnerability(
        pkg=_identifier(entry.get("pkg")),
        id=str(entry.get("id", "")),
        advisor=str(entry.get("advisor", "")),
        summary=str(entry.get("summary", "")),
        references=tuple(
            VulnerabilityReference(
                url=str(ref.get("url", "")),
                scoring_system=ref.get("scoring_system") or None,
                severity=str(ref["severity"]) if ref.get("severity") not in (None, "") else None,
            )
            for ref in _list(entry.get("references"), "references")
        ),
        resolutions=_resolutions(entry.get("resolutions")),
    )


def _rules(entries: Any, key: str) -> tuple[ResolutionRule, ...]:
    return tuple(
        ResolutionRule(
            pattern=str(entry.get(key, "")),
            reason=str(entry.get("reason", "")),
            comment=str(entry.get("comment", "")),
        )
        for entry in _list(entries, "resolutions")
    )


def _license_findings(data: Any) -> dict[Identifier, tuple[LicenseFinding, ...]]:
    if not data:
        return {}
    if not isinstance(data, Mapping):
        raise ReportLoadError("Expected a mapping for 'license_findings'")
    return {
        _identifier(id): tuple(
            LicenseFinding(license=str(finding.get("license", "")), path=str(finding.get("path", "")))
            for finding in _list(findings, "license_findings")
        )
        for id, findings in data.items()
    }


def report_from_dict(data: Mapping[str, Any]) -> Report:
    """Build a :class:`Report` from its serialized form."""

    if not isinstance(data, Mapping):
        raise ReportLoadError(f"Expected a mapping at the top level, got {type(data).__name__}")

    try:
        resolutions = data.get("resolutions") or {}
        excludes = data.get("excludes") or {}
        return Report(
            projects=tuple(_project(entry) for entry in _list(data.get("projects"), "projects")),
            packages=tuple(_package(entry) for entry in _list(data.get("packages"), "packages")),
            issues=tuple(_issue(entry) for entry in _list(data.get("issues"), "issues")),
            rule_violations=tuple(
                _violation(entry) for entry in _list(data.get("rule_violations"), "rule_violations")
            ),
            vulnerabilities=tuple(
                _vulnerability(entry) for entry in _list(data.get("vulnerabilities"), "vulnerabilities")
            ),
            license_findings=_license_findings(data.get("license_findings")),
            resolutions=Resolutions(
                issues=_rules(resolutions.get("issues"), "message"),
                rule_violations=_rules(resolutions.get("rule_violations"), "message"),
                vulnerabilities=_rules(resolutions.get("vulnerabilities"), "id"),
            ),
            excludes=Excludes(
                paths=tuple(
                    PathExclude(
                        pattern=str(entry.get("pattern", "")),
                        reason=str(entry.get("reason", "")),
                        comment=str(entry.get("comment", "")),
                    )
                    for entry in _list(excludes.get("paths"), "excludes.paths")
                ),
                scopes=tuple(
                    ScopeExclude(
                        pattern=str(entry.get("pattern", "")),
                        reason=str(entry.get("reason", "")),
                        comment=str(entry.get("comment", "")),
                    )
                    for entry in _list(excludes.get("scopes"), "excludes.scopes")
                ),
            ),
            metadata=dict(data.get("metadata") or {}),
        )
    except ReportLoadError:
        raise
    except RecursionError as exc:
        raise ReportLoadError("Malformed result: dependencies are nested too deeply") from exc
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ReportLoadError(f"Malformed result: {exc}") from exc


def _parse(text: str, yaml_format: bool) -> Any:
    try:
        if yaml_format:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ReportLoadError(f"Unable to parse result: {exc}") from exc
    except RecursionError as exc:
        raise ReportLoadError("Unable to parse result: nested too deeply") from exc


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def _fetch(url: str, timeout: float) -> str:
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise ReportLoadError(f"Unable to fetch result: {exc}") from exc
    if response.status_code != 200:
        raise ReportLoadError(f"Server returned {response.status_code} for {url}")
    return response.text


def read_report(source: Union[str, Path], timeout: float = 8.0) -> Report:
    """Read a result file (``.json``, ``.yml``, ``.yaml``) or an http(s) URL."""

    source_text = str(source)
    yaml_format = any(source_text.lower().split("?")[0].endswith(suffix) for suffix in YAML_SUFFIXES)

    if _is_url(source_text):
        text = _fetch(source_text, timeout)
    else:
        path = Path(source_text)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ReportLoadError(f"Unable to read {path}: {exc.strerror or exc}") from exc
        except UnicodeDecodeError as exc:
            raise ReportLoadError(
                f"Unable to read {path}: not valid UTF-8 ({exc.reason} at byte {exc.start})"
            ) from exc

    data = _parse(text, yaml_format)
    report = report_from_dict(data)
    log.debug("reader.loaded", source=source_text, projects=len(report.projects), packages=len(report.packages))
    return report
