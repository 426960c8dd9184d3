"""Lookup structures built once per loaded report."""

from __future__ import annotations

import dataclasses
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, TypeVar

import structlog

from .licenses import LicenseInfoCache, LicenseResolver, ReportLicenseResolver, ResolvedLicenseInfo
from .types_findings import Issue, ResolutionRule, RuleViolation, Severity, Vulnerability
from .types_identifier import Identifier
from .types_report import Package, PackageLinkage, PackageReference, Project, Report

log = structlog.get_logger("result_workbench.index")

F = TypeVar("F", Issue, RuleViolation, Vulnerability)


@dataclass(frozen=True)
class DependencyReference:
    """One place a package is reachable from: a project scope and the path to it."""

    project: Identifier
    scope: str
    linkage: PackageLinkage = PackageLinkage.DYNAMIC
    excluded: bool = False
    scope_excluded: bool = False

    @property
    def is_excluded(self) -> bool:
        return self.excluded or self.scope_excluded


@dataclass(frozen=True)
class ResultSummary:
    projects: int
    packages: int
    excluded_packages: int
    issues: dict[str, int]
    unresolved_issues: int
    rule_violations: dict[str, int]
    unresolved_violations: int
    vulnerabilities: int
    unresolved_vulnerabilities: int
    metadata: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


def _resolve(finding: F, rules: Iterable[ResolutionRule], value: str) -> F:
    matched = tuple(rule.to_resolution() for rule in rules if rule.matches(value))
    if not matched:
        return finding
    return dataclasses.replace(finding, resolutions=finding.resolutions + matched)


def _group(findings: Iterable[F], key) -> Dict[Identifier, List[F]]:
    grouped: Dict[Identifier, List[F]] = {}
    for finding in findings:
        subject = key(finding)
        if subject is not None:
            grouped.setdefault(subject, []).append(finding)
    return grouped


class ResultIndex:
    """Read-only view over one :class:`Report`.

    Instances are built by :meth:`build` and never modified afterwards; a new
    report always gets a new index.
    """

    def __init__(
        self,
        report: Report,
        license_cache: LicenseInfoCache,
        package_by_id: Dict[Identifier, Package],
        project_by_id: Dict[Identifier, Project],
        issues: List[Issue],
        violations: List[RuleViolation],
        vulnerabilities: List[Vulnerability],
        references_by_package: Dict[Identifier, List[DependencyReference]],
        resolved_licenses: Dict[Identifier, ResolvedLicenseInfo],
    ) -> None:
        self.report = report
        self.license_cache = license_cache
        self.package_by_id = package_by_id
        self.project_by_id = project_by_id
        self.issues = issues
        self.violations = violations
        self.vulnerabilities = vulnerabilities
        self.references_by_package = references_by_package
        self.resolved_licenses = resolved_licenses
        self.issues_by_subject = _group(issues, lambda issue: issue.id)
        self.violations_by_subject = _group(violations, lambda violation: violation.pkg)
        self.vulnerabilities_by_subject = _group(vulnerabilities, lambda vuln: vuln.pkg)

    @classmethod
    def build(cls, report: Report, resolver: Optional[LicenseResolver] = None) -> "ResultIndex":
        started = time.monotonic()
        cache = LicenseInfoCache(resolver or ReportLicenseResolver(report))

        project_by_id = {project.id: project for project in report.projects}
        package_by_id = {package.id: package for package in report.packages}

        references_by_package: Dict[Identifier, List[DependencyReference]] = {}
        reference_issues: List[Issue] = []
        for project in report.projects:
            project_excluded = report.is_project_excluded(project)
            for scope in project.scopes:
                scope_excluded = report.is_scope_excluded(scope)
                stack = [(ref, project_excluded) for ref in reversed(scope.dependencies)]
                while stack:
                    ref, parent_excluded = stack.pop()
                    path_excluded = parent_excluded or ref.excluded
                    references_by_package.setdefault(ref.id, []).append(
                        DependencyReference(
                            project=project.id,
                            scope=scope.name,
                            linkage=ref.linkage,
                            excluded=path_excluded,
                            scope_excluded=scope_excluded,
                        )
                    )
                    reference_issues.extend(_with_subject(ref))
                    stack.extend((child, path_excluded) for child in reversed(ref.dependencies))

        rules = report.resolutions
        issues = [
            _resolve(issue, rules.issues, issue.message)
            for issue in _unique(list(report.issues) + reference_issues)
        ]
        violations = [
            _resolve(violation, rules.rule_violations, violation.message)
            for violation in report.rule_violations
        ]
        vulnerabilities = [
            _resolve(vulnerability, rules.vulnerabilities, vulnerability.id)
            for vulnerability in report.vulnerabilities
        ]

        resolved_licenses = {
            id: cache.resolve(id) for id in list(project_by_id) + list(package_by_id)
        }

        index = cls(
            report=report,
            license_cache=cache,
            package_by_id=package_by_id,
            project_by_id=project_by_id,
            issues=issues,
            violations=violations,
            vulnerabilities=vulnerabilities,
            references_by_package=references_by_package,
            resolved_licenses=resolved_licenses,
        )
        log.info(
            "index.built",
            projects=len(project_by_id),
            packages=len(package_by_id),
            references=sum(len(refs) for refs in references_by_package.values()),
            issues=len(issues),
            violations=len(violations),
            vulnerabilities=len(vulnerabilities),
            duration_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return index

    def get_project(self, id: Identifier) -> Optional[Project]:
        return self.project_by_id.get(id)

    def get_package(self, id: Identifier) -> Optional[Package]:
        return self.package_by_id.get(id)

    def get_references(self, id: Identifier) -> List[DependencyReference]:
        return self.references_by_package.get(id, [])

    def get_issues(self, id: Identifier) -> List[Issue]:
        return self.issues_by_subject.get(id, [])

    def get_violations(self, id: Identifier) -> List[RuleViolation]:
        return self.violations_by_subject.get(id, [])

    def get_vulnerabilities(self, id: Identifier) -> List[Vulnerability]:
        return self.vulnerabilities_by_subject.get(id, [])

    def resolved_license(self, id: Identifier) -> ResolvedLicenseInfo:
        info = self.resolved_licenses.get(id)
        if info is None:
            info = self.license_cache.resolve(id)
        return info

    def is_excluded(self, id: Identifier) -> bool:
        """Return True if every reference to ``id`` is excluded.

        An id nobody references is only excluded when it is a project whose
        definition is explicitly excluded.
        """

        project = self.project_by_id.get(id)
        if project is not None and self.report.is_project_excluded(project):
            return True
        references = self.references_by_package.get(id, [])
        return bool(references) and all(ref.is_excluded for ref in references)

    def summary(self) -> ResultSummary:
        ids = list(self.project_by_id) + list(self.package_by_id)
        issue_counts = Counter(issue.severity.value for issue in self.issues)
        violation_counts = Counter(violation.severity.value for violation in self.violations)
        return ResultSummary(
            projects=len(self.project_by_id),
            packages=len(self.package_by_id),
            excluded_packages=sum(1 for id in ids if self.is_excluded(id)),
            issues={severity.value: issue_counts.get(severity.value, 0) for severity in Severity},
            unresolved_issues=sum(1 for issue in self.issues if not issue.resolutions),
            rule_violations={
                severity.value: violation_counts.get(severity.value, 0) for severity in Severity
            },
            unresolved_violations=sum(1 for violation in self.violations if not violation.resolutions),
            vulnerabilities=len(self.vulnerabilities),
            unresolved_vulnerabilities=sum(1 for vuln in self.vulnerabilities if not vuln.resolutions),
            metadata=dict(self.report.metadata),
        )


def _with_subject(ref: PackageReference) -> List[Issue]:
    return [issue if issue.id is not None else dataclasses.replace(issue, id=ref.id) for issue in ref.issues]


def _unique(issues: Iterable[Issue]) -> List[Issue]:
    seen: set[Issue] = set()
    unique: List[Issue] = []
    for issue in issues:
        if issue in seen:
            continue
        seen.add(issue)
        unique.append(issue)
    return unique
