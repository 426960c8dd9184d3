from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .filter_engine import FacetedFilterEngine, distinct_sorted
from .licenses import ResolvedLicenseInfo, spdx_sort_key
from .matchers import (
    match_any_string,
    match_any_value,
    match_exclusion_status,
    match_issue_status,
    match_string,
    match_string_contains,
    match_violation_status,
    match_vulnerability_status,
)
from .result_index import DependencyReference, ResultIndex
from .types_filters import ExclusionStatus, IssueStatus, ViolationStatus, VulnerabilityStatus
from .types_findings import Issue, RuleViolation, Vulnerability
from .types_identifier import Identifier
from .types_report import Package, Project


@dataclass(frozen=True)
class PackageInfo:
    """A project or package together with everything known about it."""

    metadata: Union[Package, Project]
    resolved_license: ResolvedLicenseInfo
    references: tuple[DependencyReference, ...]
    issues: tuple[Issue, ...]
    violations: tuple[RuleViolation, ...]
    vulnerabilities: tuple[Vulnerability, ...]
    excluded: bool

    @property
    def id(self) -> Identifier:
        return self.metadata.id

    @property
    def is_project(self) -> bool:
        return isinstance(self.metadata, Project)

    @property
    def projects(self) -> List[Identifier]:
        return [ref.project for ref in self.references]

    @property
    def scopes(self) -> List[str]:
        return [ref.scope for ref in self.references]


def build_package_infos(index: ResultIndex) -> List[PackageInfo]:
    """Return one row per project and package, ordered by identifier."""

    subjects: List[Union[Package, Project]] = list(index.project_by_id.values())
    subjects += [pkg for id, pkg in index.package_by_id.items() if id not in index.project_by_id]
    return [
        PackageInfo(
            metadata=subject,
            resolved_license=index.resolved_license(subject.id),
            references=tuple(index.get_references(subject.id)),
            issues=tuple(index.get_issues(subject.id)),
            violations=tuple(index.get_violations(subject.id)),
            vulnerabilities=tuple(index.get_vulnerabilities(subject.id)),
            excluded=index.is_excluded(subject.id),
        )
        for subject in sorted(subjects, key=lambda subject: subject.id)
    ]


@dataclass(frozen=True)
class PackagesFilter:
    text: str = ""
    type: Optional[str] = None
    namespace: Optional[str] = None
    project: Optional[Identifier] = None
    scope: Optional[str] = None
    license: Optional[str] = None
    issue_status: Optional[IssueStatus] = None
    violation_status: Optional[ViolationStatus] = None
    vulnerability_status: Optional[VulnerabilityStatus] = None
    exclusion_status: Optional[ExclusionStatus] = None

    def check(self, pkg: PackageInfo) -> bool:
        return (
            match_string_contains(self.text, [pkg.id.to_coordinates()])
            and match_string(self.type, pkg.id.type)
            and match_string(self.namespace, pkg.id.namespace)
            and match_any_value(self.project, pkg.projects)
            and match_any_string(self.scope, pkg.scopes)
            and match_any_string(self.license, pkg.resolved_license.license_names())
            and match_issue_status(self.issue_status, pkg.issues)
            and match_violation_status(self.violation_status, pkg.violations)
            and match_vulnerability_status(self.vulnerability_status, pkg.vulnerabilities)
            and match_exclusion_status(self.exclusion_status, pkg.excluded)
        )


class PackagesFilterEngine(FacetedFilterEngine[PackageInfo, PackagesFilter]):
    criteria_type = PackagesFilter
    name = "packages"

    def build_options(self, items: Sequence[PackageInfo]) -> Dict[str, tuple]:
        return {
            "type": distinct_sorted(pkg.id.type for pkg in items),
            "namespace": distinct_sorted(pkg.id.namespace for pkg in items),
            "project": distinct_sorted(project for pkg in items for project in pkg.projects),
            "scope": distinct_sorted(scope for pkg in items for scope in pkg.scopes),
            "license": distinct_sorted(
                (name for pkg in items for name in pkg.resolved_license.license_names()),
                key=spdx_sort_key,
            ),
            "issue_status": tuple(IssueStatus),
            "violation_status": tuple(ViolationStatus),
            "vulnerability_status": tuple(VulnerabilityStatus),
            "exclusion_status": tuple(ExclusionStatus),
        }
