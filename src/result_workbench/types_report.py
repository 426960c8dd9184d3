from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from .types_findings import Issue, Resolutions, RuleViolation, Vulnerability
from .types_identifier import Identifier


class PackageLinkage(Enum):
    DYNAMIC = "DYNAMIC"
    STATIC = "STATIC"
    PROJECT_DYNAMIC = "PROJECT_DYNAMIC"
    PROJECT_STATIC = "PROJECT_STATIC"


@dataclass(frozen=True)
class PackageReference:
    """One edge of the dependency graph, with the edges below it."""

    id: Identifier
    linkage: PackageLinkage = PackageLinkage.DYNAMIC
    excluded: bool = False
    issues: tuple[Issue, ...] = ()
    dependencies: tuple["PackageReference", ...] = ()

    def walk(self) -> Iterator["PackageReference"]:
        """Yield this reference and every reference below it, depth first.

        The walk follows the nesting of the data and terminates on any
        finite report; identifiers repeating along a path are not detected
        here.
        """

        stack = [self]
        while stack:
            ref = stack.pop()
            yield ref
            stack.extend(reversed(ref.dependencies))


@dataclass(frozen=True)
class Scope:
    name: str
    dependencies: tuple[PackageReference, ...] = ()
    excluded: bool = False


@dataclass(frozen=True)
class Project:
    id: Identifier
    definition_file_path: str = ""
    declared_licenses: tuple[str, ...] = ()
    scopes: tuple[Scope, ...] = ()
    excluded: bool = False
    homepage_url: str = ""
    vcs_url: str = ""


@dataclass(frozen=True)
class Package:
    id: Identifier
    declared_licenses: tuple[str, ...] = ()
    concluded_license: Optional[str] = None
    description: str = ""
    homepage_url: str = ""
    vcs_url: str = ""
    curations: tuple[str, ...] = ()


@dataclass(frozen=True)
class LicenseFinding:
    """A license detected by a scanner in one file of a package."""

    license: str
    path: str = ""


@dataclass(frozen=True)
class PathExclude:
    pattern: str
    reason: str = ""
    comment: str = ""

    def matches(self, path: str) -> bool:
        return bool(path) and fnmatch.fnmatch(path, self.pattern)


@dataclass(frozen=True)
class ScopeExclude:
    pattern: str
    reason: str = ""
    comment: str = ""

    def matches(self, scope_name: str) -> bool:
        try:
            return re.fullmatch(self.pattern, scope_name) is not None
        except re.error:
            return self.pattern == scope_name


@dataclass(frozen=True)
class Excludes:
    paths: tuple[PathExclude, ...] = ()
    scopes: tuple[ScopeExclude, ...] = ()

    def is_path_excluded(self, path: str) -> bool:
        return any(exclude.matches(path) for exclude in self.paths)

    def is_scope_excluded(self, scope_name: str) -> bool:
        return any(exclude.matches(scope_name) for exclude in self.scopes)


@dataclass(frozen=True)
class Report:
    """A complete analysis result. Replaced wholesale, never edited."""

    projects: tuple[Project, ...] = ()
    packages: tuple[Package, ...] = ()
    issues: tuple[Issue, ...] = ()
    rule_violations: tuple[RuleViolation, ...] = ()
    vulnerabilities: tuple[Vulnerability, ...] = ()
    license_findings: dict[Identifier, tuple[LicenseFinding, ...]] = field(default_factory=dict)
    resolutions: Resolutions = field(default_factory=Resolutions)
    excludes: Excludes = field(default_factory=Excludes)
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_project_excluded(self, project: Project) -> bool:
        return project.excluded or self.excludes.is_path_excluded(project.definition_file_path)

    def is_scope_excluded(self, scope: Scope) -> bool:
        return scope.excluded or self.excludes.is_scope_excluded(scope.name)
