from __future__ import annotations

"""Shared data structures for a loaded analysis result.

The definitions live in domain-focused modules; this module keeps a single
stable import path for callers.
"""

from .types_filters import (
    ExclusionStatus,
    FilterData,
    FilterSnapshot,
    IssueStatus,
    ViolationStatus,
    VulnerabilityStatus,
)
from .types_findings import (
    Issue,
    LicenseSource,
    Resolution,
    ResolutionRule,
    Resolutions,
    ResolutionStatus,
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

__all__ = [
    "ExclusionStatus",
    "Excludes",
    "FilterData",
    "FilterSnapshot",
    "Identifier",
    "Issue",
    "IssueStatus",
    "LicenseFinding",
    "LicenseSource",
    "Package",
    "PackageLinkage",
    "PackageReference",
    "PathExclude",
    "Project",
    "Report",
    "Resolution",
    "ResolutionRule",
    "ResolutionStatus",
    "Resolutions",
    "RuleViolation",
    "Scope",
    "ScopeExclude",
    "Severity",
    "Tool",
    "ViolationStatus",
    "Vulnerability",
    "VulnerabilityReference",
    "VulnerabilityStatus",
]
