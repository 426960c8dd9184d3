from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .types_identifier import Identifier


class Severity(Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    HINT = "HINT"


class Tool(Enum):
    ANALYZER = "ANALYZER"
    SCANNER = "SCANNER"
    ADVISOR = "ADVISOR"


class LicenseSource(Enum):
    DECLARED = "DECLARED"
    DETECTED = "DETECTED"
    CONCLUDED = "CONCLUDED"


class ResolutionStatus(Enum):
    RESOLVED = "RESOLVED"
    UNRESOLVED = "UNRESOLVED"


@dataclass(frozen=True)
class Resolution:
    """A curated explanation of why a finding is accepted."""

    reason: str
    comment: str = ""


@dataclass(frozen=True)
class Issue:
    id: Optional[Identifier]
    message: str
    source: str = ""
    tool: Tool = Tool.ANALYZER
    severity: Severity = Severity.ERROR
    timestamp: Optional[datetime] = None
    resolutions: tuple[Resolution, ...] = ()


@dataclass(frozen=True)
class RuleViolation:
    pkg: Optional[Identifier]
    rule: str
    message: str = ""
    license: Optional[str] = None
    license_source: Optional[LicenseSource] = None
    severity: Severity = Severity.ERROR
    how_to_fix: str = ""
    resolutions: tuple[Resolution, ...] = ()


@dataclass(frozen=True)
class VulnerabilityReference:
    url: str
    scoring_system: Optional[str] = None
    severity: Optional[str] = None


@dataclass(frozen=True)
class Vulnerability:
    pkg: Identifier
    id: str
    advisor: str = ""
    summary: str = ""
    references: tuple[VulnerabilityReference, ...] = ()
    resolutions: tuple[Resolution, ...] = ()


@dataclass(frozen=True)
class ResolutionRule:
    """Report-level resolution applied to every finding its pattern matches.

    Issue and rule violation rules match against the finding message,
    vulnerability rules match against the vulnerability id. Patterns must
    match the whole value.
    """

    pattern: str
    reason: str
    comment: str = ""

    def matches(self, value: str) -> bool:
        try:
            return re.fullmatch(self.pattern, value) is not None
        except re.error:
            return self.pattern == value

    def to_resolution(self) -> Resolution:
        return Resolution(reason=self.reason, comment=self.comment)


@dataclass(frozen=True)
class Resolutions:
    issues: tuple[ResolutionRule, ...] = ()
    rule_violations: tuple[ResolutionRule, ...] = ()
    vulnerabilities: tuple[ResolutionRule, ...] = ()
