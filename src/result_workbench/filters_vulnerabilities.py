from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .filter_engine import FacetedFilterEngine, distinct_sorted
from .matchers import (
    match_any_string,
    match_resolution_status,
    match_string,
    match_string_contains,
    match_value,
)
from .types_findings import ResolutionStatus, Vulnerability
from .types_identifier import Identifier


def severity_sort_key(severity: str) -> tuple:
    """Order numeric scores by value and put named severities after them."""

    try:
        return (0, float(severity), severity)
    except ValueError:
        return (1, 0.0, severity)


@dataclass(frozen=True)
class VulnerabilitiesFilter:
    text: str = ""
    advisor: Optional[str] = None
    identifier: Optional[Identifier] = None
    resolution_status: Optional[ResolutionStatus] = None
    scoring_system: Optional[str] = None
    severity: Optional[str] = None

    def check(self, vulnerability: Vulnerability) -> bool:
        return (
            match_string(self.advisor, vulnerability.advisor)
            and match_value(self.identifier, vulnerability.pkg)
            and match_resolution_status(self.resolution_status, vulnerability.resolutions)
            and match_any_string(
                self.scoring_system, (ref.scoring_system or "" for ref in vulnerability.references)
            )
            and match_any_string(self.severity, (ref.severity or "" for ref in vulnerability.references))
            and match_string_contains(
                self.text,
                [
                    vulnerability.pkg.to_coordinates(),
                    vulnerability.id,
                    vulnerability.advisor,
                    vulnerability.summary,
                ],
            )
        )


class VulnerabilitiesFilterEngine(FacetedFilterEngine[Vulnerability, VulnerabilitiesFilter]):
    criteria_type = VulnerabilitiesFilter
    name = "vulnerabilities"

    def build_options(self, items: Sequence[Vulnerability]) -> Dict[str, tuple]:
        return {
            "advisor": distinct_sorted(vuln.advisor for vuln in items),
            "identifier": distinct_sorted(vuln.pkg for vuln in items),
            "resolution_status": tuple(ResolutionStatus),
            "scoring_system": distinct_sorted(
                ref.scoring_system for vuln in items for ref in vuln.references
            ),
            "severity": distinct_sorted(
                (ref.severity for vuln in items for ref in vuln.references), key=severity_sort_key
            ),
        }
