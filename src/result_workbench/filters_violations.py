from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .filter_engine import FacetedFilterEngine, distinct_sorted
from .licenses import spdx_sort_key
from .matchers import match_resolution_status, match_string, match_string_contains, match_value
from .types_findings import LicenseSource, ResolutionStatus, RuleViolation, Severity
from .types_identifier import Identifier


@dataclass(frozen=True)
class ViolationsFilter:
    text: str = ""
    identifier: Optional[Identifier] = None
    license: Optional[str] = None
    license_source: Optional[LicenseSource] = None
    resolution_status: Optional[ResolutionStatus] = None
    rule: Optional[str] = None
    severity: Optional[Severity] = None

    def check(self, violation: RuleViolation) -> bool:
        return (
            match_value(self.identifier, violation.pkg)
            and match_value(self.license, violation.license)
            and match_value(self.license_source, violation.license_source)
            and match_resolution_status(self.resolution_status, violation.resolutions)
            and match_string(self.rule, violation.rule)
            and match_value(self.severity, violation.severity)
            and match_string_contains(
                self.text,
                [
                    violation.pkg.to_coordinates() if violation.pkg else None,
                    violation.rule,
                    violation.license,
                    violation.license_source.value if violation.license_source else None,
                    violation.message,
                    violation.how_to_fix,
                ],
            )
        )


class ViolationsFilterEngine(FacetedFilterEngine[RuleViolation, ViolationsFilter]):
    criteria_type = ViolationsFilter
    name = "violations"

    def build_options(self, items: Sequence[RuleViolation]) -> Dict[str, tuple]:
        return {
            "identifier": distinct_sorted(violation.pkg for violation in items),
            "license": distinct_sorted((violation.license for violation in items), key=spdx_sort_key),
            "license_source": tuple(LicenseSource),
            "resolution_status": tuple(ResolutionStatus),
            "rule": distinct_sorted(violation.rule for violation in items),
            "severity": tuple(Severity),
        }
