from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .filter_engine import FacetedFilterEngine, distinct_sorted
from .matchers import match_resolution_status, match_string, match_string_contains, match_value
from .types_findings import Issue, ResolutionStatus, Severity, Tool
from .types_identifier import Identifier


@dataclass(frozen=True)
class IssuesFilter:
    text: str = ""
    identifier: Optional[Identifier] = None
    resolution_status: Optional[ResolutionStatus] = None
    severity: Optional[Severity] = None
    source: Optional[str] = None
    tool: Optional[Tool] = None

    def check(self, issue: Issue) -> bool:
        return (
            match_value(self.identifier, issue.id)
            and match_resolution_status(self.resolution_status, issue.resolutions)
            and match_value(self.severity, issue.severity)
            and match_string(self.source, issue.source)
            and match_value(self.tool, issue.tool)
            and match_string_contains(
                self.text,
                [
                    issue.id.to_coordinates() if issue.id else None,
                    issue.source,
                    issue.message,
                    issue.tool.value,
                ],
            )
        )


class IssuesFilterEngine(FacetedFilterEngine[Issue, IssuesFilter]):
    criteria_type = IssuesFilter
    name = "issues"

    def build_options(self, items: Sequence[Issue]) -> Dict[str, tuple]:
        return {
            "identifier": distinct_sorted(issue.id for issue in items),
            "resolution_status": tuple(ResolutionStatus),
            "severity": tuple(Severity),
            "source": distinct_sorted(issue.source for issue in items),
            "tool": tuple(Tool),
        }
