"""Predicates shared by every filter engine.

Each matcher returns ``True`` when its filter is unset so that criteria can
be conjoined without special cases for "all".
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence, TypeVar

from .types_filters import ExclusionStatus, IssueStatus, ViolationStatus, VulnerabilityStatus
from .types_findings import ResolutionStatus

T = TypeVar("T")


def match_exclusion_status(filter: Optional[ExclusionStatus], value: bool) -> bool:
    return (
        filter is None
        or (filter == ExclusionStatus.EXCLUDED and value)
        or (filter == ExclusionStatus.INCLUDED and not value)
    )


def match_issue_status(filter: Optional[IssueStatus], value: Sequence[Any]) -> bool:
    return (
        filter is None
        or (filter == IssueStatus.HAS_ISSUES and len(value) > 0)
        or (filter == IssueStatus.NO_ISSUES and len(value) == 0)
    )


def match_resolution_status(filter: Optional[ResolutionStatus], value: Sequence[Any]) -> bool:
    return (
        filter is None
        or (filter == ResolutionStatus.RESOLVED and len(value) > 0)
        or (filter == ResolutionStatus.UNRESOLVED and len(value) == 0)
    )


def match_violation_status(filter: Optional[ViolationStatus], value: Sequence[Any]) -> bool:
    return (
        filter is None
        or (filter == ViolationStatus.HAS_VIOLATIONS and len(value) > 0)
        or (filter == ViolationStatus.NO_VIOLATIONS and len(value) == 0)
    )


def match_vulnerability_status(filter: Optional[VulnerabilityStatus], value: Sequence[Any]) -> bool:
    return (
        filter is None
        or (filter == VulnerabilityStatus.HAS_VULNERABILITY and len(value) > 0)
        or (filter == VulnerabilityStatus.NO_VULNERABILITY and len(value) == 0)
    )


def match_string(filter: Optional[str], *values: str) -> bool:
    return not filter or filter in values


def match_any_string(filter: Optional[str], values: Iterable[str]) -> bool:
    return not filter or filter in set(values)


def match_string_contains(filter: Optional[str], values: Iterable[Optional[str]]) -> bool:
    # case-sensitive
    return not filter or any(filter in value for value in values if value)


def match_value(filter: Optional[T], value: Optional[T]) -> bool:
    return filter is None or filter == value


def match_any_value(filter: Optional[T], values: Iterable[T]) -> bool:
    return filter is None or any(value == filter for value in values)
