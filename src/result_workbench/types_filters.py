from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class IssueStatus(Enum):
    HAS_ISSUES = "HAS_ISSUES"
    NO_ISSUES = "NO_ISSUES"


class ViolationStatus(Enum):
    HAS_VIOLATIONS = "HAS_VIOLATIONS"
    NO_VIOLATIONS = "NO_VIOLATIONS"


class VulnerabilityStatus(Enum):
    HAS_VULNERABILITY = "HAS_VULNERABILITY"
    NO_VULNERABILITY = "NO_VULNERABILITY"


class ExclusionStatus(Enum):
    EXCLUDED = "EXCLUDED"
    INCLUDED = "INCLUDED"


@dataclass(frozen=True)
class FilterData(Generic[T]):
    """Current selection of one facet (``None`` = all) and its options."""

    selected: Optional[T] = None
    options: tuple[T, ...] = ()


@dataclass(frozen=True)
class FilterSnapshot(Generic[T]):
    """What a filter engine publishes after every recomputation."""

    items: tuple[T, ...] = ()
    criteria: Any = None
    facets: dict[str, FilterData] = field(default_factory=dict)
    text: str = ""
