"""License resolution for packages and projects.

The index asks a :class:`LicenseResolver` for the licenses of every project
and package. Resolution is memoized per identifier by :class:`LicenseInfoCache`
so that the resolver is called at most once per id while a result is loaded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Iterable, List, Optional, Protocol

import structlog

from .types_findings import LicenseSource
from .types_identifier import Identifier
from .types_report import Report

log = structlog.get_logger("result_workbench.licenses")

_OPERATOR = re.compile(r"\s+(?:AND|OR)\s+")


@dataclass(frozen=True)
class ResolvedLicense:
    license: str
    sources: frozenset[LicenseSource] = frozenset()


@dataclass(frozen=True)
class ResolvedLicenseInfo:
    id: Identifier
    licenses: tuple[ResolvedLicense, ...] = ()

    def license_names(self) -> List[str]:
        return [resolved.license for resolved in self.licenses]


class LicenseResolver(Protocol):
    def resolve(self, id: Identifier) -> ResolvedLicenseInfo:
        ...


def split_license_expression(expression: str) -> List[str]:
    """Split an SPDX expression into its single licenses.

    ``WITH`` clauses stay attached to their license; parentheses are dropped.
    """

    cleaned = expression.replace("(", " ").replace(")", " ").strip()
    if not cleaned:
        return []
    return [part.strip() for part in _OPERATOR.split(cleaned) if part.strip()]


def spdx_sort_key(license_name: str) -> tuple[str, str]:
    return (license_name.lower(), license_name)


class ReportLicenseResolver:
    """Resolve licenses from the declared, concluded and detected data of a report.

    Detected findings located in excluded paths are ignored.
    """

    def __init__(self, report: Report) -> None:
        self._report = report
        self._declared: Dict[Identifier, tuple[str, ...]] = {}
        self._concluded: Dict[Identifier, Optional[str]] = {}
        for project in report.projects:
            self._declared[project.id] = project.declared_licenses
        for package in report.packages:
            self._declared.setdefault(package.id, package.declared_licenses)
            self._concluded[package.id] = package.concluded_license

    def resolve(self, id: Identifier) -> ResolvedLicenseInfo:
        sources: Dict[str, set[LicenseSource]] = {}

        def _add(expressions: Iterable[str], source: LicenseSource) -> None:
            for expression in expressions:
                for license_name in split_license_expression(expression):
                    sources.setdefault(license_name, set()).add(source)

        _add(self._declared.get(id, ()), LicenseSource.DECLARED)
        concluded = self._concluded.get(id)
        if concluded:
            _add([concluded], LicenseSource.CONCLUDED)

        excludes = self._report.excludes
        _add(
            (
                finding.license
                for finding in self._report.license_findings.get(id, ())
                if not excludes.is_path_excluded(finding.path)
            ),
            LicenseSource.DETECTED,
        )

        licenses = tuple(
            ResolvedLicense(license=name, sources=frozenset(found))
            for name, found in sorted(sources.items(), key=lambda item: spdx_sort_key(item[0]))
        )
        return ResolvedLicenseInfo(id=id, licenses=licenses)


class LicenseInfoCache:
    """Memoize a resolver per identifier until :meth:`clear` is called."""

    def __init__(self, resolver: LicenseResolver) -> None:
        self._resolver = resolver
        self._cache: Dict[Identifier, ResolvedLicenseInfo] = {}
        self._lock = Lock()

    def resolve(self, id: Identifier) -> ResolvedLicenseInfo:
        with self._lock:
            cached = self._cache.get(id)
            if cached is None:
                cached = self._resolver.resolve(id)
                self._cache[id] = cached
            return cached

    def clear(self) -> None:
        with self._lock:
            dropped = len(self._cache)
            self._cache.clear()
        log.debug("licenses.cache_cleared", entries=dropped)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, id: object) -> bool:
        return id in self._cache
