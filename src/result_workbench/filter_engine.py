"""Faceted filtering shared by the packages, issues, violations and vulnerabilities views.

An engine owns the full item list of one view and the current criteria. The
visible list is recomputed whenever either changes; facet options are always
derived from the full item list so selecting one facet never hides the
options of another.
"""

from __future__ import annotations

import dataclasses
from threading import Lock, RLock
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Sequence, Type, TypeVar

import structlog

from .types_filters import FilterData, FilterSnapshot

log = structlog.get_logger("result_workbench.filters")

T = TypeVar("T")
C = TypeVar("C")
V = TypeVar("V")

Listener = Callable[[FilterSnapshot], None]


def distinct_sorted(values: Iterable[Optional[V]], key: Optional[Callable[[V], Any]] = None) -> tuple[V, ...]:
    """Return the distinct values in sorted order.

    ``None`` and ``""`` are left out: both mean "unset" to the matchers, so they
    can never be selected as a filter value.
    """

    unique = {value for value in values if value is not None and value != ""}
    return tuple(sorted(unique, key=key))  # type: ignore[arg-type]


class FacetedFilterEngine(Generic[T, C]):
    """Keep ``(items, criteria)`` and the derived snapshot consistent.

    Subclasses set :attr:`criteria_type` to a frozen dataclass exposing
    ``check(item) -> bool`` and a ``text`` field, and implement
    :meth:`build_options`.
    """

    criteria_type: Type[C]
    name = "items"

    def __init__(self, criteria: Optional[C] = None) -> None:
        self._lock = Lock()
        self._publish_lock = RLock()
        self._items: tuple[T, ...] = ()
        self._criteria: C = criteria if criteria is not None else self.criteria_type()
        self._options: Dict[str, tuple] = {}
        self._version = 0
        self._published = 0
        self._listeners: List[Listener] = []
        self._snapshot: FilterSnapshot = FilterSnapshot(criteria=self._criteria)
        self._dimensions = {f.name for f in dataclasses.fields(self.criteria_type)}

    def build_options(self, items: Sequence[T]) -> Dict[str, tuple]:
        raise NotImplementedError

    @property
    def snapshot(self) -> FilterSnapshot:
        return self._snapshot

    @property
    def criteria(self) -> C:
        return self._criteria

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    def options(self, dimension: str) -> tuple:
        return self._options.get(dimension, ())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def set_items(self, items: Iterable[T]) -> FilterSnapshot:
        frozen = tuple(items)
        options = self.build_options(frozen)
        with self._lock:
            self._items = frozen
            self._options = options
            self._version += 1
            version, criteria = self._version, self._criteria
        return self._recompute(version, frozen, criteria, options)

    def update_criterion(self, dimension: str, value: Any) -> FilterSnapshot:
        if dimension not in self._dimensions:
            raise ValueError(
                f"Unknown {self.name} filter '{dimension}'; expected one of {sorted(self._dimensions)}"
            )
        with self._lock:
            self._criteria = dataclasses.replace(self._criteria, **{dimension: value})
            self._version += 1
            version, criteria = self._version, self._criteria
            items, options = self._items, self._options
        return self._recompute(version, items, criteria, options)

    def reset(self) -> FilterSnapshot:
        with self._lock:
            self._criteria = self.criteria_type()
            self._version += 1
            version, criteria = self._version, self._criteria
            items, options = self._items, self._options
        return self._recompute(version, items, criteria, options)

    def apply(self, criteria: C) -> tuple[T, ...]:
        """Filter the current items with ``criteria`` without touching engine state."""

        return tuple(item for item in self._items if criteria.check(item))  # type: ignore[attr-defined]

    def _recompute(
        self, version: int, items: tuple[T, ...], criteria: C, options: Dict[str, tuple]
    ) -> FilterSnapshot:
        while True:
            snapshot = self._build_snapshot(items, criteria, options)
            with self._publish_lock:
                with self._lock:
                    if version != self._version:
                        # superseded: finish the newest state instead
                        log.debug("filters.superseded", view=self.name, version=version, current=self._version)
                        version, items, criteria, options = (
                            self._version,
                            self._items,
                            self._criteria,
                            self._options,
                        )
                        continue
                    if self._published >= version:
                        return self._snapshot
                    self._snapshot = snapshot
                    self._published = version
                    listeners = list(self._listeners)

                log.debug("filters.recomputed", view=self.name, visible=len(snapshot.items), total=len(items))
                for listener in listeners:
                    if self._snapshot is not snapshot:
                        break
                    listener(snapshot)
                return self._snapshot

    def _build_snapshot(self, items: tuple[T, ...], criteria: C, options: Dict[str, tuple]) -> FilterSnapshot:
        visible = tuple(item for item in items if criteria.check(item))  # type: ignore[attr-defined]
        return FilterSnapshot(
            items=visible,
            criteria=criteria,
            facets={
                dimension: FilterData(selected=getattr(criteria, dimension), options=values)
                for dimension, values in options.items()
            },
            text=getattr(criteria, "text", ""),
        )
