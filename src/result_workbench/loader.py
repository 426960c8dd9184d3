"""Load lifecycle of an analysis result: idle, loading, processing, ready or error."""

from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from threading import RLock
from typing import Callable, List, Optional, Union

import structlog

from .licenses import LicenseResolver
from .report_reader import read_report
from .result_index import ResultIndex
from .store import ResultStore
from .types_report import Report

log = structlog.get_logger("result_workbench.loader")

Reader = Callable[[str], Report]
ResolverFactory = Callable[[Report], LicenseResolver]


class ResultStatus(Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    ERROR = "ERROR"


@dataclass(frozen=True)
class LoadState:
    status: ResultStatus = ResultStatus.IDLE
    path: Optional[str] = None
    error: Optional[str] = None
    generation: int = 0


StateListener = Callable[[LoadState], None]


class ResultLoadController:
    """Read results off the calling thread and publish them to a :class:`ResultStore`.

    Every :meth:`load` starts a new generation. Work belonging to an older
    generation is abandoned: it may still run to completion on the worker,
    but it never changes the state or the store.
    """

    def __init__(
        self,
        store: ResultStore,
        reader: Reader = read_report,
        resolver_factory: Optional[ResolverFactory] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._store = store
        self._reader = reader
        self._resolver_factory = resolver_factory
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="result-load")
        self._lock = RLock()
        self._generation = 0
        self._state = LoadState()
        self._pending: Optional[Future] = None
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> LoadState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def load(self, path: Union[str, Path]) -> "Future[LoadState]":
        source = str(path)
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._pending is not None and self._pending.cancel():
                log.info("load.cancelled", generation=generation - 1)
            self._set_state(LoadState(ResultStatus.LOADING, source, None, generation))
            future = self._executor.submit(self._run, source, generation)
            self._pending = future
        log.info("load.started", path=source, generation=generation)
        return future

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True, cancel_futures=True)

    def _run(self, source: str, generation: int) -> LoadState:
        try:
            report = self._reader(source)
            if not self._transition(generation, ResultStatus.PROCESSING, source):
                return self._state

            resolver = self._resolver_factory(report) if self._resolver_factory else None
            index = ResultIndex.build(report, resolver)

            with self._lock:
                if generation != self._generation:
                    log.info("load.superseded", path=source, generation=generation)
                    return self._state
                self._store.publish(index, generation)
                self._transition(generation, ResultStatus.READY, source)
        except Exception as exc:
            log.warning("load.failed", path=source, generation=generation, error=str(exc))
            self._transition(
                generation, ResultStatus.ERROR, source, f"Cannot read result from {source}:\n{exc}"
            )
        return self._state

    def _transition(
        self, generation: int, status: ResultStatus, source: str, error: Optional[str] = None
    ) -> bool:
        with self._lock:
            if generation != self._generation:
                log.info("load.superseded", path=source, generation=generation, status=status.value)
                return False
            self._set_state(LoadState(status, source, error, generation))
            return True

    def _set_state(self, state: LoadState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
