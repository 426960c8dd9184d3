from __future__ import annotations

from concurrent.futures import Executor
from typing import Callable, List, Optional

import structlog

from .config import WorkbenchSettings
from .dependency_tree import DependencyTreeBuilder, TreeNode
from .filters_issues import IssuesFilterEngine
from .filters_packages import PackagesFilterEngine, build_package_infos
from .filters_violations import ViolationsFilterEngine
from .filters_vulnerabilities import VulnerabilitiesFilterEngine
from .loader import Reader, ResolverFactory, ResultLoadController, ResultStatus
from .report_reader import read_report
from .result_index import ResultIndex
from .store import ResultStore

log = structlog.get_logger("result_workbench.workbench")


class Workbench:
    """Everything an explorer session needs, wired in dependency order.

    The dependency tree and the engine items are derived from a new result
    before the store swaps it in, so a failure while processing leaves the
    previous result, tree and engines in place. Subscribers added through
    :meth:`on_result` run after the swap and always see rebuilt engines.
    """

    def __init__(
        self,
        settings: Optional[WorkbenchSettings] = None,
        reader: Optional[Reader] = None,
        resolver_factory: Optional[ResolverFactory] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.settings = settings or WorkbenchSettings()
        self.store = ResultStore()
        self.tree_builder = DependencyTreeBuilder(max_depth=self.settings.max_tree_depth)
        self.dependency_tree: List[TreeNode] = []
        self.packages = PackagesFilterEngine()
        self.issues = IssuesFilterEngine()
        self.violations = ViolationsFilterEngine()
        self.vulnerabilities = VulnerabilitiesFilterEngine()

        if reader is None:
            timeout = self.settings.http_timeout

            def reader(source: str):
                return read_report(source, timeout=timeout)

        self.controller = ResultLoadController(
            self.store, reader=reader, resolver_factory=resolver_factory, executor=executor
        )

        self.store.add_preparer(self._prepare_tree)
        self.store.add_preparer(self._prepare_engines)

    @property
    def index(self) -> Optional[ResultIndex]:
        return self.store.current

    @property
    def ready(self) -> bool:
        return self.controller.state.status == ResultStatus.READY

    def on_result(self, subscriber: Callable[[ResultIndex], None]) -> Callable[[], None]:
        return self.store.subscribe(subscriber)

    def load(self, path):
        return self.controller.load(path)

    def close(self) -> None:
        self.controller.shutdown()

    def _prepare_tree(self, index: ResultIndex) -> Callable[[], None]:
        forest = self.tree_builder.build(index)

        def _commit() -> None:
            self.dependency_tree = forest

        return _commit

    def _prepare_engines(self, index: ResultIndex) -> Callable[[], None]:
        package_infos = build_package_infos(index)

        def _commit() -> None:
            self.packages.set_items(package_infos)
            self.issues.set_items(index.issues)
            self.violations.set_items(index.violations)
            self.vulnerabilities.set_items(index.vulnerabilities)
            log.debug(
                "workbench.engines_rebuilt",
                packages=len(self.packages.items),
                issues=len(self.issues.items),
                violations=len(self.violations.items),
                vulnerabilities=len(self.vulnerabilities.items),
            )

        return _commit
