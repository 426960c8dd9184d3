import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from result_workbench.config import WorkbenchSettings
from result_workbench.dependency_tree import iter_nodes
from result_workbench.loader import ResultLoadController, ResultStatus
from result_workbench.report_reader import ReportLoadError, report_from_dict
from result_workbench.result_index import ResultIndex
from result_workbench.store import ResultStore
from result_workbench.types import Identifier, Package, PackageReference, Project, Report, Scope
from result_workbench.workbench import Workbench


def test_successful_load_publishes_index(sample_report):
    store = ResultStore()
    controller = ResultLoadController(store, reader=lambda source: sample_report)
    states = []
    controller.subscribe(states.append)

    state = controller.load("result.json").result(timeout=5)
    controller.shutdown()

    assert state.status == ResultStatus.READY
    assert state.path == "result.json"
    assert state.error is None
    assert [s.status for s in states] == [ResultStatus.LOADING, ResultStatus.PROCESSING, ResultStatus.READY]
    assert store.current is not None
    assert store.current.report is sample_report
    assert store.generation == state.generation


def test_failed_load_keeps_previous_index(sample_report):
    def reader(source):
        if source == "broken.json":
            raise ReportLoadError("Unable to parse result: Expecting value")
        return sample_report

    store = ResultStore()
    controller = ResultLoadController(store, reader=reader)
    controller.load("result.json").result(timeout=5)
    previous = store.current

    state = controller.load("broken.json").result(timeout=5)
    controller.shutdown()

    assert state.status == ResultStatus.ERROR
    assert state.error == "Cannot read result from broken.json:\nUnable to parse result: Expecting value"
    assert store.current is previous


def test_last_load_wins_even_if_earlier_load_finishes_later(sample_report):
    slow_report = Report()
    release = threading.Event()
    slow_started = threading.Event()

    def reader(source):
        if source == "slow.json":
            slow_started.set()
            release.wait(timeout=5)
            return slow_report
        return sample_report

    store = ResultStore()
    published = []
    store.subscribe(published.append)
    executor = ThreadPoolExecutor(max_workers=2)
    controller = ResultLoadController(store, reader=reader, executor=executor)

    slow = controller.load("slow.json")
    assert slow_started.wait(timeout=5)
    fast = controller.load("fast.json")
    assert fast.result(timeout=5).status == ResultStatus.READY

    release.set()
    slow.result(timeout=5)
    executor.shutdown(wait=True)

    assert controller.state.status == ResultStatus.READY
    assert controller.state.path == "fast.json"
    assert store.current.report is sample_report
    assert [index.report for index in published] == [sample_report]


def test_store_rejects_older_generation_and_clears_previous_cache(sample_report):
    store = ResultStore()
    first = ResultIndex.build(sample_report)
    second = ResultIndex.build(sample_report)
    assert len(first.license_cache) == 7

    assert store.publish(first, generation=1)
    assert store.publish(second, generation=2)
    assert len(first.license_cache) == 0
    assert len(second.license_cache) == 7

    assert not store.publish(first, generation=1)
    assert store.current is second


def test_failing_preparer_leaves_previous_result_published(sample_report):
    store = ResultStore()
    first = ResultIndex.build(sample_report)
    second = ResultIndex.build(sample_report)
    committed = []
    notified = []

    def prepare(index):
        if index is second:
            raise ValueError("cannot derive views")
        return lambda: committed.append(index)

    store.add_preparer(prepare)
    store.subscribe(notified.append)
    assert store.publish(first, generation=1)
    with pytest.raises(ValueError):
        store.publish(second, generation=2)

    assert store.current is first
    assert store.generation == 1
    assert committed == [first]
    assert notified == [first]
    assert len(first.license_cache) == 7


def test_store_notifies_subscribers_in_order(sample_index):
    store = ResultStore()
    calls = []
    store.subscribe(lambda index: calls.append("first"))
    unsubscribe = store.subscribe(lambda index: calls.append("second"))
    store.subscribe(lambda index: calls.append("third"))
    store.publish(sample_index, generation=1)
    unsubscribe()
    store.publish(sample_index, generation=2)
    assert calls == ["first", "second", "third", "first", "third"]


def test_workbench_rebuilds_tree_and_engines_before_listeners(sample_data):
    report = report_from_dict(sample_data)
    workbench = Workbench(settings=WorkbenchSettings(max_tree_depth=64), reader=lambda source: report)
    observed = []

    def listener(index):
        observed.append((len(workbench.dependency_tree), len(workbench.packages.snapshot.items)))

    workbench.on_result(listener)
    state = workbench.load("result.json").result(timeout=5)
    workbench.close()

    assert state.status == ResultStatus.READY
    assert workbench.ready
    assert observed == [(2, 7)]
    assert len(workbench.issues.snapshot.items) == 2
    assert len(workbench.violations.snapshot.items) == 2
    assert len(workbench.vulnerabilities.snapshot.items) == 2
    assert workbench.index.get_package(Identifier.from_coordinates("NPM::lodash:4.17.21")) is not None


def test_workbench_reports_read_errors(tmp_path):
    workbench = Workbench()
    state = workbench.load(tmp_path / "missing.json").result(timeout=5)
    workbench.close()

    assert state.status == ResultStatus.ERROR
    assert state.error.startswith(f"Cannot read result from {tmp_path / 'missing.json'}:\n")
    assert workbench.index is None
    assert not workbench.ready


def test_processing_failure_after_successful_load_keeps_views(monkeypatch, sample_report):
    broken = Report(projects=(Project(id=Identifier.from_coordinates("NPM::broken:1.0")),))
    reports = {"good.json": sample_report, "broken.json": broken}
    workbench = Workbench(reader=reports.__getitem__)
    assert workbench.load("good.json").result(timeout=5).status == ResultStatus.READY
    tree = workbench.dependency_tree
    packages = workbench.packages.snapshot

    build = workbench.tree_builder.build

    def failing_build(index):
        if index.report is broken:
            raise RuntimeError("tree exploded")
        return build(index)

    monkeypatch.setattr(workbench.tree_builder, "build", failing_build)
    state = workbench.load("broken.json").result(timeout=5)
    workbench.close()

    assert state.status == ResultStatus.ERROR
    assert state.error == "Cannot read result from broken.json:\ntree exploded"
    assert workbench.index.report is sample_report
    assert workbench.store.generation == 1
    assert workbench.dependency_tree is tree
    assert workbench.packages.snapshot is packages
    assert len(workbench.index.license_cache) == 7


def test_workbench_loads_deep_chains(sample_report):
    ids = [Identifier.from_coordinates(f"NPM::link-{n}:1.0") for n in range(1500)]
    ref = PackageReference(ids[-1])
    for id in reversed(ids[:-1]):
        ref = PackageReference(id, dependencies=(ref,))
    deep = Report(
        projects=(Project(id=Identifier.from_coordinates("NPM::root:1.0"), scopes=(Scope("deps", (ref,)),)),),
        packages=tuple(Package(id=id) for id in ids),
    )
    reports = {"good.json": sample_report, "deep.json": deep}
    workbench = Workbench(settings=WorkbenchSettings(max_tree_depth=5000), reader=reports.__getitem__)
    workbench.load("good.json").result(timeout=5)
    state = workbench.load("deep.json").result(timeout=5)
    workbench.close()

    assert state.status == ResultStatus.READY
    assert workbench.index.report is deep
    assert len(workbench.packages.snapshot.items) == 1501
    assert max(depth for depth, _ in iter_nodes(workbench.dependency_tree)) == 1501
