import threading
from dataclasses import dataclass

import pytest

from result_workbench.filter_engine import FacetedFilterEngine
from result_workbench.filters_issues import IssuesFilter, IssuesFilterEngine
from result_workbench.filters_packages import PackagesFilterEngine, build_package_infos
from result_workbench.filters_violations import ViolationsFilterEngine
from result_workbench.filters_vulnerabilities import VulnerabilitiesFilterEngine, severity_sort_key
from result_workbench.result_index import ResultIndex
from result_workbench.types import (
    ExclusionStatus,
    Identifier,
    IssueStatus,
    LicenseSource,
    Package,
    PackageReference,
    Project,
    Report,
    ResolutionStatus,
    RuleViolation,
    Scope,
    Severity,
    Tool,
    VulnerabilityStatus,
)


def _id(coordinates: str) -> Identifier:
    return Identifier.from_coordinates(coordinates)


@pytest.fixture
def packages(sample_index):
    engine = PackagesFilterEngine()
    engine.set_items(build_package_infos(sample_index))
    return engine


@pytest.fixture
def issues(sample_index):
    engine = IssuesFilterEngine()
    engine.set_items(sample_index.issues)
    return engine


def _coordinates(snapshot):
    return [item.id.to_coordinates() for item in snapshot.items]


def test_package_rows_cover_projects_and_packages_in_order(packages):
    assert _coordinates(packages.snapshot) == [
        "Maven:com.example:app:1.0",
        "Maven:org.lib:core:2.0",
        "Maven:org.lib:util:1.1",
        "Maven:org.test:junit:4.13",
        "NPM::left-pad:1.3.0",
        "NPM::lodash:4.17.21",
        "NPM::web:1.0",
    ]
    assert [row.is_project for row in packages.snapshot.items].count(True) == 2


def test_package_options_are_derived_from_all_items(packages):
    assert packages.options("type") == ("Maven", "NPM")
    assert packages.options("scope") == ("compile", "dependencies", "test")
    assert packages.options("license") == ("Apache-2.0", "EPL-1.0", "MIT")
    assert packages.options("project") == (_id("Maven:com.example:app:1.0"), _id("NPM::web:1.0"))
    assert packages.options("exclusion_status") == (ExclusionStatus.EXCLUDED, ExclusionStatus.INCLUDED)


def test_license_filter_keeps_only_matching_rows(packages):
    snapshot = packages.update_criterion("license", "MIT")
    assert _coordinates(snapshot) == [
        "Maven:org.lib:util:1.1",
        "NPM::left-pad:1.3.0",
        "NPM::lodash:4.17.21",
        "NPM::web:1.0",
    ]

    snapshot = packages.update_criterion("license", "Apache-2.0")
    assert _coordinates(snapshot) == [
        "Maven:com.example:app:1.0",
        "Maven:org.lib:core:2.0",
        "Maven:org.lib:util:1.1",
    ]
    assert snapshot.facets["license"].options == ("Apache-2.0", "EPL-1.0", "MIT")


def test_criteria_are_conjoined(packages):
    packages.update_criterion("type", "NPM")
    snapshot = packages.update_criterion("vulnerability_status", VulnerabilityStatus.HAS_VULNERABILITY)
    assert _coordinates(snapshot) == ["NPM::lodash:4.17.21"]

    snapshot = packages.update_criterion("issue_status", IssueStatus.HAS_ISSUES)
    assert snapshot.items == ()
    assert snapshot.facets["type"].selected == "NPM"
    assert snapshot.facets["type"].options == ("Maven", "NPM")


def test_text_filter_is_case_sensitive_substring(packages):
    assert _coordinates(packages.update_criterion("text", "lo")) == ["NPM::lodash:4.17.21"]
    assert packages.update_criterion("text", "LO").items == ()


def test_scope_project_and_exclusion_facets(packages):
    assert _coordinates(packages.update_criterion("scope", "test")) == ["Maven:org.test:junit:4.13"]
    packages.reset()
    assert _coordinates(packages.update_criterion("exclusion_status", ExclusionStatus.EXCLUDED)) == [
        "Maven:org.test:junit:4.13"
    ]
    packages.reset()
    snapshot = packages.update_criterion("project", _id("NPM::web:1.0"))
    assert _coordinates(snapshot) == ["NPM::left-pad:1.3.0", "NPM::lodash:4.17.21"]


def test_updating_the_same_value_twice_is_idempotent(packages):
    first = packages.update_criterion("license", "MIT")
    second = packages.update_criterion("license", "MIT")
    assert first.items == second.items
    assert first.criteria == second.criteria


def test_reset_clears_every_criterion(packages):
    packages.update_criterion("license", "MIT")
    packages.update_criterion("text", "left")
    snapshot = packages.reset()
    assert len(snapshot.items) == 7
    assert snapshot.text == ""
    assert all(data.selected is None for data in snapshot.facets.values())


def test_unknown_dimension_is_rejected(packages):
    with pytest.raises(ValueError):
        packages.update_criterion("colour", "red")


def test_apply_does_not_change_engine_state(issues):
    visible = issues.apply(IssuesFilter(severity=Severity.WARNING))
    assert [issue.message for issue in visible] == ["Deprecated package"]
    assert len(issues.snapshot.items) == 2
    assert issues.criteria == IssuesFilter()


def test_unresolved_issues_hide_resolved_but_keep_all_options(issues):
    snapshot = issues.update_criterion("resolution_status", ResolutionStatus.UNRESOLVED)
    assert [issue.message for issue in snapshot.items] == ["Could not resolve POM"]
    assert snapshot.facets["resolution_status"].options == (ResolutionStatus.RESOLVED, ResolutionStatus.UNRESOLVED)
    assert snapshot.facets["source"].options == ("Maven", "NPM")

    snapshot = issues.update_criterion("resolution_status", ResolutionStatus.RESOLVED)
    assert [issue.message for issue in snapshot.items] == ["Deprecated package"]


def test_issue_facets(issues):
    assert issues.options("tool") == (Tool.ANALYZER, Tool.SCANNER, Tool.ADVISOR)
    assert issues.options("identifier") == (_id("Maven:org.lib:core:2.0"), _id("NPM::left-pad:1.3.0"))
    snapshot = issues.update_criterion("text", "POM")
    assert [issue.source for issue in snapshot.items] == ["Maven"]
    issues.reset()
    assert issues.update_criterion("tool", Tool.SCANNER).items == ()


def test_violation_facets(sample_index):
    engine = ViolationsFilterEngine()
    engine.set_items(sample_index.violations)
    assert engine.options("license") == ("EPL-1.0", "MIT")
    assert engine.options("rule") == ("MISSING_NOTICE", "UNHANDLED_LICENSE")

    snapshot = engine.update_criterion("license_source", LicenseSource.CONCLUDED)
    assert [v.rule for v in snapshot.items] == ["MISSING_NOTICE"]
    engine.reset()
    snapshot = engine.update_criterion("text", "NOTICE file.")
    assert [v.rule for v in snapshot.items] == ["MISSING_NOTICE"]
    engine.reset()
    snapshot = engine.update_criterion("severity", Severity.ERROR)
    assert [v.pkg for v in snapshot.items] == [_id("Maven:org.test:junit:4.13")]


def test_vulnerability_facets(sample_index):
    engine = VulnerabilitiesFilterEngine()
    engine.set_items(sample_index.vulnerabilities)
    assert engine.options("advisor") == ("OSV", "VulnerableCode")
    assert engine.options("scoring_system") == ("CVSS2", "CVSS3")
    assert engine.options("severity") == ("5.0", "7.2")

    snapshot = engine.update_criterion("scoring_system", "CVSS3")
    assert [v.id for v in snapshot.items] == ["CVE-2021-23337"]
    snapshot = engine.update_criterion("resolution_status", ResolutionStatus.UNRESOLVED)
    assert snapshot.items == ()
    engine.reset()
    snapshot = engine.update_criterion("text", "Denial")
    assert [v.id for v in snapshot.items] == ["GHSA-0000-1111-2222"]


def test_set_items_keeps_current_criteria(sample_index, packages):
    packages.update_criterion("type", "Maven")
    snapshot = packages.set_items(build_package_infos(sample_index))
    assert len(snapshot.items) == 4
    assert snapshot.facets["type"].selected == "Maven"


def test_listeners_receive_snapshots_until_unsubscribed(packages):
    seen = []
    unsubscribe = packages.subscribe(seen.append)
    packages.update_criterion("type", "NPM")
    unsubscribe()
    packages.update_criterion("type", "Maven")
    assert len(seen) == 1
    assert seen[0].facets["type"].selected == "NPM"


def test_superseded_snapshot_is_not_delivered_to_remaining_listeners(packages):
    first_seen = []
    second_seen = []

    def first(snapshot):
        first_seen.append(snapshot)
        if snapshot.text == "lo":
            packages.update_criterion("text", "left")

    packages.subscribe(first)
    packages.subscribe(second_seen.append)
    packages.update_criterion("text", "lo")

    assert [snapshot.text for snapshot in first_seen] == ["lo", "left"]
    assert [snapshot.text for snapshot in second_seen] == ["left"]
    assert packages.snapshot.text == "left"
    assert _coordinates(packages.snapshot) == ["NPM::left-pad:1.3.0"]


def _single_package_report(violations=()):
    pkg = _id("NPM::x:1.0")
    return Report(
        projects=(Project(id=_id("NPM::p:1.0"), scopes=(Scope(name="s", dependencies=(PackageReference(pkg),)),)),),
        packages=(
            Package(id=pkg, declared_licenses=("MIT",)),
            Package(id=_id("NPM::y:1.0"), declared_licenses=("Apache-2.0",)),
        ),
        rule_violations=violations,
    )


def test_unresolved_violation_and_resolution_options():
    report = _single_package_report((RuleViolation(pkg=_id("NPM::x:1.0"), rule="NO_NOTICE"),))
    engine = ViolationsFilterEngine()
    engine.set_items(ResultIndex.build(report).violations)

    assert [v.rule for v in engine.update_criterion("resolution_status", ResolutionStatus.UNRESOLVED).items] == [
        "NO_NOTICE"
    ]
    snapshot = engine.update_criterion("resolution_status", ResolutionStatus.RESOLVED)
    assert snapshot.items == ()
    assert snapshot.facets["resolution_status"].options == (ResolutionStatus.RESOLVED, ResolutionStatus.UNRESOLVED)


def test_license_filter_keeps_other_license_options():
    engine = PackagesFilterEngine()
    engine.set_items(build_package_infos(ResultIndex.build(_single_package_report())))
    snapshot = engine.update_criterion("license", "MIT")

    assert _coordinates(snapshot) == ["NPM::x:1.0"]
    assert snapshot.facets["license"].options == ("Apache-2.0", "MIT")


def test_severity_options_sort_numerically():
    assert sorted(["10.0", "5.0", "HIGH", "7.5"], key=severity_sort_key) == ["5.0", "7.5", "10.0", "HIGH"]


def test_superseded_update_returns_the_newest_snapshot():
    gates = {"a": threading.Event(), "b": threading.Event()}
    entered = {"a": threading.Event(), "b": threading.Event()}

    @dataclass(frozen=True)
    class GatedFilter:
        text: str = ""

        def check(self, word: str) -> bool:
            if self.text in gates:
                entered[self.text].set()
                gates[self.text].wait(timeout=5)
            return self.text in word

    class WordsEngine(FacetedFilterEngine[str, GatedFilter]):
        criteria_type = GatedFilter
        name = "words"

        def build_options(self, items):
            return {}

    engine = WordsEngine()
    engine.set_items(["a", "b", "ab"])
    results = {}

    def update(text):
        results[text] = engine.update_criterion("text", text)

    first = threading.Thread(target=update, args=("a",))
    second = threading.Thread(target=update, args=("b",))
    first.start()
    assert entered["a"].wait(timeout=5)
    second.start()
    assert entered["b"].wait(timeout=5)

    gates["a"].set()
    gates["b"].set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert results["a"].text == "b"
    assert results["b"].text == "b"
    assert results["a"].items == ("b", "ab")
    assert engine.snapshot is results["b"]
