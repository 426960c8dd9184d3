"""Rebuild navigable dependency trees from the flat project/scope/reference graph.

Every reference path gets its own node: a package reachable from three
places appears three times, which is what an explorer answering "why is this
package here" needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Union

import structlog

from .licenses import ResolvedLicenseInfo
from .result_index import ResultIndex
from .types_findings import Issue
from .types_identifier import Identifier
from .types_report import Package, PackageLinkage, PackageReference, Project, Scope

log = structlog.get_logger("result_workbench.tree")

DEFAULT_MAX_DEPTH = 256


@dataclass(frozen=True)
class TreeProject:
    project: Project
    linkage: PackageLinkage
    issues: tuple[Issue, ...]
    resolved_license: ResolvedLicenseInfo

    @property
    def id(self) -> Identifier:
        return self.project.id


@dataclass(frozen=True)
class TreeScope:
    project: Project
    scope: Scope
    excluded: bool = False


@dataclass(frozen=True)
class TreePackage:
    id: Identifier
    package: Package
    linkage: PackageLinkage
    issues: tuple[Issue, ...]
    resolved_license: ResolvedLicenseInfo
    excluded: bool = False


@dataclass(frozen=True)
class TreeError:
    id: Identifier
    message: str


DependencyTreeItem = Union[TreeProject, TreeScope, TreePackage, TreeError]


@dataclass(frozen=True)
class TreeNode:
    value: DependencyTreeItem
    children: tuple["TreeNode", ...] = ()


def item_id(item: DependencyTreeItem) -> Optional[Identifier]:
    if isinstance(item, TreeProject):
        return item.project.id
    if isinstance(item, TreeScope):
        return None
    if isinstance(item, TreePackage):
        return item.id
    if isinstance(item, TreeError):
        return item.id
    raise TypeError(f"Unknown dependency tree item: {item!r}")


class _ScopeStep(NamedTuple):
    project: Project
    scope: Scope
    path: frozenset[Identifier]
    depth: int
    excluded: bool


class _ReferenceStep(NamedTuple):
    ref: PackageReference
    path: frozenset[Identifier]
    depth: int
    parent_excluded: bool


_Step = Union[_ScopeStep, _ReferenceStep]


@dataclass
class _Frame:
    value: DependencyTreeItem
    pending: Iterator[_Step]
    children: List[TreeNode] = field(default_factory=list)


class DependencyTreeBuilder:
    """Turn the projects of a :class:`ResultIndex` into a forest of :class:`TreeNode`.

    Nodes are expanded with an explicit stack, so the depth of a chain is
    bounded by ``max_depth`` only and never by the interpreter's recursion
    limit.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth = max_depth

    def build(self, index: ResultIndex) -> List[TreeNode]:
        forest = [self._project_node(index, project) for project in index.report.projects]
        log.debug("tree.built", projects=len(forest))
        return forest

    def _project_node(self, index: ResultIndex, project: Project) -> TreeNode:
        root = TreeProject(
            project=project,
            linkage=PackageLinkage.PROJECT_STATIC,
            issues=tuple(index.get_issues(project.id)),
            resolved_license=index.resolved_license(project.id),
        )
        stack = [_Frame(root, iter(self._scope_steps(index, project, frozenset({project.id}), depth=1)))]
        while True:
            frame = stack[-1]
            step = next(frame.pending, None)
            if step is not None:
                value, steps = self._expand(index, step)
                stack.append(_Frame(value, iter(steps)))
                continue
            stack.pop()
            node = TreeNode(value=frame.value, children=tuple(frame.children))
            if not stack:
                return node
            stack[-1].children.append(node)

    def _scope_steps(
        self, index: ResultIndex, project: Project, path: frozenset[Identifier], depth: int
    ) -> List[_Step]:
        project_excluded = index.report.is_project_excluded(project)
        return [
            _ScopeStep(project, scope, path, depth, project_excluded or index.report.is_scope_excluded(scope))
            for scope in project.scopes
        ]

    def _expand(self, index: ResultIndex, step: _Step) -> tuple[DependencyTreeItem, List[_Step]]:
        if isinstance(step, _ScopeStep):
            return (
                TreeScope(project=step.project, scope=step.scope, excluded=step.excluded),
                [_ReferenceStep(ref, step.path, step.depth + 1, step.excluded) for ref in step.scope.dependencies],
            )

        ref, path, depth = step.ref, step.path, step.depth
        coordinates = ref.id.to_coordinates()
        if ref.id in path:
            log.warning("tree.cycle_detected", id=coordinates, depth=depth)
            return (
                TreeError(
                    id=ref.id,
                    message=f"Dependency cycle detected: '{coordinates}' already appears on this path.",
                ),
                [],
            )
        if depth > self.max_depth:
            log.warning("tree.max_depth_exceeded", id=coordinates, max_depth=self.max_depth)
            return (
                TreeError(
                    id=ref.id,
                    message=f"Maximum dependency depth of {self.max_depth} exceeded at '{coordinates}'.",
                ),
                [],
            )

        child_path = path | {ref.id}
        excluded = step.parent_excluded or ref.excluded
        children: List[_Step] = [
            _ReferenceStep(child, child_path, depth + 1, excluded) for child in ref.dependencies
        ]

        project = index.get_project(ref.id)
        if project is not None:
            value: DependencyTreeItem = TreeProject(
                project=project,
                linkage=ref.linkage,
                issues=ref.issues,
                resolved_license=index.resolved_license(ref.id),
            )
            return value, children + self._scope_steps(index, project, child_path, depth + 1)

        package = index.get_package(ref.id)
        if package is not None:
            value = TreePackage(
                id=ref.id,
                package=package,
                linkage=ref.linkage,
                issues=ref.issues,
                resolved_license=index.resolved_license(ref.id),
                excluded=excluded,
            )
            return value, children

        return (
            TreeError(
                id=ref.id,
                message=f"Could not find package or project for id '{coordinates}'.",
            ),
            [],
        )


def iter_nodes(forest: List[TreeNode]) -> Iterator[tuple[int, TreeNode]]:
    """Yield ``(depth, node)`` pairs in display order."""

    stack = [(0, node) for node in reversed(forest)]
    while stack:
        depth, node = stack.pop()
        yield depth, node
        stack.extend((depth + 1, child) for child in reversed(node.children))


def find_paths(forest: List[TreeNode], id: Identifier) -> List[List[DependencyTreeItem]]:
    """Return every root-to-node path ending at a node for ``id``."""

    paths: List[List[DependencyTreeItem]] = []
    stack: List[tuple[TreeNode, List[DependencyTreeItem]]] = [(node, []) for node in reversed(forest)]
    while stack:
        node, prefix = stack.pop()
        current = prefix + [node.value]
        if item_id(node.value) == id:
            paths.append(current)
        stack.extend((child, current) for child in reversed(node.children))
    return paths
