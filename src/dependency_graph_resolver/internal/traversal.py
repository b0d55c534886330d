from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field

from resolvelib import BaseReporter
from resolvelib.structs import DirectedGraph, State

from dependency_graph_resolver.fetcher import Fetcher, FetchFunction
from dependency_graph_resolver.internal.reporting import (
    DependencyEdge,
    PinnedCandidate,
    ResolutionReporter,
)
from dependency_graph_resolver.model.identity import Identifier, SemanticVersion
from dependency_graph_resolver.model.project import Project
from dependency_graph_resolver.model.resolution import (
    Candidates,
    FailedOutcome,
    FetcherContractError,
    FetcherErrorPolicy,
    FetchResult,
    ResolutionOutcome,
    ResolutionPolicy,
    ResolvedOutcome,
    Unresolved,
    VersionRequirementNotSatisfied,
)

Reporter = BaseReporter[DependencyEdge, PinnedCandidate, Identifier]


def _fetch_edge(
    fetch: Fetcher | FetchFunction, edge: DependencyEdge, policy: ResolutionPolicy
) -> FetchResult:
    try:
        result = fetch(edge.identifier, edge.requirement)
    except Exception as e:
        if policy.fetcher_error_policy is FetcherErrorPolicy.RAISE:
            raise
        logging.warning(
            f"fetcher failed for {edge}; treating as unresolved: {type(e).__name__}: {e}"
        )
        return Unresolved(reason=f"{type(e).__name__}: {e}")

    if not isinstance(result, (Unresolved, Candidates)):
        raise FetcherContractError(
            f"fetcher returned {type(result).__name__} for {edge}; "
            "expected Unresolved or Candidates"
        )
    return result


@dataclass(slots=True)
class _TraversalState:
    """
    Mutable bookkeeping for one resolution run. Never outlives the ``resolve`` call.
    """

    root: Project
    reporter: Reporter
    queue: deque[Project] = field(default_factory=deque)
    seen: set[Identifier] = field(default_factory=set)
    pins: dict[Project, SemanticVersion] = field(default_factory=dict)
    pinned_by_name: dict[Identifier, PinnedCandidate] = field(default_factory=dict)
    unresolved: list[DependencyEdge] = field(default_factory=list)
    graph: DirectedGraph[Identifier] = field(default_factory=DirectedGraph)

    def __post_init__(self) -> None:
        self.queue.append(self.root)
        self.seen.add(self.root.name)
        self.graph.add(self.root.name)

    def is_visited(self, parent: Project, edge: DependencyEdge) -> bool:
        if edge.identifier not in self.seen:
            return False
        # first-seen wins: no re-fetch and no re-check of the new requirement
        logging.debug(f"skipping already visited {edge} (from {parent.name})")
        if edge.identifier in self.graph:
            self.graph.connect(parent.name, edge.identifier)
        return True

    def parent_candidate(self, parent: Project) -> PinnedCandidate | None:
        return self.pinned_by_name.get(parent.name)

    def apply(self, parent: Project, edge: DependencyEdge, result: FetchResult) -> None:
        match result:
            case Unresolved(reason=reason):
                self.seen.add(edge.identifier)
                self.unresolved.append(edge)
                logging.debug(f"unresolved {edge}: {reason or 'no candidates'}")
                self.reporter.rejecting_candidate(
                    VersionRequirementNotSatisfied(edge.identifier, edge.requirement),
                    None,
                )
            case Candidates():
                version, project = result.latest()
                if project.name != edge.identifier:
                    raise FetcherContractError(
                        f"fetcher returned project {project.name} for requirement {edge}"
                    )
                self.seen.add(project.name)
                self.queue.append(project)
                self.pins[project] = version
                candidate = PinnedCandidate(project=project, version=version)
                self.pinned_by_name[project.name] = candidate
                self.graph.add(project.name)
                self.graph.connect(parent.name, project.name)
                self.reporter.pinning(candidate)

    def snapshot(self) -> State[DependencyEdge, PinnedCandidate, Identifier]:
        return State(
            mapping=dict(self.pinned_by_name), criteria={}, backtrack_causes=[]
        )

    def outcome(self) -> ResolutionOutcome:
        if self.unresolved:
            return FailedOutcome(
                root=self.root,
                failures=tuple(
                    VersionRequirementNotSatisfied(e.identifier, e.requirement)
                    for e in self.unresolved
                ),
            )
        return ResolvedOutcome(root=self.root, pins=self.pins, graph=self.graph)


def _expand_sequential(
    state: _TraversalState,
    current: Project,
    fetch: Fetcher | FetchFunction,
    policy: ResolutionPolicy,
) -> None:
    parent = state.parent_candidate(current)
    for dep_id, dep_req in current.iter_dependencies():
        edge = DependencyEdge(identifier=dep_id, requirement=dep_req)
        if state.is_visited(current, edge):
            continue
        state.reporter.adding_requirement(edge, parent)
        state.apply(current, edge, _fetch_edge(fetch, edge, policy))


def _expand_concurrent(
    state: _TraversalState,
    current: Project,
    fetch: Fetcher | FetchFunction,
    policy: ResolutionPolicy,
    executor: Executor,
) -> None:
    parent = state.parent_candidate(current)
    edges: list[DependencyEdge] = []
    for dep_id, dep_req in current.iter_dependencies():
        edge = DependencyEdge(identifier=dep_id, requirement=dep_req)
        if state.is_visited(current, edge):
            continue
        state.reporter.adding_requirement(edge, parent)
        edges.append(edge)

    # map() yields in submission order, whatever order the fetches complete in
    results: Sequence[FetchResult] = list(
        executor.map(lambda e: _fetch_edge(fetch, e, policy), edges)
    )
    for edge, result in zip(edges, results):
        state.apply(current, edge, result)


# :: FeatureFlow | type=feature_start | name=breadth_first_resolution
def resolve(
    root: Project,
    fetcher: Fetcher | FetchFunction,
    *,
    policy: ResolutionPolicy | None = None,
    reporter: Reporter | None = None,
) -> ResolutionOutcome:
    """
    Resolve every package reachable from ``root`` to a single version.

    The graph is walked breadth first. Each dependency edge whose target has not been
    visited yet is fetched once, and the greatest returned version is pinned. An edge
    pointing at an already visited package is skipped without being fetched or
    re-checked, so the first requirement seen for a package wins. Unresolved edges are
    collected rather than raised, and traversal continues through the independent
    branches.

    Args:
        root (Project): The project to resolve. It is visited but never pinned.
        fetcher (Fetcher | FetchFunction): Source of candidate versions.
        policy (ResolutionPolicy | None): Concurrency and fetcher error handling.
            Defaults to a sequential run that propagates fetcher exceptions.
        reporter (BaseReporter | None): Receives lifecycle events. Defaults to a
            logging :class:`ResolutionReporter`.

    Returns:
        ResolutionOutcome: ``ResolvedOutcome`` with every pin when no edge failed,
        otherwise ``FailedOutcome`` listing every failed edge in discovery order.

    Raises:
        FetcherContractError: If the fetcher returns something other than
            ``Unresolved``/``Candidates``, or a candidate for another package.
    """
    policy = policy or ResolutionPolicy()
    state = _TraversalState(root=root, reporter=reporter or ResolutionReporter())

    executor_cm = (
        ThreadPoolExecutor(
            max_workers=policy.max_workers, thread_name_prefix="dependency-fetch"
        )
        if policy.concurrent
        else nullcontext()
    )

    state.reporter.starting()
    with executor_cm as executor:
        index = 0
        while state.queue:
            current = state.queue.popleft()
            state.reporter.starting_round(index)
            if executor is None:
                _expand_sequential(state, current, fetcher, policy)
            else:
                _expand_concurrent(state, current, fetcher, policy, executor)
            state.reporter.ending_round(index, state.snapshot())
            index += 1
    state.reporter.ending(state.snapshot())

    outcome = state.outcome()
    if isinstance(outcome, FailedOutcome):
        logging.info(
            f"resolution of {root.name} failed: {len(outcome.failures)} unsatisfied requirement(s)"
        )
    else:
        logging.info(f"resolved {root.name}: {len(outcome.pins)} package(s) pinned")
    return outcome
