from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, TypeAlias

from resolvelib.structs import DirectedGraph
from typing_extensions import Self

from dependency_graph_resolver.internal.util.multiformat import (
    MultiformatModelMixin,
    MultiformatSerializableMixin,
)
from dependency_graph_resolver.model.identity import (
    Identifier,
    SemanticVersion,
    SemanticVersionRequirement,
)
from dependency_graph_resolver.model.project import Project


# -------------------------
# errors
# -------------------------


class ResolutionError(Exception):
    """
    Base error type for dependency resolution failures.
    """


class VersionRequirementNotSatisfied(ResolutionError):
    """
    A dependency edge whose requirement had no matching candidate from the Fetcher.

    The resolver collects these instead of raising them, so a caller sees every
    unsatisfiable requirement of a run at once. Instances compare by
    ``(identifier, requirement)``.
    """

    def __init__(
        self, identifier: Identifier, requirement: SemanticVersionRequirement
    ) -> None:
        super().__init__(f"no version of {identifier} satisfies {requirement}")
        self.identifier = identifier
        self.requirement = requirement

    def as_tuple(self) -> tuple[Identifier, SemanticVersionRequirement]:
        return self.identifier, self.requirement

    def to_mapping(self) -> dict[str, str]:
        return {
            "identifier": self.identifier.name,
            "requirement": str(self.requirement.specifier),
        }

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, VersionRequirementNotSatisfied)
            and self.as_tuple() == other.as_tuple()
        )

    def __hash__(self) -> int:
        return hash(self.as_tuple())

    def __repr__(self) -> str:
        return f"VersionRequirementNotSatisfied({self.identifier}, {self.requirement})"

    def __reduce__(self):
        return type(self), (self.identifier, self.requirement)


class UnresolvedRequirementsError(ResolutionError):
    """
    Raised by :meth:`FailedOutcome.unwrap` to surface all failures of a run at once.
    """

    def __init__(self, failures: Sequence[VersionRequirementNotSatisfied]) -> None:
        self.failures = tuple(failures)
        lines = "\n".join(f"  - {f}" for f in self.failures)
        super().__init__(
            f"{len(self.failures)} requirement(s) could not be satisfied:\n{lines}"
        )


class FetcherContractError(ResolutionError):
    """
    Raised when a Fetcher returns data that violates its interface contract.
    """


# -------------------------
# fetch results
# -------------------------


@dataclass(frozen=True, slots=True)
class Unresolved:
    """
    No candidate version exists for the requested requirement.

    ``reason`` is free text for logs only; it never influences resolution.
    """

    reason: str | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class Candidates:
    """
    Every known version satisfying a requirement, each with its own Project.

    The mapping is never empty: "no candidates" is the distinct :class:`Unresolved`
    outcome. Use :meth:`of` when the input may be empty.
    """

    versions: Mapping[SemanticVersion, Project]

    def __post_init__(self) -> None:
        if not self.versions:
            raise ValueError("Candidates requires at least one version; use Unresolved")
        object.__setattr__(self, "versions", MappingProxyType(dict(self.versions)))

    @classmethod
    def of(cls, versions: Mapping[SemanticVersion, Project]) -> Candidates | Unresolved:
        if not versions:
            return Unresolved(reason="no candidate versions")
        return cls(versions=versions)

    def latest(self) -> tuple[SemanticVersion, Project]:
        """
        The candidate with the greatest version under the total version order.

        Version keys are distinct, so the maximum is unique.
        """
        version = max(self.versions)
        return version, self.versions[version]

    def __hash__(self) -> int:
        return hash(frozenset(self.versions.items()))

    def __len__(self) -> int:
        return len(self.versions)


FetchResult: TypeAlias = Unresolved | Candidates


# -------------------------
# policy
# -------------------------


class FetcherErrorPolicy(Enum):
    RAISE = "raise"  # propagate the exception, aborting the run
    UNRESOLVED = "unresolved"  # log it and record the edge as unsatisfied


@dataclass(kw_only=True, frozen=True, slots=True)
class ResolutionPolicy(MultiformatModelMixin):
    """
    Knobs that influence how the resolver drives its Fetcher, never what it selects.

    Attributes:
        max_workers (int): 1 runs the strictly sequential traversal. Greater values
            issue the fetches for the unvisited edges of one project concurrently;
            results are still applied in declaration order, so the outcome is the
            same as a sequential run.
        fetcher_error_policy (FetcherErrorPolicy): What to do when a Fetcher raises
            instead of returning Unresolved.
    """

    max_workers: int = 1
    fetcher_error_policy: FetcherErrorPolicy = FetcherErrorPolicy.RAISE

    def __post_init__(self) -> None:
        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int):
            raise TypeError(
                f"max_workers must be an int, got {type(self.max_workers).__name__}"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    @property
    def concurrent(self) -> bool:
        return self.max_workers > 1

    def to_mapping(self, *args: Any, **kwargs: Any) -> Mapping[str, Any]:
        return {
            "max_workers": self.max_workers,
            "fetcher_error_policy": self.fetcher_error_policy.value,
        }

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], *args: Any, **kwargs: Any
    ) -> Self:
        error_policy = mapping.get(
            "fetcher_error_policy", FetcherErrorPolicy.RAISE.value
        )
        return cls(
            max_workers=mapping.get("max_workers", 1),
            fetcher_error_policy=FetcherErrorPolicy(error_policy),
        )


# -------------------------
# outcomes
# -------------------------


@dataclass(frozen=True, slots=True, eq=False)
class ResolvedOutcome(MultiformatSerializableMixin):
    """
    Successful resolution: every reachable package pinned to exactly one version.

    Attributes:
        root (Project): The project resolution started from. It is not pinned.
        pins (Mapping[Project, SemanticVersion]): Chosen project snapshot to chosen
            version, in the order the resolver pinned them. No two keys share a name.
        graph (DirectedGraph[Identifier]): Dependency edges between the root and the
            pinned packages, including edges that reached an already pinned package.
    """

    root: Project
    pins: Mapping[Project, SemanticVersion]
    graph: DirectedGraph[Identifier]

    def __post_init__(self) -> None:
        object.__setattr__(self, "pins", MappingProxyType(dict(self.pins)))

    @property
    def ok(self) -> bool:
        return True

    def versions_by_name(self) -> dict[Identifier, SemanticVersion]:
        return {project.name: version for project, version in self.pins.items()}

    def project_for(self, identifier: Identifier) -> Project | None:
        return next((p for p in self.pins if p.name == identifier), None)

    def pin_lines(self) -> list[str]:
        return sorted(f"{p.name}=={v}" for p, v in self.pins.items())

    def unwrap(self) -> Mapping[Project, SemanticVersion]:
        return self.pins

    def edges(self) -> set[tuple[Identifier, Identifier]]:
        return set(self.graph.iter_edges())

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ResolvedOutcome):
            return NotImplemented
        return (
            self.root == other.root
            and dict(self.pins) == dict(other.pins)
            and set(self.graph) == set(other.graph)
            and self.edges() == other.edges()
        )

    __hash__ = None  # type: ignore[assignment]

    def to_mapping(self, *args, **kwargs) -> dict[str, Any]:
        return {
            "root": self.root.to_mapping(),
            "pins": [
                {**p.to_mapping(), "version": str(v)} for p, v in self.pins.items()
            ],
            "edges": sorted([f.name, t.name] for f, t in self.graph.iter_edges()),
        }


@dataclass(frozen=True, slots=True)
class FailedOutcome(MultiformatSerializableMixin):
    """
    Failed resolution: at least one dependency edge could not be satisfied.

    Failures keep discovery order (breadth-first level, then declaration order within
    a project), which keeps reports reproducible and diffable.
    """

    root: Project
    failures: tuple[VersionRequirementNotSatisfied, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "failures", tuple(self.failures))
        if not self.failures:
            raise ValueError("FailedOutcome requires at least one failure")

    @property
    def ok(self) -> bool:
        return False

    def describe(self) -> str:
        return "\n".join(
            f"{f.identifier} {f.requirement}: no satisfying version" for f in self.failures
        )

    def unwrap(self) -> Mapping[Project, SemanticVersion]:
        raise UnresolvedRequirementsError(self.failures)

    def to_mapping(self, *args, **kwargs) -> dict[str, Any]:
        return {
            "root": self.root.to_mapping(),
            "failures": [f.to_mapping() for f in self.failures],
        }


ResolutionOutcome: TypeAlias = ResolvedOutcome | FailedOutcome

