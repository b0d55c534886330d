from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from resolvelib import BaseReporter
from resolvelib.structs import State

from dependency_graph_resolver.model.identity import (
    Identifier,
    SemanticVersion,
    SemanticVersionRequirement,
)
from dependency_graph_resolver.model.project import Project
from dependency_graph_resolver.model.resolution import VersionRequirementNotSatisfied


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """A single ``identifier requirement`` edge declared by a project."""

    identifier: Identifier
    requirement: SemanticVersionRequirement

    def __str__(self) -> str:
        return f"{self.identifier} {self.requirement}"


@dataclass(frozen=True, slots=True)
class PinnedCandidate:
    """The candidate chosen for an edge: the project snapshot at its version."""

    project: Project
    version: SemanticVersion

    def __str__(self) -> str:
        return f"{self.project.name}=={self.version}"


class ResolutionReporter(BaseReporter[DependencyEdge, PinnedCandidate, Identifier]):
    """
    Logs the traversal lifecycle through the resolvelib reporter hooks.

    One round is one dequeued project. ``rejecting_candidate`` is called with the
    failure record as the criterion and no candidate, because an unresolved edge has
    nothing to reject.
    """

    def starting(self) -> None:
        logging.log(logging.INFO, "Starting resolution...")

    def starting_round(self, index: int) -> None:
        logging.log(logging.DEBUG, f"Starting round {index}")

    def ending_round(
        self, index: int, state: State[DependencyEdge, PinnedCandidate, Identifier]
    ) -> None:
        logging.log(
            logging.DEBUG, f"Ending round {index} ({len(state.mapping)} pinned)"
        )

    def ending(self, state: State[DependencyEdge, PinnedCandidate, Identifier]) -> None:
        logging.log(
            logging.INFO, f"Resolution complete ({len(state.mapping)} pinned)."
        )

    def adding_requirement(
        self, requirement: DependencyEdge, parent: PinnedCandidate | None
    ) -> None:
        logging.log(
            logging.DEBUG, f"Adding requirement: {requirement} (parent={parent})"
        )

    def pinning(self, candidate: PinnedCandidate) -> None:
        logging.log(logging.DEBUG, f"Pinning candidate: {candidate}")

    def rejecting_candidate(self, criterion: Any, candidate: Any) -> None:
        if isinstance(criterion, VersionRequirementNotSatisfied):
            logging.log(logging.DEBUG, f"Unsatisfied requirement: {criterion}")
            return
        logging.log(
            logging.DEBUG, f"Rejecting candidate: {candidate} (criterion={criterion})"
        )
