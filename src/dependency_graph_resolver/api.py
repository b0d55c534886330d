from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from dependency_graph_resolver.internal.traversal import resolve
from dependency_graph_resolver.model.project import Project
from dependency_graph_resolver.model.resolution import (
    ResolutionOutcome,
    ResolutionPolicy,
)


@dataclass(kw_only=True, frozen=True, slots=True)
class ResolutionParams:
    """
    Everything needed to run one resolution through the engine.

    Attributes:
        root (Project): The project whose dependency graph is resolved.
        fetcher_id (str | None): Registered fetcher to use; None selects the builtin
            catalog fetcher.
        fetcher_config (Mapping[str, Any] | None): Passed to the fetcher factory.
        policy (ResolutionPolicy): Traversal settings.
    """

    root: Project
    fetcher_id: str | None = None
    fetcher_config: Mapping[str, Any] | None = None
    policy: ResolutionPolicy = field(default_factory=ResolutionPolicy)


@dataclass(kw_only=True, frozen=True, slots=True)
class DependencyResolutionEngine:
    """
    Entry point that wires a configured fetcher to the breadth-first resolver.

    The fetcher is created for the run and closed when the run ends, whatever the
    outcome.
    """

    @staticmethod
    # :: FeatureFlow | type=feature_start | name=full_resolution
    def resolve(params: ResolutionParams) -> ResolutionOutcome:
        from dependency_graph_resolver.internal.fetchers.factory import open_fetcher

        logging.debug(
            f"resolving {params.root.name} with fetcher={params.fetcher_id or 'default'} "
            f"policy={params.policy.to_mapping()}"
        )
        with open_fetcher(
            fetcher_id=params.fetcher_id, config=params.fetcher_config
        ) as fetcher:
            return resolve(params.root, fetcher, policy=params.policy)
