from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TypeAlias

from dependency_graph_resolver.model.identity import (
    Identifier,
    SemanticVersionRequirement,
)
from dependency_graph_resolver.model.resolution import FetchResult

FETCHER_ENTRYPOINT_GROUP = "dependency_graph_resolver.fetchers"

FetchFunction: TypeAlias = Callable[[Identifier, SemanticVersionRequirement], FetchResult]


class Fetcher(ABC):
    """
    Source of candidate versions for a requirement.

    From the resolver's point of view ``fetch`` is a pure query. Implementations may
    cache or perform network I/O internally, but they must translate their own faults
    (network errors, malformed registry data) into either ``Candidates`` or
    ``Unresolved``; the resolver has no taxonomy for anything else.
    """

    @abstractmethod
    def fetch(
        self, identifier: Identifier, requirement: SemanticVersionRequirement
    ) -> FetchResult: ...

    def __call__(
        self, identifier: Identifier, requirement: SemanticVersionRequirement
    ) -> FetchResult:
        return self.fetch(identifier, requirement)

    def close(self) -> None:
        """
        Cleanup hook for fetchers.

        The default implementation is a no-op. Override in fetchers
        that hold resources (sessions, connections, temp dirs, etc.).
        """
        return None

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
