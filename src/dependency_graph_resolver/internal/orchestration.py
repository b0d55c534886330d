from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Sequence

from dependency_graph_resolver.fetcher import Fetcher, FetchFunction
from dependency_graph_resolver.model.identity import (
    Identifier,
    SemanticVersionRequirement,
)
from dependency_graph_resolver.model.resolution import (
    Candidates,
    FetchResult,
    Unresolved,
)


@dataclass(frozen=True, slots=True)
class ChainedFetcher(Fetcher):
    """
    Fetcher that asks a sequence of fetchers in order.

    - first ``Candidates`` wins
    - an ``Unresolved`` link falls through to the next one
    - an exception from a link is logged and recorded, never propagated
    """

    fetchers: Sequence[Fetcher | FetchFunction]

    def fetch(
        self, identifier: Identifier, requirement: SemanticVersionRequirement
    ) -> FetchResult:
        causes: list[str] = []

        for fetcher in self.fetchers:
            name = type(fetcher).__name__
            try:
                result = fetcher(identifier, requirement)
            except Exception as e:
                causes.append(f"{name}: {type(e).__name__}: {e}")
                logging.debug(
                    f"fetcher failed: {name} {identifier} {requirement} err={type(e).__name__}: {e}"
                )
                continue

            if isinstance(result, Candidates):
                return result

            if isinstance(result, Unresolved):
                logging.debug(f"fetcher unresolved: {name} {identifier} {requirement}")
                if result.reason:
                    causes.append(f"{name}: {result.reason}")
                continue

            causes.append(f"{name}: unexpected result {type(result).__name__}")
            logging.debug(
                f"fetcher returned unexpected {type(result).__name__}: {name} {identifier}"
            )

        return Unresolved(reason="; ".join(causes) or "no fetcher configured")

    def close(self) -> None:
        for fetcher in self.fetchers:
            if isinstance(fetcher, Fetcher):
                fetcher.close()


@dataclass(slots=True)
class CachingFetcher(Fetcher):
    """
    Memoizes another fetcher per ``(identifier, requirement)``.

    The cache lives as long as this object, so it can span several resolution runs.
    Lookups and stores are guarded by a lock for concurrent traversals; two threads
    asking for the same key at once may both reach the delegate.
    """

    delegate: Fetcher | FetchFunction
    _cache: dict[tuple[Identifier, SemanticVersionRequirement], FetchResult] = field(
        default_factory=dict, init=False, repr=False
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def fetch(
        self, identifier: Identifier, requirement: SemanticVersionRequirement
    ) -> FetchResult:
        key = (identifier, requirement)
        with self._lock:
            hit = self._cache.get(key)
        if hit is not None:
            return hit

        result = self.delegate(identifier, requirement)
        with self._lock:
            self._cache.setdefault(key, result)
        return result

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def close(self) -> None:
        self.clear()
        if isinstance(self.delegate, Fetcher):
            self.delegate.close()
