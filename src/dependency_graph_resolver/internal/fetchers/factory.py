from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from dependency_graph_resolver.fetcher import Fetcher
from dependency_graph_resolver.internal.fetchers.builtin import (
    BUILTIN_FETCHER_PLUGINS,
    DEFAULT_FETCHER_ID,
)
from dependency_graph_resolver.internal.fetchers.registry import (
    FetcherPlugin,
    FetcherRegistry,
    FetcherRegistryError,
    discover_fetcher_plugins,
)


class FetcherSelectionError(RuntimeError):
    """
    Raised when no usable fetcher can be selected for a run.
    """

    pass


def build_fetcher_registry() -> FetcherRegistry:
    """Builtin plugins first, then every plugin found under the entry point group."""
    return FetcherRegistry.of(*BUILTIN_FETCHER_PLUGINS, *discover_fetcher_plugins())


def _select_fetcher(
    *, fetcher_id: str | None, registry: FetcherRegistry
) -> FetcherPlugin:
    fid = fetcher_id or DEFAULT_FETCHER_ID
    if fid not in registry:
        raise FetcherSelectionError(
            f"unknown fetcher id {fid!r}. available={registry.ids()}"
        )
    return registry.plugins[fid]


@contextmanager
def open_fetcher(
    *,
    fetcher_id: str | None = None,
    config: Mapping[str, Any] | None = None,
    registry: FetcherRegistry | None = None,
) -> Iterator[Fetcher]:
    """
    Create exactly one fetcher for the run and close it afterwards.

    Parameters:
      - fetcher_id: None means "use the default" (the builtin catalog fetcher)
      - config: validated against the plugin's config type, then passed to its factory
      - registry: test seam; when given, entry points are not scanned

    Registry problems (bad or duplicate entry points) surface as FetcherSelectionError.
    Config validation errors and FetcherFactoryError propagate unchanged.
    """
    try:
        if registry is None:
            registry = build_fetcher_registry()
        plugin = _select_fetcher(fetcher_id=fetcher_id, registry=registry)
    except FetcherRegistryError as e:
        raise FetcherSelectionError(str(e)) from e

    logging.debug(f"opening fetcher {plugin.fetcher_id!r} ({plugin.origin})")
    fetcher = plugin.create(config)

    try:
        yield fetcher
    finally:
        fetcher.close()
