from __future__ import annotations

from collections.abc import Mapping
from os import PathLike
from typing import Any

from dependency_graph_resolver.fetcher import Fetcher
from dependency_graph_resolver.internal.compatibility import CatalogFetcherConfig
from dependency_graph_resolver.internal.fetchers.registry import FetcherPlugin


def _create_catalog(*, config: Mapping[str, Any] | None = None) -> Fetcher:
    from dependency_graph_resolver.internal.catalog import Catalog, CatalogFetcher
    from dependency_graph_resolver.model.identity import PreReleasePolicy

    cfg: Mapping[str, Any] = config or {}
    path = cfg.get("path")
    inline = cfg.get("catalog")
    if (path is None) == (inline is None):
        raise ValueError("catalog fetcher config requires exactly one of 'path' or 'catalog'")

    catalog = Catalog.from_file(path) if path is not None else Catalog.from_mapping(inline)
    policy = PreReleasePolicy(cfg.get("prerelease_policy", PreReleasePolicy.DEFAULT.value))
    return CatalogFetcher(catalog=catalog, prerelease_policy=policy)


DEFAULT_FETCHER_ID = "catalog"

BUILTIN_FETCHER_PLUGINS: tuple[FetcherPlugin, ...] = (
    FetcherPlugin(
        fetcher_id=DEFAULT_FETCHER_ID,
        factory=_create_catalog,
        config_type=CatalogFetcherConfig,
        config_values=(str, PathLike, Mapping),
    ),
)
