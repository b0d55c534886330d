from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any, Literal, Mapping, Protocol

from dependency_graph_resolver.fetcher import FETCHER_ENTRYPOINT_GROUP, Fetcher
from dependency_graph_resolver.internal.compatibility import validate_typed_dict


class FetcherRegistryError(RuntimeError):
    pass


class FetcherEntrypointError(FetcherRegistryError):
    pass


class FetcherFactoryError(FetcherRegistryError):
    """
    Raised when a registered factory builds something that is not a Fetcher.
    """


class FetcherFactory(Protocol):
    def __call__(self, *, config: Mapping[str, Any] | None = None) -> Fetcher: ...


@dataclass(frozen=True, slots=True)
class FetcherPlugin:
    """
    A named way of building a Fetcher for one run.

    Attributes:
        fetcher_id: The id callers select the fetcher by.
        factory: Called as ``factory(config=...)``; a Fetcher subclass works too.
        origin: "builtin" for fetchers shipped here, "entrypoint" for discovered ones.
        config_type: Optional TypedDict naming the config keys the factory accepts.
        config_values: Type (or types) every config value must have when
            ``config_type`` is set.
    """

    fetcher_id: str
    factory: FetcherFactory
    origin: Literal["builtin", "entrypoint"] = "builtin"
    config_type: type | None = None
    config_values: type | tuple[type, ...] = object

    def create(self, config: Mapping[str, Any] | None = None) -> Fetcher:
        if self.config_type is not None:
            validate_typed_dict(
                f"{self.fetcher_id} fetcher config",
                config or {},
                self.config_type,
                self.config_values,
            )

        fetcher = self.factory(config=config)
        if not isinstance(fetcher, Fetcher):
            raise FetcherFactoryError(
                f"fetcher {self.fetcher_id!r} ({self.origin}) built "
                f"{type(fetcher).__name__}, which is not a Fetcher"
            )
        return fetcher


@dataclass(frozen=True, slots=True)
class FetcherRegistry:
    """Fetcher plugins available to a run, keyed by fetcher id."""

    plugins: Mapping[str, FetcherPlugin]

    @classmethod
    def of(cls, *plugins: FetcherPlugin) -> FetcherRegistry:
        by_id: dict[str, FetcherPlugin] = {}
        for plugin in plugins:
            prior = by_id.get(plugin.fetcher_id)
            if prior is not None:
                raise FetcherRegistryError(
                    f"fetcher id {plugin.fetcher_id!r} registered twice "
                    f"({prior.origin} and {plugin.origin})"
                )
            by_id[plugin.fetcher_id] = plugin
        return cls(plugins=by_id)

    def __contains__(self, fetcher_id: object) -> bool:
        return fetcher_id in self.plugins

    def ids(self) -> list[str]:
        return sorted(self.plugins)


def plugin_from_entrypoint(name: str, obj: object) -> FetcherPlugin:
    """
    Turn the object an entry point loaded into a FetcherPlugin.

    Accepted shapes:
      - a concrete Fetcher subclass whose constructor takes a keyword ``config``
      - a factory function ``def factory(*, config=None) -> Fetcher``

    Either may carry ``config_type`` / ``config_values`` attributes; the config is then
    validated before the fetcher is built.
    """
    if inspect.isclass(obj):
        if not issubclass(obj, Fetcher):
            raise FetcherEntrypointError(
                f"fetcher entry point {name!r} loads class {obj.__name__}, which is not a Fetcher"
            )
        if inspect.isabstract(obj):
            raise FetcherEntrypointError(
                f"fetcher entry point {name!r} loads abstract Fetcher {obj.__name__}"
            )
    elif not callable(obj):
        raise FetcherEntrypointError(
            f"fetcher entry point {name!r} loads {type(obj).__name__}; "
            "expected a Fetcher subclass or a factory function"
        )

    sig = inspect.signature(obj)
    config = sig.parameters.get("config")
    if config is None or config.kind not in (
        inspect.Parameter.KEYWORD_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        raise FetcherEntrypointError(
            f"fetcher entry point {name!r} must accept a keyword 'config' argument. Signature={sig}"
        )

    return FetcherPlugin(
        fetcher_id=name,
        factory=obj,  # type: ignore[arg-type]
        origin="entrypoint",
        config_type=getattr(obj, "config_type", None),
        config_values=getattr(obj, "config_values", object),
    )


def discover_fetcher_plugins(*, group: str = FETCHER_ENTRYPOINT_GROUP) -> list[FetcherPlugin]:
    plugins: list[FetcherPlugin] = []
    for ep in entry_points().select(group=group):
        plugins.append(plugin_from_entrypoint(ep.name, ep.load()))
        logging.debug(f"discovered fetcher entry point: {ep.name}")
    return plugins
