from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from typing_extensions import Self

from dependency_graph_resolver.fetcher import Fetcher
from dependency_graph_resolver.internal.util.multiformat import MultiformatModelMixin
from dependency_graph_resolver.model.identity import (
    Identifier,
    PreReleasePolicy,
    SemanticVersion,
    SemanticVersionRequirement,
)
from dependency_graph_resolver.model.project import Project
from dependency_graph_resolver.model.resolution import (
    Candidates,
    FetchResult,
    Unresolved,
)


@dataclass(frozen=True, slots=True)
class Catalog(MultiformatModelMixin):
    """
    Known releases of every package: identifier to version to that release's Project.

    A catalog document has the shape::

        [packages.app."1.0.0".dependencies]
        lib = ">=1.0"

        [packages.lib."1.2.0"]

    A release without a ``dependencies`` table has no dependencies.

    Attributes:
        releases (Mapping[Identifier, Mapping[SemanticVersion, Project]]): Read-only
            index of releases per package.
    """

    releases: Mapping[Identifier, Mapping[SemanticVersion, Project]] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        frozen: dict[Identifier, Mapping[SemanticVersion, Project]] = {}
        for ident, versions in self.releases.items():
            for version, project in versions.items():
                if project.name != ident:
                    raise ValueError(
                        f"catalog entry {ident}=={version} holds project {project.name}"
                    )
            frozen[ident] = MappingProxyType(dict(versions))
        object.__setattr__(self, "releases", MappingProxyType(frozen))

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.releases

    def __len__(self) -> int:
        return len(self.releases)

    def versions_of(self, identifier: Identifier) -> Mapping[SemanticVersion, Project]:
        return self.releases.get(identifier, MappingProxyType({}))

    def matching(
        self,
        identifier: Identifier,
        requirement: SemanticVersionRequirement,
        *,
        prereleases: bool | None = None,
    ) -> dict[SemanticVersion, Project]:
        return {
            version: project
            for version, project in self.versions_of(identifier).items()
            if requirement.satisfies(version, prereleases=prereleases)
        }

    # :: MechanicalOperation | type=serialization
    def to_mapping(self, *args, **kwargs) -> dict[str, Any]:
        return {
            "packages": {
                ident.name: {
                    str(version): {"dependencies": project.to_mapping()["dependencies"]}
                    for version, project in sorted(versions.items())
                }
                for ident, versions in self.releases.items()
            }
        }

    # :: MechanicalOperation | type=deserialization
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], **_: Any) -> Self:
        packages = mapping.get("packages") or {}
        if not isinstance(packages, Mapping):
            raise TypeError(
                f"catalog 'packages' must be a mapping, got {type(packages).__name__}"
            )
        releases: dict[Identifier, dict[SemanticVersion, Project]] = {}
        for raw_name, raw_versions in packages.items():
            ident = Identifier(raw_name)
            if ident in releases:
                raise ValueError(f"duplicate catalog package {raw_name!r} ({ident})")
            raw_versions = raw_versions or {}
            if not isinstance(raw_versions, Mapping):
                raise TypeError(
                    f"catalog package {ident} must map versions to releases, "
                    f"got {type(raw_versions).__name__}"
                )
            versions: dict[SemanticVersion, Project] = {}
            for raw_version, raw_release in raw_versions.items():
                version = SemanticVersion.parse(raw_version)
                if version in versions:
                    raise ValueError(f"duplicate catalog release {ident}=={version}")
                raw_release = raw_release or {}
                if not isinstance(raw_release, Mapping):
                    raise TypeError(
                        f"catalog release {ident}=={version} must be a mapping, "
                        f"got {type(raw_release).__name__}"
                    )
                deps = raw_release.get("dependencies") or {}
                versions[version] = Project.of(ident, deps)
            releases[ident] = versions
        return cls(releases=releases)


@dataclass(frozen=True, slots=True)
class CatalogFetcher(Fetcher):
    """
    Deterministic, in-memory Fetcher answering from a :class:`Catalog`.

    Unknown packages and requirements matching no release are ``Unresolved``.
    """

    catalog: Catalog
    prerelease_policy: PreReleasePolicy = PreReleasePolicy.DEFAULT

    def fetch(
        self, identifier: Identifier, requirement: SemanticVersionRequirement
    ) -> FetchResult:
        if identifier not in self.catalog:
            logging.debug(f"catalog has no package {identifier}")
            return Unresolved(reason=f"unknown package {identifier}")

        matches = self.catalog.matching(
            identifier, requirement, prereleases=self.prerelease_policy.prereleases
        )
        if not matches:
            return Unresolved(
                reason=f"no release of {identifier} matches {requirement}"
            )
        return Candidates(versions=matches)
