from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from typing_extensions import Self

from dependency_graph_resolver.internal.util.multiformat import MultiformatModelMixin
from dependency_graph_resolver.model.identity import (
    Identifier,
    SemanticVersionRequirement,
)


@dataclass(frozen=True, slots=True)
class Project(MultiformatModelMixin):
    """
    Immutable record of a package's identity and its declared dependency requirements.

    A Project describes one concrete release of a package: the same name can appear in
    several Project values, each carrying the dependency set of a different version.
    Traversal keys on ``name``; equality and hashing cover the name *and* the
    dependency set so those snapshots stay distinguishable.

    Dependencies keep their declaration order, which fixes the order in which the
    resolver examines a project's edges.

    Attributes:
        name (Identifier): The package identifier.
        dependencies (Mapping[Identifier, SemanticVersionRequirement]): Read-only,
            insertion-ordered mapping of dependency identifier to requirement.
    """

    name: Identifier
    dependencies: Mapping[Identifier, SemanticVersionRequirement] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        if not isinstance(self.name, Identifier):
            raise TypeError(
                f"Project.name must be an Identifier, got {type(self.name).__name__}"
            )
        deps: dict[Identifier, SemanticVersionRequirement] = {}
        for dep_id, req in self.dependencies.items():
            if not isinstance(dep_id, Identifier):
                raise TypeError(
                    f"{self.name}: dependency key must be an Identifier, got {dep_id!r}"
                )
            if not isinstance(req, SemanticVersionRequirement):
                raise TypeError(
                    f"{self.name}: requirement for {dep_id} must be a "
                    f"SemanticVersionRequirement, got {req!r}"
                )
            deps[dep_id] = req
        object.__setattr__(self, "dependencies", MappingProxyType(deps))

    @classmethod
    def of(
        cls,
        name: str | Identifier,
        dependencies: Mapping[str | Identifier, Any] | None = None,
    ) -> Project:
        """
        Build a Project from plain strings, e.g. ``Project.of("app", {"lib": ">=1.0"})``.

        Keys are normalized through :class:`Identifier`; a later key that normalizes to
        an earlier one is rejected, because dependency keys must be unique.
        """
        ident = name if isinstance(name, Identifier) else Identifier(name)
        deps: dict[Identifier, SemanticVersionRequirement] = {}
        for raw_id, raw_req in (dependencies or {}).items():
            dep_id = raw_id if isinstance(raw_id, Identifier) else Identifier(raw_id)
            if dep_id in deps:
                raise ValueError(f"{ident}: duplicate dependency {dep_id}")
            deps[dep_id] = SemanticVersionRequirement.parse(
                "" if raw_req is None else raw_req
            )
        return cls(name=ident, dependencies=deps)

    def iter_dependencies(self) -> Iterator[tuple[Identifier, SemanticVersionRequirement]]:
        return iter(self.dependencies.items())

    def _identity(self) -> tuple[Identifier, frozenset[tuple[Identifier, SemanticVersionRequirement]]]:
        return self.name, frozenset(self.dependencies.items())

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Project) and self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __repr__(self) -> str:
        deps = ", ".join(f"{k} {v}" for k, v in self.dependencies.items())
        return f"Project({self.name}: [{deps}])"

    def __str__(self) -> str:
        return str(self.name)

    # :: MechanicalOperation | type=serialization
    def to_mapping(self, *args, **kwargs) -> dict[str, Any]:
        return {
            "name": self.name.name,
            "dependencies": {k.name: str(v.specifier) for k, v in self.dependencies.items()},
        }

    # :: MechanicalOperation | type=deserialization
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], **_: Any) -> Self:
        deps = mapping.get("dependencies") or {}
        if not isinstance(deps, Mapping):
            raise TypeError(
                f"dependencies must be a mapping of name to specifier, got {type(deps).__name__}"
            )
        return cls.of(mapping["name"], deps)
