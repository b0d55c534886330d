from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Any, Literal, Mapping

from packaging.specifiers import SpecifierSet
from packaging.utils import canonicalize_name
from packaging.version import Version
from typing_extensions import Self

from dependency_graph_resolver.internal.util.multiformat import MultiformatModelMixin


class PreReleasePolicy(Enum):
    DEFAULT = "default"  # let packaging decide (SpecifierSet prerelease rules)
    ALLOW = "allow"  # treat prereleases as allowed for contains checks
    DISALLOW = "disallow"  # treat prereleases as not allowed for contains checks

    @property
    def prereleases(self) -> bool | None:
        match self:
            case PreReleasePolicy.ALLOW:
                return True
            case PreReleasePolicy.DISALLOW:
                return False
            case _:
                return None


def normalize_project_name(project: str) -> str:
    """
    Normalize a project name for consistent keying.

    This uses packaging's canonicalize_name, which is what pip uses for normalization.
    """
    return canonicalize_name(project)


@total_ordering
@dataclass(frozen=True, slots=True)
class Identifier:
    """
    Unique, normalized name of a package.

    Two identifiers are equal when their normalized names are equal, so
    ``Identifier("Foo_Bar") == Identifier("foo-bar")``. This is stricter than an
    opaque name: spellings that differ only in case or in runs of ``-_.`` are one
    package, so a project cannot declare both ``A`` and ``a`` as dependencies. The
    ordering is the lexical ordering of the normalized name and only exists to make
    reports deterministic.
    """

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError(f"Identifier requires a non-empty name, got {self.name!r}")
        object.__setattr__(self, "name", normalize_project_name(self.name.strip()))

    def __lt__(self, other: Identifier) -> bool:
        if not isinstance(other, Identifier):
            return NotImplemented
        return self.name < other.name

    def __str__(self) -> str:
        return self.name


@total_ordering
@dataclass(frozen=True, slots=True)
class SemanticVersion:
    """
    A concrete release version with a total order.

    The order (and therefore equality) is PEP 440 ordering as implemented by
    ``packaging.version.Version``; ``1.0`` and ``1.0.0`` are the same version.
    """

    value: Version

    @classmethod
    def parse(cls, text: str | Version | SemanticVersion) -> SemanticVersion:
        if isinstance(text, SemanticVersion):
            return text
        if isinstance(text, Version):
            return cls(text)
        return cls(Version(str(text)))

    @property
    def is_prerelease(self) -> bool:
        return self.value.is_prerelease

    def __lt__(self, other: SemanticVersion) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.value < other.value

    def __str__(self) -> str:
        return str(self.value)


def compare(a: SemanticVersion, b: SemanticVersion) -> Literal[-1, 0, 1]:
    """
    Three-way comparison of two versions: ``-1`` less, ``0`` equal, ``1`` greater.
    """
    if a < b:
        return -1
    if a == b:
        return 0
    return 1


@dataclass(frozen=True, slots=True)
class SemanticVersionRequirement(MultiformatModelMixin):
    """
    Predicate over :class:`SemanticVersion` values, e.g. ``>=1.2.0,<2.0.0``.

    Evaluation is stateless. An empty specifier accepts every version, subject to
    the prerelease handling of ``packaging``.

    Attributes:
        specifier (SpecifierSet): The parsed version specifier set.
    """

    specifier: SpecifierSet = field(default_factory=SpecifierSet)

    @classmethod
    def parse(cls, text: str | SpecifierSet | SemanticVersionRequirement) -> Self:
        if isinstance(text, SemanticVersionRequirement):
            return text
        if isinstance(text, SpecifierSet):
            return cls(specifier=text)
        raw = str(text).strip()
        if raw == "*":
            raw = ""
        return cls(specifier=SpecifierSet(raw))

    @classmethod
    def any(cls) -> Self:
        return cls()

    def satisfies(
        self, version: SemanticVersion, *, prereleases: bool | None = None
    ) -> bool:
        return self.specifier.contains(version.value, prereleases=prereleases)

    def __str__(self) -> str:
        return str(self.specifier) or "*"

    # :: MechanicalOperation | type=serialization
    def to_mapping(self, *args, **kwargs) -> dict[str, Any]:
        return {"specifier": str(self.specifier)}

    # :: MechanicalOperation | type=deserialization
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], **_: Any) -> Self:
        return cls.parse(mapping.get("specifier") or "")


def satisfies(
    requirement: SemanticVersionRequirement,
    version: SemanticVersion,
    *,
    prereleases: bool | None = None,
) -> bool:
    return requirement.satisfies(version, prereleases=prereleases)
