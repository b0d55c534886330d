from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypedDict


def validate_typed_dict(
    desc: str,
    mapping: Mapping[str, Any],
    validation_type: type,
    value_type: type | tuple[type, ...],
) -> None:
    """
    Check a configuration mapping against the keys of a TypedDict.

    Only key names and a shared value type are checked; per-key value types are left to
    whatever consumes the mapping.

    Args:
        desc: Human readable name of the mapping, used in error messages.
        mapping: The configuration to check.
        validation_type: TypedDict whose annotations list the accepted keys.
        value_type: Type, or tuple of types, every value must be an instance of.

    Raises:
        ValueError: On unknown keys (reported sorted) or on values of the wrong type.
    """
    unknown = sorted(set(mapping) - set(validation_type.__annotations__))
    if unknown:
        raise ValueError(f"Invalid {desc} keys: {unknown}")

    wrong = [(k, type(v).__name__) for k, v in mapping.items() if not isinstance(v, value_type)]
    if not wrong:
        return

    types = value_type if isinstance(value_type, tuple) else (value_type,)
    expected = " | ".join(t.__name__ for t in types)
    details = ", ".join(f"{k} (got {t})" for k, t in wrong)
    raise ValueError(f"Invalid {desc} values: expected {expected}; {details}")


class CatalogFetcherConfig(TypedDict, total=False):
    """
    Configuration accepted by the builtin ``catalog`` fetcher.

    Exactly one of ``path`` and ``catalog`` must be given.

      - path: catalog document (.json, .toml, .yaml/.yml)
      - catalog: inline catalog mapping, same shape as the document
      - prerelease_policy: "default" | "allow" | "disallow"
    """

    path: str
    catalog: Mapping[str, Any]
    prerelease_policy: str
