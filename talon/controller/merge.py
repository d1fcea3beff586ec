"""
Route option merging.

Decorators stacked on one method apply bottom-up, so each application
merges the options already recorded ("existing") with its own ("new"):

- scalars: a supplied new value wins
- sequences: ``unify(new + existing)``, which keeps them in top-down
  source order
- extra data: merged per value kind (see ``ExtraValueKind``)
"""

from typing import Any, Dict, Iterable, List, Optional
from dataclasses import replace
from enum import Enum

from .metadata import RouteOptions


def unify(items: Iterable[Any]) -> List[Any]:
    """Order-preserving de-duplication; unhashable items compare by equality."""
    seen = set()
    unhashable: List[Any] = []
    result: List[Any] = []
    for item in items:
        try:
            if item in seen:
                continue
            seen.add(item)
        except TypeError:
            if item in unhashable:
                continue
            unhashable.append(item)
        result.append(item)
    return result


class ExtraValueKind(str, Enum):
    """
    Closed set of value kinds in a route's extra-data mapping.

    SEQUENCE: lists/tuples, unioned in order with duplicates dropped
    MAPPING: dicts, shallow-merged with new keys winning
    SCALAR: everything else, the new value replaces the current one
    """

    SEQUENCE = "sequence"
    MAPPING = "mapping"
    SCALAR = "scalar"

    @classmethod
    def of(cls, value: Any) -> "ExtraValueKind":
        if isinstance(value, (list, tuple)):
            return cls.SEQUENCE
        if isinstance(value, dict):
            return cls.MAPPING
        return cls.SCALAR


def merge_extra_value(current: Any, new: Any) -> Any:
    kind = ExtraValueKind.of(new)
    if kind is not ExtraValueKind.of(current):
        return new
    if kind is ExtraValueKind.SEQUENCE:
        return unify([*current, *new])
    if kind is ExtraValueKind.MAPPING:
        return {**current, **new}
    return new


def merge_extra_data(
    current: Optional[Dict[str, Any]],
    new: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    merged = dict(current or {})
    for key, value in (new or {}).items():
        if key in merged:
            merged[key] = merge_extra_value(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_route_options(existing: Optional[RouteOptions], new: RouteOptions) -> RouteOptions:
    """Merge ``new`` (the outer decorator) into ``existing`` (inner ones)."""
    if existing is None:
        existing = RouteOptions()

    def pick(attr: str) -> Any:
        value = getattr(new, attr)
        return value if value is not None else getattr(existing, attr)

    extra_data = existing.extra_data
    if new.extra_data is not None:
        extra_data = merge_extra_data(existing.extra_data, new.extra_data)

    return replace(
        existing,
        method=pick("method"),
        path=pick("path"),
        name=pick("name"),
        authenticated=pick("authenticated"),
        validations=unify([*new.validations, *existing.validations]),
        permissions=unify([*new.permissions, *existing.permissions]),
        middlewares=unify([*new.middlewares, *existing.middlewares]),
        extra_data=extra_data,
    )
