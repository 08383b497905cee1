"""
Semantic equality over JSON value trees.

Used to decide whether a desired configuration differs from what is
already applied, so that unchanged values never cause a write.
"""

from typing import Any


def _is_id_list(items: list[Any]) -> bool:
    return all(isinstance(item, dict) and "id" in item for item in items)


def _id_set(items: list[dict[str, Any]]) -> set[Any]:
    return {item["id"] for item in items}


def values_equal(a: Any, b: Any) -> bool:
    """
    Compare two JSON value trees.

    Lists whose elements are all objects with an ``id`` are compared as id
    sets, ignoring order and the other fields. Any other lists are compared
    element by element. Objects need the same keys with equal values.
    Booleans never equal numbers.
    """
    if isinstance(a, list) and isinstance(b, list):
        if len(a) != len(b):
            return False
        if a and _is_id_list(a) and _is_id_list(b):
            return _id_set(a) == _id_set(b)
        return all(values_equal(x, y) for x, y in zip(a, b, strict=True))

    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(values_equal(a[key], b[key]) for key in a)

    if isinstance(a, (list, dict)) or isinstance(b, (list, dict)):
        return False

    if isinstance(a, bool) != isinstance(b, bool):
        return False

    return a == b


def changed_fields(
    current: dict[str, Any], desired: dict[str, Any]
) -> tuple[list[str], list[str], list[str]]:
    """
    Top-level keys that differ between two objects.

    Returns:
        Tuple of (added, modified, removed) key lists
    """
    added = [key for key in desired if key not in current]
    removed = [key for key in current if key not in desired]
    modified = [
        key
        for key in desired
        if key in current and not values_equal(current[key], desired[key])
    ]
    return added, modified, removed
