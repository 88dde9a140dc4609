"""
Core Utility Functions.

Common helpers for tag comparison and loosely-typed row access.
"""

from typing import Any, Iterable, Optional, Set


def normalize_string_set(items: Optional[Iterable[str]]) -> Set[str]:
    """
    Normalize a list of strings to a set of lowercase, stripped strings.

    Args:
        items: Strings (may contain None or empty strings)

    Returns:
        Set of normalized strings
    """
    if not items:
        return set()
    return {s.lower().strip() for s in items if s}


def count_shared(source: Optional[Iterable[str]], candidate: Optional[Iterable[str]]) -> int:
    """
    Count entries of ``source`` that also appear in ``candidate``.

    Comparison is case-insensitive. Each source entry counts once per
    occurrence in ``source``.

    Examples:
        >>> count_shared(["Casual", "boho"], ["casual", "minimal"])
        1
    """
    if not source or not candidate:
        return 0
    candidate_set = normalize_string_set(candidate)
    return sum(1 for s in source if s and s.lower().strip() in candidate_set)


def same_tag(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive equality for two optional tags; blanks never match."""
    if not a or not b:
        return False
    return a.lower().strip() == b.lower().strip()


def safe_get(obj: Any, *keys: str, default: Any = None) -> Any:
    """
    Safely get nested dictionary values.

    Args:
        obj: Dictionary or object
        *keys: Keys to traverse
        default: Default value if key not found

    Example:
        >>> safe_get({'a': {'b': 1}}, 'a', 'b')
        1
        >>> safe_get({'a': {}}, 'a', 'b', default=0)
        0
    """
    current = obj
    for key in keys:
        if isinstance(current, dict):
            current = current.get(key)
        elif hasattr(current, key):
            current = getattr(current, key)
        else:
            return default
        if current is None:
            return default
    return current
