"""
Helper functions for common operations.
Provides reusable utility functions.
"""
import uuid
from typing import Iterable, List, Optional, Tuple


CANONICAL_KEY_SEPARATOR = "_"


def generate_id() -> str:
    """
    Generate a new string identifier.

    Returns:
        32-character hex string

    Example:
        >>> len(generate_id())
        32
    """
    return uuid.uuid4().hex


def canonical_key(user_a: str, user_b: str) -> str:
    """
    Build the canonical conversation key for a participant pair.

    The key is independent of argument order.

    Example:
        >>> canonical_key("u2", "u1")
        'u1_u2'
    """
    first, second = sorted([user_a, user_b])
    return f"{first}{CANONICAL_KEY_SEPARATOR}{second}"


def split_canonical_key(key: str) -> Optional[Tuple[str, str]]:
    """
    Split an "idA_idB" reference into its two participant identifiers.

    Returns:
        Tuple of the two identifiers, or None if the reference is not a pair

    Example:
        >>> split_canonical_key("u1_u2")
        ('u1', 'u2')
        >>> split_canonical_key("abc") is None
        True
    """
    parts = key.split(CANONICAL_KEY_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def unique_ordered(values: Iterable[Optional[str]]) -> List[str]:
    """
    Deduplicate values preserving first-seen order, dropping empty ones.

    Example:
        >>> unique_ordered(["a", None, "b", "a", ""])
        ['a', 'b']
    """
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def truncate(text: Optional[str], length: int = 100) -> str:
    """
    Truncate text for notification bodies and previews.

    Example:
        >>> truncate("hello world", 5)
        'hello'
    """
    if not text:
        return ""
    return text[:length]
