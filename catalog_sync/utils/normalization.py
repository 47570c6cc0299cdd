"""
Value normalization utilities for upstream payloads
"""
import math
from typing import Any, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


def normalize_text(value: Any) -> Optional[str]:
    """
    Normalize free text from the API:
    - Non-strings become None
    - Surrounding whitespace is removed
    - Empty strings become None
    """
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def normalize_number(value: Any) -> Optional[int]:
    """
    Normalize numeric fields to int.
    Accepts finite numbers and numeric strings; booleans are not numbers here.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return int(parsed) if math.isfinite(parsed) else None
    return None


def normalize_bool(value: Any) -> Optional[bool]:
    """Only real booleans count; anything else is unknown"""
    if isinstance(value, bool):
        return value
    return None


def normalize_int_list(value: Any) -> List[int]:
    if not isinstance(value, list):
        return []
    return [number for number in (normalize_number(entry) for entry in value) if number is not None]


def normalize_sort_type(value: str) -> str:
    return value.strip().lower()


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of at most `size` items"""
    chunk: List[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk
