"""Comparator-driven sorting and searching over plain lists.

Comparators take two items and return a negative number, zero or a
positive number, in the manner of ``strcmp``.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

Compare = Callable[[Any, Any], int]
Cancelled = Optional[Callable[[], bool]]

_INSERTION_SORT_LIMIT = 64


def _is_cancelled(cancelled: Cancelled) -> bool:
    return bool(cancelled is not None and cancelled())


def _insertion_sort(items: list, compare: Compare) -> None:
    for i, value in enumerate(items):
        j = i
        while j > 0 and compare(items[j - 1], value) > 0:
            items[j] = items[j - 1]
            j -= 1
        items[j] = value


def _merge(src: list, dest: list, start: int, center: int, end: int,
           compare: Compare, cancelled: Cancelled) -> None:
    if _is_cancelled(cancelled):
        return
    i, j = start, center
    for k in range(start, end):
        if i < center and (j >= end or compare(src[i], src[j]) < 1):
            dest[k] = src[i]
            i += 1
        else:
            dest[k] = src[j]
            j += 1


def _split_merge(src: list, dest: list, start: int, end: int,
                 compare: Compare, cancelled: Cancelled) -> None:
    if end - 1 <= start:
        return
    if _is_cancelled(cancelled):
        return
    center = (start + end) // 2
    _split_merge(dest, src, start, center, compare, cancelled)
    _split_merge(dest, src, center, end, compare, cancelled)
    _merge(src, dest, start, center, end, compare, cancelled)


def sort(items: Sequence, compare: Compare, cancelled: Cancelled = None) -> list:
    """Return a new list with ``items`` stably sorted by ``compare``.

    Short sequences are insertion-sorted and ignore ``cancelled``. Longer
    ones use a top-down merge sort that checks ``cancelled`` as it goes;
    once it reports true, the items are returned in their original order.
    """
    result = list(items)
    if len(result) < _INSERTION_SORT_LIMIT:
        _insertion_sort(result, compare)
        return result

    scratch = list(result)
    _split_merge(scratch, result, 0, len(result), compare, cancelled)
    if _is_cancelled(cancelled):
        return list(items)
    return result


def binary_search(items: Sequence, item: Any, compare: Compare) -> Optional[int]:
    """Find ``item`` in the sorted ``items``; return its index or ``None``.

    ``compare`` is called as ``compare(element, item)``.
    """
    if not items:
        return None
    left, right = 0, len(items) - 1
    while left <= right:
        middle = left + (right - left) // 2
        match = compare(items[middle], item)
        if match == 0:
            return middle
        if match < 0:
            left = middle + 1
        elif middle > 0:
            right = middle - 1
        else:
            break
    return None


def index_of(items: Sequence, item: Any, compare: Optional[Compare] = None) -> Optional[int]:
    """Return the index of ``item`` in ``items`` or ``None``.

    With a comparator the sorted ``items`` are binary-searched; without one
    the first element that is the very same object is found.
    """
    if compare is not None:
        return binary_search(items, item, compare)
    return next((i for i, element in enumerate(items) if element is item), None)


def next_item(items: Sequence, item: Any, compare: Optional[Compare] = None) -> Any:
    """Return the element following ``item`` in ``items``.

    Returns ``None`` when ``item`` is missing or is the last element.
    """
    index = index_of(items, item, compare)
    if index is None or index >= len(items) - 1:
        return None
    return items[index + 1]