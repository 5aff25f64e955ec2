"""Half-open minute intervals within a single day"""
from typing import Iterable, List, Tuple

Interval = Tuple[int, int]


def merge(intervals: Iterable[Interval]) -> List[Interval]:
    """Union overlapping or touching intervals, dropping empty ones"""
    merged: List[Interval] = []
    for start, end in sorted(i for i in intervals if i[0] < i[1]):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def subtract(base: Iterable[Interval], removed: Iterable[Interval]) -> List[Interval]:
    """Interval difference: every part of ``base`` not covered by ``removed``"""
    remaining = merge(base)
    for cut_start, cut_end in merge(removed):
        next_remaining: List[Interval] = []
        for start, end in remaining:
            if cut_end <= start or cut_start >= end:
                next_remaining.append((start, end))
                continue
            if start < cut_start:
                next_remaining.append((start, cut_start))
            if cut_end < end:
                next_remaining.append((cut_end, end))
        remaining = next_remaining
    return remaining


def tile(intervals: Iterable[Interval], width: int) -> List[Interval]:
    """Cut each interval into consecutive windows of ``width`` minutes.

    A trailing remainder shorter than ``width`` is dropped.
    """
    if width <= 0:
        raise ValueError("width must be positive")
    windows: List[Interval] = []
    for start, end in merge(intervals):
        cursor = start
        while cursor + width <= end:
            windows.append((cursor, cursor + width))
            cursor += width
    return windows
