"""Line-aligned, size-bounded partitioning of a snapshot."""

from __future__ import annotations

import math
from bisect import bisect_left
from itertools import accumulate
from typing import List, Optional

from .types import Part


def part_count(
    size: int,
    line_count: int,
    max_bytes_per_part: int,
    max_lines_per_part: Optional[int] = None,
) -> int:
    if line_count == 0:
        return 0
    total = max(1, math.ceil(size / max_bytes_per_part))
    if max_lines_per_part:
        total = max(total, math.ceil(line_count / max_lines_per_part))
    # lines are never split, so there can be no more parts than lines
    return min(total, line_count)


def partition(
    content: bytes,
    max_bytes_per_part: int,
    max_lines_per_part: Optional[int] = None,
) -> List[Part]:
    """Split ``content`` into ``ceil(size / max_bytes_per_part)`` byte-balanced parts.

    Every line appears in exactly one part, in original order; concatenating the parts'
    content yields ``content`` again.
    """
    if max_bytes_per_part <= 0:
        raise ValueError("max_bytes_per_part must be > 0")
    if max_lines_per_part is not None and max_lines_per_part <= 0:
        raise ValueError("max_lines_per_part must be > 0")

    lines = content.splitlines(keepends=True)
    total = part_count(len(content), len(lines), max_bytes_per_part, max_lines_per_part)
    if total == 0:
        return []
    if total == 1:
        return [Part(index=1, total=1, content=content, line_count=len(lines))]

    # ends[k] = byte offset just past line k
    ends = list(accumulate(len(line) for line in lines))
    size = ends[-1]

    cuts = [0]
    for i in range(1, total):
        target = size * i / total
        k = bisect_left(ends, target) + 1
        # keep every part non-empty and leave at least one line per remaining part
        k = max(k, cuts[-1] + 1)
        k = min(k, len(lines) - (total - i))
        cuts.append(k)
    cuts.append(len(lines))

    parts: List[Part] = []
    for i in range(total):
        chunk = lines[cuts[i] : cuts[i + 1]]
        parts.append(
            Part(index=i + 1, total=total, content=b"".join(chunk), line_count=len(chunk))
        )
    return parts
