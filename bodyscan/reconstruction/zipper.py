#!/usr/bin/env python3
"""
Zipper Stitcher Module

Closes the gap between the front and back halves of a group by
triangulating between their scan boundary chains.

Key Features:
- Quadrant split of boundary vertices around their mean
- Pairing of quadrants into two seam chains per side, by group orientation
- Spatial chain sorting (y for vertical groups, x for horizontal ones)
- Round-robin zipping with orientation-dependent winding
- Midpoint smoothing along the sorted chains

Author: Body Scan Team
"""

import logging
from collections import deque
from typing import List, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


def quarter_scanned_edges(vertices: np.ndarray, edges: Sequence[int]) -> List[List[int]]:
    """
    Split boundary vertices into four quadrants around their mean position.

    Quadrant index is ``(x > mean.x) + 2 * (y > mean.y)``; input order is
    kept inside each quadrant.
    """
    quarters: List[List[int]] = [[], [], [], []]
    edges = [int(e) for e in edges]
    if not edges:
        return quarters

    points = np.asarray(vertices, dtype=float)[edges]
    mean = points.mean(axis=0)
    for index, point in zip(edges, points):
        quadrant = int(point[0] > mean[0]) + 2 * int(point[1] > mean[1])
        quarters[quadrant].append(index)
    return quarters


def group_scanned_edges(quarters: List[List[int]], vertical: bool) -> Tuple[List[int], List[int]]:
    """
    Join quadrants into the two seam chains of one side.

    Vertical groups are seamed along their left and right sides, horizontal
    groups along their bottom and top.
    """
    if vertical:
        return quarters[0] + quarters[2], quarters[3] + quarters[1]
    return quarters[0] + quarters[1], quarters[3] + quarters[2]


def sort_chain(vertices: np.ndarray, chain: Sequence[int], vertical: bool) -> List[int]:
    """Stable sort of a chain by y (vertical) or x (horizontal)."""
    chain = [int(c) for c in chain]
    if not chain:
        return chain
    axis = 1 if vertical else 0
    keys = np.asarray(vertices, dtype=float)[chain, axis]
    order = np.argsort(keys, kind='stable')
    return [chain[i] for i in order]


def smooth_chains(vertices: np.ndarray, front_chain: Sequence[int], back_chain: Sequence[int],
                  vertical: bool, iterations: int = 3) -> np.ndarray:
    """
    Move interior chain vertices to the midpoint of their sorted neighbours.

    Updates are applied in place along each chain, so later vertices see
    the already smoothed positions of earlier ones.

    Returns:
        A smoothed copy of ``vertices``
    """
    smoothed = np.array(vertices, dtype=float, copy=True)
    chains = [sort_chain(smoothed, front_chain, vertical), sort_chain(smoothed, back_chain, vertical)]

    for _ in range(max(0, iterations)):
        for chain in chains:
            for i in range(1, len(chain) - 1):
                smoothed[chain[i]] = (smoothed[chain[i - 1]] + smoothed[chain[i + 1]]) / 2.0
    return smoothed


def is_clockwise(vertical: bool, greater: bool) -> bool:
    """Winding of zipper triangles for one seam side."""
    if vertical:
        return not greater
    return greater


def zip_chains(vertices: np.ndarray, front_chain: Sequence[int], back_chain: Sequence[int],
               vertical: bool, greater: bool) -> np.ndarray:
    """
    Triangulate between two boundary chains.

    Both chains are sorted spatially, then the heads of the chains and a
    third vertex taken alternately from the front and back chain form each
    triangle. Zipping stops once three vertices remain, so chains of
    lengths m and n produce m + n - 3 triangles.

    Args:
        vertices: Combined vertex array the chain indices refer to
        front_chain: Front boundary chain
        back_chain: Back boundary chain, already offset into the combined array
        vertical: Group orientation flag
        greater: Which seam of the group is being closed, selects winding

    Returns:
        (k, 3) triangle array, empty if either chain is empty
    """
    if len(front_chain) == 0 or len(back_chain) == 0:
        return np.zeros((0, 3), dtype=np.int64)

    front = deque(sort_chain(vertices, front_chain, vertical))
    back = deque(sort_chain(vertices, back_chain, vertical))
    clockwise = is_clockwise(vertical, greater)

    triangles = []
    take_front = True
    while len(front) + len(back) > 3:
        a = front[0]
        b = back[0]

        if len(front) > 1 and len(back) > 1:
            if take_front:
                c = front[1]
                front.popleft()
            else:
                c = back[1]
                back.popleft()
            take_front = not take_front
        elif len(front) == 1:
            c = back[1]
            back.popleft()
        else:
            c = front[1]
            front.popleft()

        triangles.append((a, b, c) if clockwise else (a, c, b))

    return np.array(triangles, dtype=np.int64).reshape(-1, 3)
