#!/usr/bin/env python3
"""
Skeleton-driven posing of a reconstructed body scan.

Each frame the group transforms follow the POIs of the incoming skeleton
and the linking meshes are refreshed from their edge hooks.
"""

import logging

import numpy as np

from ..geometry.transforms import Transform
from ..skeleton.anatomy import GROUP_POIS
from ..skeleton.skeleton import Skeleton
from .body_scan import BodyScan

logger = logging.getLogger(__name__)


class BodyScanPoser:
    """Poses a :class:`BodyScan` with new skeleton frames."""

    def __init__(self, body_scan: BodyScan):
        self.body_scan = body_scan
        self.frames_posed = 0

    def group_transforms(self, skeleton: Skeleton):
        positions = skeleton.poi_positions
        rotations = skeleton.poi_rotations
        return [Transform(position=positions[poi], rotation=rotations[poi]) for poi in GROUP_POIS]

    def pose(self, skeleton: Skeleton) -> BodyScan:
        """Move every group to ``skeleton`` and update the linking meshes in place."""
        for group, transform in zip(self.body_scan.groups, self.group_transforms(skeleton)):
            group.transform = transform
        self.body_scan.update_linking_meshes()
        self.frames_posed += 1
        logger.debug(f"Posed body scan to skeleton at t={skeleton.timestamp}")
        return self.body_scan

    def world_vertices(self, group: int) -> np.ndarray:
        return self.body_scan.groups[group].world_vertices()
