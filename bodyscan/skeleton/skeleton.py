#!/usr/bin/env python3
"""
Skeleton Module

25-joint body tracking skeleton with derived bones and points of interest.

Key Features:
- Bone positions, rotations and scales derived from joint pairs
- Points of interest (joints then bones, 49 entries)
- Group origin transforms for the 21 anatomical groups
- Mirroring of a back-scan skeleton using offsets from the front scan

Author: Body Scan Team
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from ..errors import SkeletonError
from ..geometry.transforms import (
    IDENTITY_QUATERNION, Transform, euler_to_quaternion, normalize_quaternion, yaw_of,
)
from .anatomy import (
    BONE_COUNT, BONE_JOINTS, CENTRE_JOINTS, GROUP_POIS, JOINT_COUNT, POI_COUNT,
    REVERSE_JOINT_ORDER, SPINE_BONE_YAW_JOINTS,
)

logger = logging.getLogger(__name__)

JOINT_SCALE = 0.025
BONE_SCALE = 0.0125

# Offset vector slots returned by Skeleton.reverse_offset_vectors()
OFFSET_COUNT = 7


def reverse_vector(vector: np.ndarray) -> np.ndarray:
    """Mirror a vector in the x/z plane, leaving y unchanged."""
    out = -np.asarray(vector, dtype=float)
    out[..., 1] = np.asarray(vector, dtype=float)[..., 1]
    return out


def compute_bones(joint_positions: np.ndarray, joint_rotations: np.ndarray):
    """
    Derive the 24 bones from their joint pairs.

    Args:
        joint_positions: (25, 3) joint positions
        joint_rotations: (25, 4) joint quaternions (x, y, z, w)

    Returns:
        Tuple of bone positions (24, 3), rotations (24, 4) and scales (24, 3)
    """
    positions = np.zeros((BONE_COUNT, 3))
    rotations = np.zeros((BONE_COUNT, 4))
    scales = np.zeros((BONE_COUNT, 3))

    for i, (a, b) in enumerate(BONE_JOINTS):
        joint_a = joint_positions[a]
        joint_b = joint_positions[b]
        diff = joint_a - joint_b
        positions[i] = joint_b + diff / 2.0

        length = float(np.linalg.norm(diff))
        scales[i] = (BONE_SCALE, length / 2.0, BONE_SCALE)

        ang_x = np.degrees(np.arctan2(np.hypot(diff[0], diff[2]), diff[1]))
        ang_y = np.degrees(np.arctan2(diff[0], diff[2]))

        # The head joint carries no rotation, spinal bones follow their lower joint
        if i in SPINE_BONE_YAW_JOINTS:
            ang_y = yaw_of(joint_rotations[SPINE_BONE_YAW_JOINTS[i]])

        rotations[i] = euler_to_quaternion(ang_x, ang_y, 0.0)

    return positions, rotations, scales


@dataclass
class Skeleton:
    """Joint and bone transforms of one tracked body at one timestamp."""
    joint_positions: np.ndarray
    joint_rotations: np.ndarray
    bone_positions: np.ndarray
    bone_rotations: np.ndarray
    bone_scales: np.ndarray
    timestamp: float = 0.0
    joint_scales: np.ndarray = field(default=None)

    def __post_init__(self):
        if self.joint_scales is None:
            self.joint_scales = np.full((JOINT_COUNT, 3), JOINT_SCALE)

    @classmethod
    def from_joints(cls, positions: Sequence, rotations: Optional[Sequence] = None,
                    timestamp: float = 0.0) -> 'Skeleton':
        """
        Build a skeleton from tracked joints.

        Joints behind the sensor (negative depth) are clamped to depth 1 and
        missing or degenerate rotations are replaced by the identity.

        Raises:
            SkeletonError: If the arrays do not describe 25 joints
        """
        positions = np.array(positions, dtype=float)
        if positions.shape != (JOINT_COUNT, 3):
            raise SkeletonError(f"Expected joint positions of shape ({JOINT_COUNT}, 3), "
                                f"got {positions.shape}")
        if not np.all(np.isfinite(positions)):
            raise SkeletonError("Joint positions contain non-finite values")

        behind = positions[:, 2] < 0
        if np.any(behind):
            logger.debug(f"Clamping {int(behind.sum())} joints with negative depth")
            positions[behind, 2] = 1.0

        if rotations is None:
            rotations = np.tile(IDENTITY_QUATERNION, (JOINT_COUNT, 1))
        else:
            rotations = np.array(rotations, dtype=float)
            if rotations.shape != (JOINT_COUNT, 4):
                raise SkeletonError(f"Expected joint rotations of shape ({JOINT_COUNT}, 4), "
                                    f"got {rotations.shape}")
            rotations = np.array([normalize_quaternion(q) for q in rotations])

        bone_positions, bone_rotations, bone_scales = compute_bones(positions, rotations)
        return cls(positions, rotations, bone_positions, bone_rotations, bone_scales, timestamp)

    @property
    def poi_positions(self) -> np.ndarray:
        """(49, 3) positions of joints followed by bones."""
        return np.vstack([self.joint_positions, self.bone_positions])

    @property
    def poi_rotations(self) -> np.ndarray:
        """(49, 4) rotations of joints followed by bones."""
        return np.vstack([self.joint_rotations, self.bone_rotations])

    def poi_transform(self, poi: int) -> Transform:
        if not 0 <= poi < POI_COUNT:
            raise ValueError(f"POI index {poi} out of range 0..{POI_COUNT - 1}")
        return Transform(position=self.poi_positions[poi], rotation=self.poi_rotations[poi])

    def group_origin(self, group: int) -> np.ndarray:
        """Position of the POI every vertex of ``group`` is expressed relative to."""
        return self.poi_positions[GROUP_POIS[group]].copy()

    def group_transform(self, group: int) -> Transform:
        return self.poi_transform(GROUP_POIS[group])

    def reverse_offset_vectors(self) -> np.ndarray:
        """
        Mirrored spine and foot offsets of a front-scan skeleton.

        Returns:
            (7, 3) array:
            0 - spine base relative to the hip average
            1..4 - spine mid, spine shoulder, neck and head relative to spine base
            5 - left foot relative to left ankle
            6 - right foot relative to right ankle
        """
        joints = self.joint_positions
        offsets = np.zeros((OFFSET_COUNT, 3))
        hip_avg = (joints[12] + joints[16]) / 2.0
        offsets[0] = reverse_vector(joints[0] - hip_avg)
        for i in range(1, len(CENTRE_JOINTS)):
            offsets[i] = reverse_vector(joints[CENTRE_JOINTS[i]] - joints[0])
        offsets[5] = reverse_vector(joints[15] - joints[14])
        offsets[6] = reverse_vector(joints[19] - joints[18])
        return offsets

    def reversed(self, offsets: np.ndarray) -> 'Skeleton':
        """
        Skeleton of a scan taken from behind, rebuilt with front-scan offsets.

        The sensor tracks a body seen from behind as if it faced the camera,
        so the spine is rebuilt from the front offsets and left and right
        joints are swapped.

        Args:
            offsets: Output of :meth:`reverse_offset_vectors` on the front skeleton
        """
        offsets = np.asarray(offsets, dtype=float)
        if offsets.shape != (OFFSET_COUNT, 3):
            raise SkeletonError(f"Expected {OFFSET_COUNT} offset vectors, got shape {offsets.shape}")

        joints = self.joint_positions.copy()
        hip_avg = (joints[12] + joints[16]) / 2.0
        joints[CENTRE_JOINTS[0]] = hip_avg + offsets[0]
        for i in range(1, len(CENTRE_JOINTS)):
            joints[CENTRE_JOINTS[i]] = joints[CENTRE_JOINTS[0]] + offsets[i]
        joints[15] = joints[14] + offsets[-2]
        joints[19] = joints[18] + offsets[-1]

        order = list(REVERSE_JOINT_ORDER)
        joints = joints[order]
        rotations = self.joint_rotations[order]

        bone_positions, bone_rotations, bone_scales = compute_bones(joints, rotations)
        return Skeleton(joints, rotations.copy(), bone_positions, bone_rotations, bone_scales,
                        self.timestamp, self.joint_scales.copy())

    def copy(self) -> 'Skeleton':
        return Skeleton(self.joint_positions.copy(), self.joint_rotations.copy(),
                        self.bone_positions.copy(), self.bone_rotations.copy(),
                        self.bone_scales.copy(), self.timestamp, self.joint_scales.copy())
