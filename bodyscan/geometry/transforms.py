#!/usr/bin/env python3
"""
Local-to-world transform composition on plain transform structs.

Group meshes, edge hooks and skeleton POIs are positioned through these
helpers instead of a live scene graph:
- Transform: position, rotation quaternion (x, y, z, w) and scale
- Composition of parent and child transforms
- Point mapping between local and world frames
- Euler conversion in the Y-X-Z application order used by the skeleton
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from scipy.spatial.transform import Rotation as R

IDENTITY_QUATERNION = np.array([0.0, 0.0, 0.0, 1.0])


def normalize_quaternion(quat) -> np.ndarray:
    """Return a unit quaternion, identity for zero-length or non-finite input."""
    q = np.asarray(quat, dtype=float).reshape(4)
    norm = np.linalg.norm(q)
    if not np.isfinite(norm) or norm < 1e-12:
        return IDENTITY_QUATERNION.copy()
    return q / norm


def euler_to_quaternion(x_deg: float, y_deg: float, z_deg: float) -> np.ndarray:
    """
    Build a quaternion from Euler angles in degrees.

    Rotation is applied about z first, then x, then y, matching the
    convention the skeleton provider reports joint orientations in.
    """
    return R.from_euler('YXZ', [y_deg, x_deg, z_deg], degrees=True).as_quat()


def quaternion_to_euler(quat) -> np.ndarray:
    """Inverse of :func:`euler_to_quaternion`, returns (x, y, z) degrees in [0, 360)."""
    y, x, z = R.from_quat(normalize_quaternion(quat)).as_euler('YXZ', degrees=True)
    return np.mod(np.array([x, y, z]), 360.0)


def yaw_of(quat) -> float:
    """Rotation about the vertical axis, degrees in [0, 360)."""
    return float(quaternion_to_euler(quat)[1])


@dataclass
class Transform:
    """Rigid transform with per-axis scale, applied as scale, rotate, translate."""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: IDENTITY_QUATERNION.copy())
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float).reshape(3)
        self.rotation = normalize_quaternion(self.rotation)
        self.scale = np.asarray(self.scale, dtype=float).reshape(3)

    @classmethod
    def identity(cls) -> 'Transform':
        return cls()

    @classmethod
    def from_euler(cls, position=None, x_deg: float = 0.0, y_deg: float = 0.0,
                   z_deg: float = 0.0) -> 'Transform':
        pos = np.zeros(3) if position is None else position
        return cls(position=pos, rotation=euler_to_quaternion(x_deg, y_deg, z_deg))

    @property
    def rotation_object(self) -> R:
        return R.from_quat(self.rotation)

    def to_matrix(self) -> np.ndarray:
        """Homogeneous 4x4 matrix of this transform."""
        T = np.eye(4)
        T[:3, :3] = self.rotation_object.as_matrix() @ np.diag(self.scale)
        T[:3, 3] = self.position
        return T

    def apply(self, points) -> np.ndarray:
        """Map local points (N, 3) or (3,) into the parent frame."""
        pts = np.asarray(points, dtype=float)
        if pts.size == 0:
            return pts.reshape(-1, 3)
        return self.rotation_object.apply(pts * self.scale) + self.position

    def inverse_apply(self, points) -> np.ndarray:
        """Map parent-frame points into this transform's local frame."""
        pts = np.asarray(points, dtype=float)
        if pts.size == 0:
            return pts.reshape(-1, 3)
        local = self.rotation_object.inv().apply(pts - self.position)
        safe_scale = np.where(np.abs(self.scale) < 1e-12, 1.0, self.scale)
        return local / safe_scale

    def inverse(self) -> 'Transform':
        """Inverse of a uniformly scaled transform."""
        inv_rot = self.rotation_object.inv()
        safe_scale = np.where(np.abs(self.scale) < 1e-12, 1.0, self.scale)
        inv_scale = 1.0 / safe_scale
        return Transform(position=inv_rot.apply(-self.position) * inv_scale,
                         rotation=inv_rot.as_quat(),
                         scale=inv_scale)

    def copy(self) -> 'Transform':
        return Transform(self.position.copy(), self.rotation.copy(), self.scale.copy())


def compose(parent: Transform, child: Transform) -> Transform:
    """
    World transform of ``child`` expressed in ``parent``'s frame.

    Scale is composed per axis, which is exact for uniform parent scale.
    """
    parent_rot = parent.rotation_object
    return Transform(
        position=parent.apply(child.position),
        rotation=(parent_rot * child.rotation_object).as_quat(),
        scale=parent.scale * child.scale,
    )


def local_to_world(points, *chain: Optional[Transform]) -> np.ndarray:
    """
    Map local points through a chain of transforms, outermost first.

    Args:
        points: Points in the innermost frame
        chain: Transforms from the root frame down to the points' frame,
            None entries are skipped
    """
    world = Transform.identity()
    for transform in chain:
        if transform is not None:
            world = compose(world, transform)
    return world.apply(points)


def rotation_about_y(degrees: float) -> Transform:
    """Pure rotation about the vertical axis."""
    return Transform(rotation=R.from_euler('y', degrees, degrees=True).as_quat())
