#!/usr/bin/env python3
"""
Generate a synthetic front/back body scan for exercising the reconstruction pipeline.

The subject stands in a T-pose two metres from the sensor. Its silhouette is
a union of capsules around the skeleton bones; depth bulges towards the
sensor inside each capsule. The back scan is the same symmetric body seen
from behind, tracked with the same joint positions.
"""

from pathlib import Path

import numpy as np

from ..capture.scan_frame import ScanFrame, save_scan_frame
from ..capture.scan_store import ScanStore
from ..skeleton.skeleton import Skeleton

CENTRE_DEPTH = 2.0

# (joint a, joint b, radius) capsules making up the silhouette
BODY_CAPSULES = [
    (0, 20, 0.17), (20, 2, 0.07), (2, 3, 0.11),
    (20, 4, 0.08), (4, 5, 0.08), (5, 6, 0.07), (6, 7, 0.07), (7, 21, 0.06),
    (20, 8, 0.08), (8, 9, 0.08), (9, 10, 0.07), (10, 11, 0.07), (11, 23, 0.06),
    (0, 12, 0.1), (12, 13, 0.08), (13, 14, 0.08), (14, 15, 0.07),
    (0, 16, 0.1), (16, 17, 0.08), (17, 18, 0.08), (18, 19, 0.07),
]


def t_pose_joints(depth: float = CENTRE_DEPTH) -> np.ndarray:
    """(25, 3) joint positions of a symmetric T-pose facing the sensor."""
    joints = np.zeros((25, 3))
    joints[0] = [0.0, 0.0, 0.0]         # SpineBase
    joints[1] = [0.0, 0.3, 0.0]         # SpineMid
    joints[20] = [0.0, 0.5, 0.0]        # SpineShoulder
    joints[2] = [0.0, 0.58, 0.0]        # Neck
    joints[3] = [0.0, 0.74, 0.0]        # Head

    for side, (shoulder, elbow, wrist, hand, tip, thumb) in ((-1, (4, 5, 6, 7, 21, 22)),
                                                               (1, (8, 9, 10, 11, 23, 24))):
        joints[shoulder] = [side * 0.18, 0.5, 0.0]
        joints[elbow] = [side * 0.45, 0.5, 0.0]
        joints[wrist] = [side * 0.68, 0.5, 0.0]
        joints[hand] = [side * 0.76, 0.5, 0.0]
        joints[tip] = [side * 0.84, 0.5, 0.0]
        joints[thumb] = [side * 0.76, 0.55, 0.0]

    for side, (hip, knee, ankle, foot) in ((-1, (12, 13, 14, 15)), (1, (16, 17, 18, 19))):
        joints[hip] = [side * 0.1, -0.05, 0.0]
        joints[knee] = [side * 0.1, -0.45, 0.0]
        joints[ankle] = [side * 0.1, -0.82, 0.0]
        joints[foot] = [side * 0.1, -0.9, -0.08]

    joints[:, 2] += depth
    return joints


def create_skeleton(timestamp: float = 0.0, depth: float = CENTRE_DEPTH) -> Skeleton:
    return Skeleton.from_joints(t_pose_joints(depth), timestamp=timestamp)


def _segment_distance(px, py, a, b):
    """Distance from lattice points to the 2D segment a-b."""
    ab = b - a
    length_sq = float(ab @ ab)
    if length_sq < 1e-12:
        return np.hypot(px - a[0], py - a[1])
    t = np.clip(((px - a[0]) * ab[0] + (py - a[1]) * ab[1]) / length_sq, 0.0, 1.0)
    return np.hypot(px - (a[0] + t * ab[0]), py - (a[1] + t * ab[1]))


def create_scan_frame(joints: np.ndarray, spacing: float = 0.03, pixels_per_sample: int = 3,
                      tint=(200, 150, 110), timestamp: float = 0.0, speckles: bool = True) -> ScanFrame:
    """
    Synthetic scan of a capsule body around ``joints``.

    Args:
        joints: (25, 3) joint positions
        spacing: Lattice spacing in metres
        pixels_per_sample: Color raster resolution per lattice sample
        tint: Base RGB color of the body
        timestamp: Frame timestamp
        speckles: Add isolated noise samples away from the body
    """
    x0, x1 = -0.96, 0.96
    y0, y1 = -1.0, 0.92
    width = int(round((x1 - x0) / spacing)) + 1
    height = int(round((y1 - y0) / spacing)) + 1

    xs = x0 + np.arange(width) * spacing
    ys = y1 - np.arange(height) * spacing
    px, py = np.meshgrid(xs, ys)

    bulge = np.zeros((height, width))
    inside = np.zeros((height, width), dtype=bool)
    centre_x, centre_y = joints[0, 0], joints[0, 1]
    for a, b, radius in BODY_CAPSULES:
        d = _segment_distance(px, py, joints[a, :2] - [centre_x, centre_y], joints[b, :2] - [centre_x, centre_y])
        inside |= d < radius
        bulge = np.maximum(bulge, np.sqrt(np.clip(radius ** 2 - d ** 2, 0.0, None)))

    depth = joints[0, 2] - 0.6 * bulge
    positions = np.stack([px + centre_x, py + centre_y, depth], axis=-1)

    uvs = np.stack([(px - x0) / (x1 - x0 + spacing), (y1 - py) / (y1 - y0 + spacing)], axis=-1)

    body_mask = inside.astype(np.uint8)
    if speckles:
        body_mask[1, 1] = 1
        body_mask[height - 2, 2] = 1
        positions[1, 1, 2] = joints[0, 2] + 1.0
        positions[height - 2, 2, 2] = joints[0, 2] + 1.0

    # Color raster: shaded body over a dark background, upsampled per sample
    u, v = uvs[..., 0], uvs[..., 1]
    colors = np.zeros((height, width, 3))
    colors[...] = (40, 40, 40)
    shade = np.stack([tint[0] + 40 * v, tint[1] + 60 * u, np.full_like(u, tint[2])], axis=-1)
    colors[inside] = shade[inside]
    texture = np.clip(colors, 0, 255).astype(np.uint8)
    texture = np.repeat(np.repeat(texture, pixels_per_sample, axis=0), pixels_per_sample, axis=1)

    return ScanFrame(positions=positions, uvs=uvs, body_mask=body_mask, texture=texture,
                     color_mask=None, timestamp=timestamp)


def create_scan_pair(spacing: float = 0.03, pixels_per_sample: int = 3):
    """
    Front and back scans of the same synthetic subject.

    Returns:
        Tuple of (front_frame, front_skeleton, back_frame, back_skeleton)
    """
    joints = t_pose_joints()
    front = create_scan_frame(joints, spacing, pixels_per_sample, tint=(200, 150, 110), timestamp=0.0)
    back = create_scan_frame(joints, spacing, pixels_per_sample, tint=(90, 110, 200), timestamp=1.0)
    return front, create_skeleton(0.0), back, create_skeleton(1.0)


def create_scan_store(spacing: float = 0.03, pixels_per_sample: int = 3) -> ScanStore:
    """Store holding the front scan at key 0.0 and the back scan at key 1.0."""
    front, front_skeleton, back, back_skeleton = create_scan_pair(spacing, pixels_per_sample)
    store = ScanStore()
    store.add(0.0, front, front_skeleton)
    store.add(1.0, back, back_skeleton)
    return store


def create_test_dataset(output_dir: Path, spacing: float = 0.03, pixels_per_sample: int = 3) -> Path:
    """Write the synthetic pair as frames ``front`` and ``back``."""
    output_dir = Path(output_dir)
    front, front_skeleton, back, back_skeleton = create_scan_pair(spacing, pixels_per_sample)
    save_scan_frame(output_dir, "front", front, front_skeleton)
    save_scan_frame(output_dir, "back", back, back_skeleton)
    print(f"Synthetic scan pair created in {output_dir}")
    return output_dir


if __name__ == "__main__":
    create_test_dataset(Path("test_scan_data"))
