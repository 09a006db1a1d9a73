#!/usr/bin/env python3
"""
Scan frames as delivered by the capture layer, and their on-disk format.

A dataset directory holds one entry per frame id:
    rgb/<id>.png        color raster
    lattice/<id>.npz    positions, uvs, body_mask (and color_mask if known)
    meta/<id>.json      timestamp and tracked skeleton joints
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from ..errors import ShapeMismatchError
from ..skeleton.skeleton import Skeleton

logger = logging.getLogger(__name__)


@dataclass
class ScanFrame:
    """One depth scan: a sample lattice plus the color raster it maps into."""
    positions: np.ndarray               # (H, W, 3) camera-space sample positions
    uvs: np.ndarray                     # (H, W, 2) texture coordinates into ``texture``
    body_mask: np.ndarray               # (H, W) 1 where the sample belongs to the body
    texture: np.ndarray                 # (h, w, 3) RGB uint8
    color_mask: Optional[np.ndarray] = None     # (h, w) 1 where the pixel shows the body
    timestamp: float = 0.0

    @property
    def lattice_shape(self) -> Tuple[int, int]:
        return tuple(self.body_mask.shape)

    @property
    def texture_size(self) -> Tuple[int, int]:
        """(width, height) of the color raster."""
        return self.texture.shape[1], self.texture.shape[0]

    def validate(self):
        """
        Check that every raster agrees in size.

        Raises:
            ShapeMismatchError: On any disagreement
        """
        mask = np.asarray(self.body_mask)
        if mask.ndim != 2:
            raise ShapeMismatchError(f"Body mask must be 2D, got shape {mask.shape}")
        if np.asarray(self.positions).shape != mask.shape + (3,):
            raise ShapeMismatchError(f"Positions {np.asarray(self.positions).shape} "
                                     f"do not match body mask {mask.shape}")
        if np.asarray(self.uvs).shape != mask.shape + (2,):
            raise ShapeMismatchError(f"UVs {np.asarray(self.uvs).shape} do not match body mask {mask.shape}")
        texture = np.asarray(self.texture)
        if texture.ndim != 3 or texture.shape[2] != 3:
            raise ShapeMismatchError(f"Texture must be (h, w, 3), got {texture.shape}")
        if self.color_mask is not None and np.asarray(self.color_mask).shape != texture.shape[:2]:
            raise ShapeMismatchError(f"Color mask {np.asarray(self.color_mask).shape} "
                                     f"does not match texture {texture.shape[:2]}")

    def reversed(self) -> 'ScanFrame':
        """
        Frame of a scan taken from behind, with its texture turned half a turn.

        UVs become ``1 - uv`` and the texture and color mask are rotated by
        180 degrees, so the mapping between samples and pixels is unchanged.
        """
        return ScanFrame(
            positions=self.positions.copy(),
            uvs=1.0 - self.uvs,
            body_mask=self.body_mask.copy(),
            texture=np.ascontiguousarray(self.texture[::-1, ::-1]),
            color_mask=None if self.color_mask is None else np.ascontiguousarray(self.color_mask[::-1, ::-1]),
            timestamp=self.timestamp,
        )

    def copy(self) -> 'ScanFrame':
        return ScanFrame(self.positions.copy(), self.uvs.copy(), self.body_mask.copy(),
                         self.texture.copy(),
                         None if self.color_mask is None else self.color_mask.copy(),
                         self.timestamp)


def derive_color_mask(frame: ScanFrame, dilation: int = 5) -> np.ndarray:
    """
    Color-space body mask from the depth lattice.

    Every body sample marks the pixel its UV points at; the sparse marks
    are then dilated to close the gaps between samples.
    """
    height, width = frame.texture.shape[:2]
    mask = np.zeros((height, width), dtype=np.uint8)

    body = np.asarray(frame.body_mask) == 1
    uvs = np.asarray(frame.uvs)[body]
    valid = np.all((uvs >= 0.0) & (uvs < 1.0), axis=1)
    uvs = uvs[valid]
    if len(uvs) == 0:
        return mask

    xs = np.clip((uvs[:, 0] * width).astype(np.int64), 0, width - 1)
    ys = np.clip((uvs[:, 1] * height).astype(np.int64), 0, height - 1)
    mask[ys, xs] = 1

    if dilation > 1:
        kernel = np.ones((dilation, dilation), dtype=np.uint8)
        mask = cv2.dilate(mask, kernel, iterations=1)
    return mask


def save_scan_frame(dataset_dir: Path, frame_id: str, frame: ScanFrame,
                    skeleton: Optional[Skeleton] = None) -> Path:
    """Write a frame (and its skeleton) into ``dataset_dir``."""
    dataset_dir = Path(dataset_dir)
    for subdir in ["rgb", "lattice", "meta"]:
        (dataset_dir / subdir).mkdir(parents=True, exist_ok=True)

    arrays = {
        "positions": frame.positions.astype(np.float32),
        "uvs": frame.uvs.astype(np.float32),
        "body_mask": frame.body_mask.astype(np.uint8),
    }
    if frame.color_mask is not None:
        arrays["color_mask"] = frame.color_mask.astype(np.uint8)
    np.savez_compressed(dataset_dir / "lattice" / f"{frame_id}.npz", **arrays)

    cv2.imwrite(str(dataset_dir / "rgb" / f"{frame_id}.png"), cv2.cvtColor(frame.texture, cv2.COLOR_RGB2BGR))

    metadata = {"timestamp": frame.timestamp}
    if skeleton is not None:
        metadata["joint_positions"] = skeleton.joint_positions.tolist()
        metadata["joint_rotations"] = skeleton.joint_rotations.tolist()
    with (dataset_dir / "meta" / f"{frame_id}.json").open('w') as f:
        json.dump(metadata, f, indent=2)

    logger.debug(f"Saved scan frame {frame_id} to {dataset_dir}")
    return dataset_dir


def load_scan_frame(dataset_dir: Path, frame_id: str) -> Tuple[ScanFrame, Optional[Skeleton]]:
    """Load a frame and, when its metadata has joints, its skeleton."""
    dataset_dir = Path(dataset_dir)
    rgb_path = dataset_dir / "rgb" / f"{frame_id}.png"
    lattice_path = dataset_dir / "lattice" / f"{frame_id}.npz"
    meta_path = dataset_dir / "meta" / f"{frame_id}.json"

    rgb = cv2.imread(str(rgb_path))
    if rgb is None:
        raise FileNotFoundError(f"RGB image not found: {rgb_path}")
    rgb = cv2.cvtColor(rgb, cv2.COLOR_BGR2RGB)

    if not lattice_path.exists():
        raise FileNotFoundError(f"Lattice not found: {lattice_path}")
    with np.load(lattice_path) as data:
        positions = data["positions"].astype(float)
        uvs = data["uvs"].astype(float)
        body_mask = data["body_mask"].astype(np.uint8)
        color_mask = data["color_mask"].astype(np.uint8) if "color_mask" in data.files else None

    metadata = {}
    if meta_path.exists():
        with meta_path.open('r') as f:
            metadata = json.load(f)

    frame = ScanFrame(positions, uvs, body_mask, rgb, color_mask, float(metadata.get("timestamp", 0.0)))
    frame.validate()

    skeleton = None
    if "joint_positions" in metadata:
        skeleton = Skeleton.from_joints(metadata["joint_positions"], metadata.get("joint_rotations"),
                                        timestamp=frame.timestamp)
    return frame, skeleton
