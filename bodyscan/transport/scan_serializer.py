#!/usr/bin/env python3
"""
Body scan serialization.

A reconstructed :class:`BodyScan` is flattened into a dictionary of numpy
arrays (ragged per-group data concatenated with offset tables) so that it
can be written as one ``.npz`` file or handed to a renderer. Per-frame
animation updates travel as a fixed little-endian binary skeleton frame.
"""

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from ..errors import SerializationError
from ..geometry.transforms import Transform
from ..reconstruction.body_scan import BodyScan, GroupMesh
from ..reconstruction.linking import EdgeHook, LinkingMesh
from ..skeleton.anatomy import GROUP_COUNT, POI_COUNT, TEXTURE_REGION_COUNT
from ..skeleton.skeleton import Skeleton

logger = logging.getLogger(__name__)

SKELETON_HEADER = b'BSKL'
SKELETON_FRAME_SIZE = 4 + 8 + POI_COUNT * 3 * 4 + POI_COUNT * 4 * 4

REQUIRED_KEYS = [
    "group_vertex_offsets", "group_vertices", "group_uvs",
    "group_triangle_offsets", "group_triangles",
    "group_positions", "group_rotations", "group_scales",
    "link_vertex_offsets", "link_vertices", "link_uvs",
    "link_triangle_offsets", "link_triangles",
    "link_front_counts", "link_original_offsets", "link_original_index",
    "hooks", "texture_shapes", "texture_offsets", "texture_data",
]


def _concat(parts: List[np.ndarray], width: int, dtype) -> np.ndarray:
    parts = [np.asarray(p, dtype=dtype).reshape(-1, width) for p in parts]
    if not parts:
        return np.zeros((0, width), dtype=dtype)
    return np.concatenate(parts, axis=0)


def _offsets(parts: List[np.ndarray]) -> np.ndarray:
    return np.concatenate([[0], np.cumsum([len(p) for p in parts])]).astype(np.int64)


def _split(data: np.ndarray, offsets: np.ndarray, name: str) -> List[np.ndarray]:
    offsets = np.asarray(offsets, dtype=np.int64)
    if len(offsets) == 0 or offsets[0] != 0 or np.any(np.diff(offsets) < 0) or offsets[-1] != len(data):
        raise SerializationError(f"Offset table for {name} does not cover {len(data)} entries")
    return [data[offsets[i]:offsets[i + 1]].copy() for i in range(len(offsets) - 1)]


@dataclass
class ScanPayload:
    """Per-group and per-region data of a body scan in plain arrays."""
    group_vertices: List[np.ndarray]
    group_uvs: List[np.ndarray]
    group_triangles: List[np.ndarray]
    group_positions: np.ndarray         # (21, 3)
    group_rotations: np.ndarray         # (21, 4)
    group_scales: np.ndarray            # (21, 3)
    link_vertices: List[np.ndarray]
    link_uvs: List[np.ndarray]
    link_triangles: List[np.ndarray]
    link_front_counts: np.ndarray       # (5,)
    link_original_index: List[np.ndarray]
    hooks: np.ndarray                   # (k, 5): group, region, vertex, linking index, front
    textures: List[Optional[np.ndarray]] = field(default_factory=list)

    @classmethod
    def from_body_scan(cls, body_scan: BodyScan) -> 'ScanPayload':
        groups = body_scan.groups
        links = body_scan.linking_meshes
        hooks = np.array([[h.group, h.region, h.vertex, h.linking_index, int(h.front)]
                          for h in body_scan.hooks], dtype=np.int64).reshape(-1, 5)
        textures = list(body_scan.textures) + [None] * (TEXTURE_REGION_COUNT - len(body_scan.textures))
        return cls(
            group_vertices=[g.vertices for g in groups],
            group_uvs=[g.uvs for g in groups],
            group_triangles=[g.triangles for g in groups],
            group_positions=np.array([g.transform.position for g in groups], dtype=float).reshape(-1, 3),
            group_rotations=np.array([g.transform.rotation for g in groups], dtype=float).reshape(-1, 4),
            group_scales=np.array([g.transform.scale for g in groups], dtype=float).reshape(-1, 3),
            link_vertices=[m.vertices for m in links],
            link_uvs=[m.uvs for m in links],
            link_triangles=[m.triangles for m in links],
            link_front_counts=np.array([m.front_vertex_count for m in links], dtype=np.int64),
            link_original_index=[m.original_index for m in links],
            hooks=hooks,
            textures=textures[:TEXTURE_REGION_COUNT],
        )

    def to_arrays(self) -> Dict[str, np.ndarray]:
        """Flatten into a dict of arrays; ragged lists get ``*_offsets`` tables."""
        texture_shapes = np.array([t.shape[:2] if t is not None else (0, 0) for t in self.textures],
                                  dtype=np.int64).reshape(-1, 2)
        texture_parts = [t.reshape(-1) if t is not None else np.zeros(0, dtype=np.uint8)
                         for t in self.textures]

        return {
            "group_vertex_offsets": _offsets(self.group_vertices),
            "group_vertices": _concat(self.group_vertices, 3, np.float32),
            "group_uvs": _concat(self.group_uvs, 2, np.float32),
            "group_triangle_offsets": _offsets(self.group_triangles),
            "group_triangles": _concat(self.group_triangles, 3, np.int32),
            "group_positions": self.group_positions.astype(np.float32),
            "group_rotations": self.group_rotations.astype(np.float32),
            "group_scales": self.group_scales.astype(np.float32),
            "link_vertex_offsets": _offsets(self.link_vertices),
            "link_vertices": _concat(self.link_vertices, 3, np.float32),
            "link_uvs": _concat(self.link_uvs, 2, np.float32),
            "link_triangle_offsets": _offsets(self.link_triangles),
            "link_triangles": _concat(self.link_triangles, 3, np.int32),
            "link_front_counts": self.link_front_counts.astype(np.int32),
            "link_original_offsets": _offsets(self.link_original_index),
            "link_original_index": _concat(self.link_original_index, 1, np.int64).reshape(-1),
            "hooks": self.hooks.astype(np.int32).reshape(-1, 5),
            "texture_shapes": texture_shapes,
            "texture_offsets": _offsets(texture_parts),
            "texture_data": (np.concatenate(texture_parts).astype(np.uint8)
                             if texture_parts else np.zeros(0, dtype=np.uint8)),
        }

    @classmethod
    def from_arrays(cls, arrays: Dict[str, np.ndarray]) -> 'ScanPayload':
        """
        Rebuild a payload from :meth:`to_arrays` output.

        Raises:
            SerializationError: On missing keys or inconsistent tables
        """
        missing = [k for k in REQUIRED_KEYS if k not in arrays]
        if missing:
            raise SerializationError(f"Payload is missing arrays: {', '.join(missing)}")

        group_vertices = _split(np.asarray(arrays["group_vertices"], dtype=float).reshape(-1, 3),
                                arrays["group_vertex_offsets"], "group vertices")
        group_uvs = _split(np.asarray(arrays["group_uvs"], dtype=float).reshape(-1, 2),
                           arrays["group_vertex_offsets"], "group uvs")
        group_triangles = _split(np.asarray(arrays["group_triangles"], dtype=np.int64).reshape(-1, 3),
                                 arrays["group_triangle_offsets"], "group triangles")
        if len(group_vertices) != GROUP_COUNT or len(group_triangles) != GROUP_COUNT:
            raise SerializationError(f"Expected {GROUP_COUNT} groups, got {len(group_vertices)}")

        link_vertices = _split(np.asarray(arrays["link_vertices"], dtype=float).reshape(-1, 3),
                               arrays["link_vertex_offsets"], "linking vertices")
        link_uvs = _split(np.asarray(arrays["link_uvs"], dtype=float).reshape(-1, 2),
                          arrays["link_vertex_offsets"], "linking uvs")
        link_triangles = _split(np.asarray(arrays["link_triangles"], dtype=np.int64).reshape(-1, 3),
                                arrays["link_triangle_offsets"], "linking triangles")
        link_original = _split(np.asarray(arrays["link_original_index"], dtype=np.int64).reshape(-1),
                               arrays["link_original_offsets"], "linking original index")
        if len(link_vertices) != TEXTURE_REGION_COUNT:
            raise SerializationError(f"Expected {TEXTURE_REGION_COUNT} linking meshes, got {len(link_vertices)}")

        shapes = np.asarray(arrays["texture_shapes"], dtype=np.int64).reshape(-1, 2)
        flat = _split(np.asarray(arrays["texture_data"], dtype=np.uint8), arrays["texture_offsets"], "textures")
        if len(flat) != len(shapes):
            raise SerializationError(f"{len(shapes)} texture shapes for {len(flat)} textures")
        textures = []
        for (height, width), data in zip(shapes, flat):
            if height == 0 or width == 0:
                textures.append(None)
                continue
            if data.size != height * width * 3:
                raise SerializationError(f"Texture of {data.size} bytes cannot be {width}x{height} RGB")
            textures.append(data.reshape(int(height), int(width), 3))

        return cls(
            group_vertices=group_vertices,
            group_uvs=group_uvs,
            group_triangles=group_triangles,
            group_positions=np.asarray(arrays["group_positions"], dtype=float).reshape(-1, 3),
            group_rotations=np.asarray(arrays["group_rotations"], dtype=float).reshape(-1, 4),
            group_scales=np.asarray(arrays["group_scales"], dtype=float).reshape(-1, 3),
            link_vertices=link_vertices,
            link_uvs=link_uvs,
            link_triangles=link_triangles,
            link_front_counts=np.asarray(arrays["link_front_counts"], dtype=np.int64).reshape(-1),
            link_original_index=link_original,
            hooks=np.asarray(arrays["hooks"], dtype=np.int64).reshape(-1, 5),
            textures=textures,
        )

    def to_body_scan(self) -> BodyScan:
        groups = []
        for g in range(GROUP_COUNT):
            transform = Transform(position=self.group_positions[g], rotation=self.group_rotations[g],
                                  scale=self.group_scales[g])
            groups.append(GroupMesh(g, transform, self.group_vertices[g], self.group_uvs[g],
                                    self.group_triangles[g]))

        links = [LinkingMesh(region=r, vertices=self.link_vertices[r], uvs=self.link_uvs[r],
                             triangles=self.link_triangles[r],
                             front_vertex_count=int(self.link_front_counts[r]),
                             original_index=self.link_original_index[r])
                 for r in range(TEXTURE_REGION_COUNT)]

        hooks = [EdgeHook(group=int(h[0]), region=int(h[1]), vertex=int(h[2]),
                          linking_index=int(h[3]), front=bool(h[4])) for h in self.hooks]
        return BodyScan(groups, links, hooks, list(self.textures))

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(path, **self.to_arrays())
        logger.info(f"Saved scan payload to {path}")
        return path

    @classmethod
    def load(cls, path: Path) -> 'ScanPayload':
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Payload not found: {path}")
        with np.load(path) as data:
            arrays = {key: data[key] for key in data.files}
        return cls.from_arrays(arrays)


@dataclass
class SkeletonFrame:
    """POI transforms of one animation frame."""
    timestamp: float
    poi_positions: np.ndarray       # (49, 3)
    poi_rotations: np.ndarray       # (49, 4)

    @classmethod
    def from_skeleton(cls, skeleton: Skeleton) -> 'SkeletonFrame':
        return cls(skeleton.timestamp, skeleton.poi_positions, skeleton.poi_rotations)


def pack_skeleton(skeleton) -> bytes:
    """
    Pack a skeleton (or :class:`SkeletonFrame`) into a binary frame.

    Layout, little-endian: 4 byte header, float64 timestamp, 49 float32
    positions (x, y, z), 49 float32 rotations (x, y, z, w).
    """
    positions = np.asarray(skeleton.poi_positions, dtype=np.float32).reshape(-1)
    rotations = np.asarray(skeleton.poi_rotations, dtype=np.float32).reshape(-1)
    if positions.size != POI_COUNT * 3 or rotations.size != POI_COUNT * 4:
        raise SerializationError(f"Skeleton must have {POI_COUNT} POIs")

    data = SKELETON_HEADER
    data += struct.pack('<d', float(skeleton.timestamp))
    data += struct.pack(f'<{POI_COUNT * 3}f', *positions)
    data += struct.pack(f'<{POI_COUNT * 4}f', *rotations)
    return data


def unpack_skeleton(data: bytes) -> SkeletonFrame:
    """
    Parse a binary frame written by :func:`pack_skeleton`.

    Raises:
        SerializationError: If the frame is too short or has a bad header
    """
    if len(data) < SKELETON_FRAME_SIZE:
        raise SerializationError(f"Skeleton frame too short: {len(data)} bytes, expected {SKELETON_FRAME_SIZE}")
    if data[:4] != SKELETON_HEADER:
        raise SerializationError(f"Bad skeleton frame header: {data[:4]!r}")

    offset = 4
    try:
        timestamp = struct.unpack('<d', data[offset:offset + 8])[0]
        offset += 8

        positions = struct.unpack(f'<{POI_COUNT * 3}f', data[offset:offset + POI_COUNT * 12])
        offset += POI_COUNT * 12

        rotations = struct.unpack(f'<{POI_COUNT * 4}f', data[offset:offset + POI_COUNT * 16])
    except struct.error as e:
        raise SerializationError(f"Failed to parse skeleton frame at offset {offset}: {e}")

    return SkeletonFrame(
        timestamp=timestamp,
        poi_positions=np.array(positions, dtype=float).reshape(POI_COUNT, 3),
        poi_rotations=np.array(rotations, dtype=float).reshape(POI_COUNT, 4),
    )
