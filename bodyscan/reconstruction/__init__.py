"""
Body scan reconstruction.

Modules:
- segmenter: Split a scan mesh into 21 anatomical groups
- overlap / zipper / stitcher: Join front and back group halves
- texture_atlas: Per-region texture crops with extrapolated borders
- linking: Seam meshes across group boundaries and their edge hooks
- body_scan / posing: Final model and skeleton-driven posing
- session: Stage-by-stage reconstruction pipeline
"""

from .body_scan import BodyScan, GroupMesh
from .linking import EdgeHook, LinkingMesh, LinkingMeshBuilder
from .posing import BodyScanPoser
from .segmenter import AnatomicalSegmenter, ScanSide, SegmentationResult
from .session import (
    ReconstructionPipeline, ReconstructionResult, ReconstructionSession, StageResult, StageStatus,
)
from .stitcher import ScanStitcher, StitchedGroupMesh
from .submesh import GroupSubmesh
from .texture_atlas import TextureAtlas, TextureAtlasBuilder

__all__ = [
    "BodyScan", "GroupMesh", "EdgeHook", "LinkingMesh", "LinkingMeshBuilder", "BodyScanPoser",
    "AnatomicalSegmenter", "ScanSide", "SegmentationResult",
    "ReconstructionPipeline", "ReconstructionResult", "ReconstructionSession", "StageResult", "StageStatus",
    "ScanStitcher", "StitchedGroupMesh", "GroupSubmesh", "TextureAtlas", "TextureAtlasBuilder",
]
