#!/usr/bin/env python3
"""
Reconstruction Session Module

Runs the full front/back body scan reconstruction as a sequence of stages
over a :class:`ReconstructionSession` value object.

Key Features:
- Stage sequence: prepare, denoise, reconstruct, segment, stitch, atlas, link, assemble
- Per-stage status, timing and details
- Stage failures stop the run, later stages are reported as skipped
- Degenerate groups and regions reported as partial results

Author: Body Scan Team
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ..capture.scan_frame import ScanFrame, derive_color_mask
from ..capture.scan_store import ScanStore
from ..errors import ReconstructionError, ShapeMismatchError
from ..processing.mask_denoiser import MaskDenoiser
from ..processing.surface_reconstructor import ScanMesh, SurfaceReconstructor
from ..skeleton.anatomy import GROUP_NAMES, TEXTURE_REGION_COUNT
from ..skeleton.skeleton import Skeleton
from ..utils.config import DEFAULT_CONFIG, merge_config
from .body_scan import BodyScan
from .linking import EdgeHook, LinkingMesh, LinkingMeshBuilder
from .segmenter import AnatomicalSegmenter, ScanSide, SegmentationResult
from .stitcher import ScanStitcher, StitchedGroupMesh
from .texture_atlas import TextureAtlas, TextureAtlasBuilder, mask_texture

logger = logging.getLogger(__name__)


class StageStatus(Enum):
    """Outcome of one reconstruction stage."""
    SUCCESS = "success"
    PARTIAL = "partial"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StageResult:
    """Result record of one stage."""
    name: str
    status: StageStatus
    message: str = ""
    duration: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status in (StageStatus.SUCCESS, StageStatus.PARTIAL)


@dataclass
class ReconstructionSession:
    """Inputs of one reconstruction and every intermediate it produces."""
    front_frame: ScanFrame
    back_frame: ScanFrame
    front_skeleton: Skeleton
    back_skeleton: Skeleton
    front_key: Optional[float] = None
    back_key: Optional[float] = None
    config: Optional[Dict[str, Any]] = None     # overrides of the pipeline config

    front_mask: Optional[np.ndarray] = None
    back_mask: Optional[np.ndarray] = None
    front_mesh: Optional[ScanMesh] = None
    back_mesh: Optional[ScanMesh] = None
    front_segmentation: Optional[SegmentationResult] = None
    back_segmentation: Optional[SegmentationResult] = None
    stitched: List[StitchedGroupMesh] = field(default_factory=list)
    atlas: Optional[TextureAtlas] = None
    linking_meshes: List[LinkingMesh] = field(default_factory=list)
    hooks: List[EdgeHook] = field(default_factory=list)
    body_scan: Optional[BodyScan] = None
    _inputs: Optional[Tuple] = field(default=None, repr=False)

    def reset(self):
        """
        Restore the scan inputs and drop every intermediate.

        The prepare stage turns the back scan around and denoising rewrites
        the color masks, so a rerun starts again from the inputs as given.
        """
        if self._inputs is None:
            self._inputs = (self.front_frame.copy(), self.back_frame.copy(),
                            self.front_skeleton.copy(), self.back_skeleton.copy())
        front_frame, back_frame, front_skeleton, back_skeleton = self._inputs
        self.front_frame = front_frame.copy()
        self.back_frame = back_frame.copy()
        self.front_skeleton = front_skeleton.copy()
        self.back_skeleton = back_skeleton.copy()

        self.front_mask = self.back_mask = None
        self.front_mesh = self.back_mesh = None
        self.front_segmentation = self.back_segmentation = None
        self.stitched = []
        self.atlas = None
        self.linking_meshes = []
        self.hooks = []
        self.body_scan = None

    @classmethod
    def from_store(cls, store: ScanStore, front_key: float, back_key: float,
                   config: Optional[Dict] = None) -> 'ReconstructionSession':
        """Session over copies of two stored snapshots."""
        front = store.get(front_key)
        back = store.get(back_key)
        return cls(front.frame, back.frame, front.skeleton, back.skeleton,
                   front_key=front_key, back_key=back_key, config=config)


@dataclass
class ReconstructionResult:
    """All stage results of one run plus the final body scan."""
    stages: List[StageResult]
    session: ReconstructionSession = field(repr=False)
    total_time: float = 0.0

    @property
    def body_scan(self) -> Optional[BodyScan]:
        return self.session.body_scan

    @property
    def success(self) -> bool:
        return self.body_scan is not None and all(s.status != StageStatus.FAILED for s in self.stages)

    @property
    def failed_stage(self) -> Optional[StageResult]:
        for stage in self.stages:
            if stage.status == StageStatus.FAILED:
                return stage
        return None

    def stage(self, name: str) -> StageResult:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(f"No stage named {name}")

    def summary(self) -> str:
        lines = [f"Reconstruction {'succeeded' if self.success else 'failed'} in {self.total_time:.2f}s"]
        for stage in self.stages:
            line = f"  {stage.name:<12} {stage.status.value:<8} {stage.duration:.3f}s"
            if stage.message:
                line += f"  {stage.message}"
            lines.append(line)
        return "\n".join(lines)


StageOutcome = Tuple[StageStatus, str, Dict[str, Any]]


class ReconstructionPipeline:
    """
    Drives a session through every reconstruction stage.

    Each stage takes the session, fills in its intermediates and returns
    its status. A :class:`ReconstructionError` fails the stage; the
    remaining stages are then skipped.
    """

    STAGES = ["prepare", "denoise", "reconstruct", "segment", "stitch", "atlas", "link", "assemble"]

    def __init__(self, config: Optional[Dict] = None):
        self.config = merge_config(DEFAULT_CONFIG, config)

    def _stage_functions(self) -> Dict[str, Callable[[ReconstructionSession], StageOutcome]]:
        return {
            "prepare": self._prepare,
            "denoise": self._denoise,
            "reconstruct": self._reconstruct,
            "segment": self._segment,
            "stitch": self._stitch,
            "atlas": self._build_atlas,
            "link": self._link,
            "assemble": self._assemble,
        }

    def reconstruct_from_store(self, store: ScanStore, front_key: float, back_key: float) -> ReconstructionResult:
        session = ReconstructionSession.from_store(store, front_key, back_key, self.config)
        return self.run(session)

    def run(self, session: ReconstructionSession) -> ReconstructionResult:
        """Run every stage in order on ``session``."""
        start = time.time()
        session.reset()
        session.config = merge_config(self.config, session.config)
        functions = self._stage_functions()
        results: List[StageResult] = []
        failed = False

        logger.info(f"Starting reconstruction (front {session.front_key}, back {session.back_key})")

        for name in self.STAGES:
            if failed:
                results.append(StageResult(name, StageStatus.SKIPPED, "previous stage failed"))
                continue

            stage_start = time.time()
            try:
                status, message, details = functions[name](session)
            except ReconstructionError as e:
                logger.error(f"Stage {name} failed: {e}")
                status, message, details = StageStatus.FAILED, str(e), {"error": type(e).__name__}
                failed = True

            duration = time.time() - stage_start
            results.append(StageResult(name, status, message, duration, details))
            if status == StageStatus.PARTIAL:
                logger.warning(f"Stage {name} partial: {message}")
            else:
                logger.debug(f"Stage {name} {status.value} in {duration:.3f}s")

        result = ReconstructionResult(results, session, time.time() - start)
        logger.info(f"Reconstruction finished in {result.total_time:.2f}s "
                    f"({'success' if result.success else 'failed'})")
        return result

    def _prepare(self, session: ReconstructionSession) -> StageOutcome:
        """Validate both frames, turn the back scan around and fill in color masks."""
        session.front_frame.validate()
        session.back_frame.validate()
        if session.front_frame.lattice_shape != session.back_frame.lattice_shape:
            raise ShapeMismatchError(f"Front lattice {session.front_frame.lattice_shape} differs from "
                                     f"back lattice {session.back_frame.lattice_shape}")

        offsets = session.front_skeleton.reverse_offset_vectors()
        session.back_skeleton = session.back_skeleton.reversed(offsets)
        session.back_frame = session.back_frame.reversed()

        denoise = session.config['denoise']
        derived = []
        for side, frame in (("front", session.front_frame), ("back", session.back_frame)):
            if frame.color_mask is None and denoise.get('derive_color_mask', True):
                frame.color_mask = derive_color_mask(frame, int(denoise.get('color_mask_dilation', 5)))
                derived.append(side)

        message = f"derived color masks for {', '.join(derived)}" if derived else ""
        return StageStatus.SUCCESS, message, {"derived_color_masks": derived}

    def _denoise(self, session: ReconstructionSession) -> StageOutcome:
        denoise = session.config['denoise']
        depth = MaskDenoiser(denoise.get('depth_passes'))
        color = MaskDenoiser(denoise.get('color_passes'), int(denoise.get('color_erosion_repeats', 1)))

        details = {}
        for side in ("front", "back"):
            frame: ScanFrame = getattr(session, f"{side}_frame")
            result = depth.denoise(frame.body_mask)
            if result.output_pixels == 0:
                raise ReconstructionError(f"No body samples left in the {side} scan after denoising")
            setattr(session, f"{side}_mask", result.mask)
            details[f"{side}_removed"] = result.removed_pixels
            details[f"{side}_regions"] = result.region_count

            if frame.color_mask is not None:
                frame.color_mask = color.denoise(frame.color_mask).mask

        return StageStatus.SUCCESS, "", details

    def _reconstruct(self, session: ReconstructionSession) -> StageOutcome:
        reconstructor = SurfaceReconstructor()
        session.front_mesh = reconstructor.reconstruct(session.front_frame.positions,
                                                       session.front_frame.uvs, session.front_mask)
        session.back_mesh = reconstructor.reconstruct(session.back_frame.positions,
                                                      session.back_frame.uvs, session.back_mask)
        details = {
            "front_vertices": session.front_mesh.vertex_count,
            "front_triangles": session.front_mesh.triangle_count,
            "back_vertices": session.back_mesh.vertex_count,
            "back_triangles": session.back_mesh.triangle_count,
        }
        return StageStatus.SUCCESS, "", details

    def _segment(self, session: ReconstructionSession) -> StageOutcome:
        session.front_segmentation = AnatomicalSegmenter(session.front_skeleton).segment(
            session.front_mesh, ScanSide.FRONT)
        session.back_segmentation = AnatomicalSegmenter(session.back_skeleton).segment(
            session.back_mesh, ScanSide.BACK)

        empty = [GROUP_NAMES[g] for g in range(len(GROUP_NAMES))
                 if session.front_segmentation.groups[g].is_empty
                 and session.back_segmentation.groups[g].is_empty]
        details = {"empty_groups": empty,
                   "front_cut_triangles": len(session.front_segmentation.cut_triangles),
                   "back_cut_triangles": len(session.back_segmentation.cut_triangles)}
        if empty:
            return StageStatus.PARTIAL, f"empty groups: {', '.join(empty)}", details
        return StageStatus.SUCCESS, "", details

    def _stitch(self, session: ReconstructionSession) -> StageOutcome:
        stitcher = ScanStitcher(session.config['stitching'])
        session.stitched = stitcher.stitch(session.front_segmentation.groups,
                                           session.back_segmentation.groups)

        open_seams = [m.name for m in session.stitched
                      if not m.is_empty and m.zipper_triangle_count == 0]
        details = {"open_seams": open_seams,
                   "zipper_triangles": sum(m.zipper_triangle_count for m in session.stitched),
                   "removed_overlap": sum(m.removed_front + m.removed_back for m in session.stitched)}
        if open_seams:
            return StageStatus.PARTIAL, f"unstitched groups: {', '.join(open_seams)}", details
        return StageStatus.SUCCESS, "", details

    def _build_atlas(self, session: ReconstructionSession) -> StageOutcome:
        builder = TextureAtlasBuilder(session.config['atlas'])
        front = session.front_frame
        back = session.back_frame
        front_texture = mask_texture(front.texture, front.color_mask, builder.background)
        back_texture = mask_texture(back.texture, back.color_mask, builder.background)

        front_uvs = [session.front_segmentation.region_uvs(r) for r in range(TEXTURE_REGION_COUNT)]
        back_uvs = [session.back_segmentation.region_uvs(r) for r in range(TEXTURE_REGION_COUNT)]
        session.atlas = builder.build(front_texture, back_texture, front_uvs, back_uvs)

        for mesh in session.stitched:
            mesh.apply_atlas(session.atlas)

        skipped = session.atlas.skipped_regions
        if skipped:
            return StageStatus.PARTIAL, f"skipped regions: {', '.join(skipped)}", {"skipped_regions": skipped}
        return StageStatus.SUCCESS, "", {"skipped_regions": []}

    def _link(self, session: ReconstructionSession) -> StageOutcome:
        builder = LinkingMeshBuilder(session.atlas)
        session.linking_meshes, session.hooks = builder.build(
            session.stitched,
            session.front_segmentation.cut_triangles,
            session.back_segmentation.cut_triangles,
        )
        details = {"hooks": len(session.hooks),
                   "linking_triangles": sum(len(m.triangles) for m in session.linking_meshes)}
        return StageStatus.SUCCESS, "", details

    def _assemble(self, session: ReconstructionSession) -> StageOutcome:
        session.body_scan = BodyScan.assemble(session.stitched, session.linking_meshes, session.hooks,
                                              session.atlas, session.front_skeleton)
        return StageStatus.SUCCESS, "", {"groups": len(session.body_scan.groups)}
