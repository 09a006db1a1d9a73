#!/usr/bin/env python3
"""
Timestamp-keyed store of scan snapshots.

The capture layer adds frames at its own cadence; the reconstruction
session takes copies so it never modifies a snapshot the store still owns.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import ShapeMismatchError
from ..skeleton.skeleton import Skeleton
from .scan_frame import ScanFrame

logger = logging.getLogger(__name__)


@dataclass
class ScanSnapshot:
    """A scan frame and the skeleton tracked with it."""
    key: float
    frame: ScanFrame
    skeleton: Skeleton

    def copy(self) -> 'ScanSnapshot':
        return ScanSnapshot(self.key, self.frame.copy(), self.skeleton.copy())


class ScanStore:
    """Thread-safe map from timestamp to :class:`ScanSnapshot`."""

    def __init__(self, max_snapshots: Optional[int] = None):
        self._snapshots: Dict[float, ScanSnapshot] = {}
        self._lock = threading.Lock()
        self.max_snapshots = max_snapshots
        self._lattice_shape = None

    def add(self, key: float, frame: ScanFrame, skeleton: Skeleton) -> ScanSnapshot:
        """
        Store a snapshot under ``key``.

        Raises:
            ShapeMismatchError: If the frame is malformed or its lattice size
                differs from earlier frames
        """
        frame.validate()
        with self._lock:
            if self._lattice_shape is None:
                self._lattice_shape = frame.lattice_shape
            elif frame.lattice_shape != self._lattice_shape:
                raise ShapeMismatchError(f"Lattice {frame.lattice_shape} differs from store lattice "
                                         f"{self._lattice_shape}")

            snapshot = ScanSnapshot(key, frame, skeleton)
            self._snapshots[key] = snapshot

            if self.max_snapshots and len(self._snapshots) > self.max_snapshots:
                oldest = min(self._snapshots)
                del self._snapshots[oldest]
                logger.debug(f"Dropped oldest snapshot {oldest}")

        logger.debug(f"Stored snapshot {key}")
        return snapshot

    def get(self, key: float) -> ScanSnapshot:
        """Copy of the snapshot stored under ``key``."""
        with self._lock:
            if key not in self._snapshots:
                raise KeyError(f"No scan snapshot at {key}")
            return self._snapshots[key].copy()

    def latest(self) -> Optional[ScanSnapshot]:
        with self._lock:
            if not self._snapshots:
                return None
            return self._snapshots[max(self._snapshots)].copy()

    def keys(self) -> List[float]:
        with self._lock:
            return sorted(self._snapshots)

    def __contains__(self, key: float) -> bool:
        with self._lock:
            return key in self._snapshots

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
