"""
Scan capture data.

Scan frames as produced by a depth sensor, their dataset format on disk
and a timestamp-keyed store of snapshots.
"""

from .scan_frame import ScanFrame, derive_color_mask, load_scan_frame, save_scan_frame
from .scan_store import ScanSnapshot, ScanStore

__all__ = ["ScanFrame", "derive_color_mask", "load_scan_frame", "save_scan_frame",
           "ScanSnapshot", "ScanStore"]
