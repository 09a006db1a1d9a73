"""
Serialization of reconstructed scans and per-frame skeleton updates.
"""

from .scan_serializer import ScanPayload, SkeletonFrame, pack_skeleton, unpack_skeleton

__all__ = ["ScanPayload", "SkeletonFrame", "pack_skeleton", "unpack_skeleton"]
