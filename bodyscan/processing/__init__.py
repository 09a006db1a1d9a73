"""
Lattice processing: body mask denoising and surface reconstruction.
"""

from .mask_denoiser import DenoiseResult, MaskDenoiser, dilate, erode, keep_largest_region, label_regions
from .surface_reconstructor import ScanMesh, SurfaceReconstructor

__all__ = ["DenoiseResult", "MaskDenoiser", "dilate", "erode", "keep_largest_region", "label_regions",
           "ScanMesh", "SurfaceReconstructor"]
