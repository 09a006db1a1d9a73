"""
Body scan reconstruction package.

Builds a skeleton-segmented, textured body mesh from one front and one
back depth scan.

Modules:
- capture: Scan frames, their on-disk format and the timestamped scan store
- processing: Body mask denoising and lattice surface reconstruction
- skeleton: Joint/bone skeleton and the fixed anatomical tables
- geometry: Transforms and mesh helpers
- reconstruction: Segmentation, stitching, texture atlas, linking meshes and the pipeline
- transport: Flat-array and binary serialization
- utils: Configuration and logging
- tests: Synthetic data generation and unit tests
"""

from . import capture
from . import geometry
from . import processing
from . import reconstruction
from . import skeleton
from . import transport
from . import utils
from .errors import ReconstructionError, SerializationError, ShapeMismatchError, SkeletonError

__version__ = "1.0.0"
__all__ = [
    "capture", "geometry", "processing", "reconstruction", "skeleton", "transport", "utils",
    "ReconstructionError", "SerializationError", "ShapeMismatchError", "SkeletonError",
]
