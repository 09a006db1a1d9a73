"""
Exceptions raised by the body scan pipeline.
"""


class ReconstructionError(Exception):
    """Base exception for reconstruction failures."""
    pass


class ShapeMismatchError(ReconstructionError):
    """Lattice, mask and texture dimensions disagree for one scan."""
    pass


class SkeletonError(ReconstructionError):
    """Skeleton input has the wrong number of joints or malformed values."""
    pass


class SerializationError(ReconstructionError):
    """Flat-array payload cannot be turned back into a body scan."""
    pass
