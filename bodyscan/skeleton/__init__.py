"""
Skeleton model and anatomical tables.
"""

from .anatomy import AnatomicalGroup, TextureRegion
from .skeleton import Skeleton, compute_bones

__all__ = ["AnatomicalGroup", "TextureRegion", "Skeleton", "compute_bones"]
