#!/usr/bin/env python3
"""
Mask Denoiser Module

Cleans the per-pixel body mask of a scan before it is triangulated.

Key Features:
- Neighbour-count erosion and dilation with in-bounds-only neighbourhoods
- Alternating erode/dilate pass lists
- 8-connected region labeling
- Largest-region selection to drop detached noise

Mask values: 0 = masked, 1 = unmasked (body), 2 = eroded.

Author: Body Scan Team
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from scipy import ndimage

logger = logging.getLogger(__name__)

MASKED = 0
UNMASKED = 1
ERODED = 2

# 8-neighbourhood, centre excluded
NEIGHBOUR_KERNEL = np.array([[1, 1, 1],
                             [1, 0, 1],
                             [1, 1, 1]], dtype=np.int32)

CONNECTIVITY = np.ones((3, 3), dtype=np.int32)


def validate_mask(mask: np.ndarray) -> np.ndarray:
    """Check that ``mask`` is a 2D raster with values in {0, 1, 2}."""
    mask = np.asarray(mask)
    if mask.ndim != 2:
        raise ValueError(f"Mask must be 2D, got shape {mask.shape}")
    if mask.size and not np.isin(mask, (MASKED, UNMASKED, ERODED)).all():
        raise ValueError("Mask values must be 0 (masked), 1 (unmasked) or 2 (eroded)")
    return mask


def count_unmasked_neighbours(mask: np.ndarray) -> np.ndarray:
    """Number of 8-neighbours with value 1; out-of-bounds neighbours count as masked."""
    unmasked = (np.asarray(mask) == UNMASKED).astype(np.int32)
    if unmasked.size == 0:
        return unmasked
    return ndimage.convolve(unmasked, NEIGHBOUR_KERNEL, mode='constant', cval=0)


def erode(mask: np.ndarray, factor: int) -> np.ndarray:
    """
    Mark unmasked pixels with fewer than ``factor`` unmasked neighbours as eroded.

    Pixels that are not unmasked come out masked.
    """
    if factor < 0:
        raise ValueError(f"Erosion factor must be non-negative, got {factor}")
    mask = validate_mask(mask)
    counts = count_unmasked_neighbours(mask)
    unmasked = mask == UNMASKED

    result = np.zeros(mask.shape, dtype=np.uint8)
    result[unmasked & (counts >= factor)] = UNMASKED
    result[unmasked & (counts < factor)] = ERODED
    return result


def dilate(mask: np.ndarray, factor: int) -> np.ndarray:
    """
    Restore eroded pixels with at least ``factor`` unmasked neighbours.

    Eroded pixels that are not restored become masked; unmasked pixels stay.
    """
    if factor < 0:
        raise ValueError(f"Dilation factor must be non-negative, got {factor}")
    mask = validate_mask(mask)
    counts = count_unmasked_neighbours(mask)
    eroded = mask == ERODED

    result = np.zeros(mask.shape, dtype=np.uint8)
    result[mask == UNMASKED] = UNMASKED
    result[eroded & (counts >= factor)] = UNMASKED
    return result


def apply_passes(mask: np.ndarray, passes: Sequence[int], erosion_repeats: int = 1) -> np.ndarray:
    """
    Run an alternating erode/dilate sequence.

    Args:
        mask: Raster mask
        passes: Factors, even indices erode and odd indices dilate
        erosion_repeats: How many times each erosion pass is applied

    Returns:
        New mask, may still contain eroded pixels
    """
    result = validate_mask(mask).astype(np.uint8)
    for i, factor in enumerate(passes):
        if i % 2 == 0:
            for _ in range(max(1, erosion_repeats)):
                result = erode(result, factor)
        else:
            result = dilate(result, factor)
    return result


def label_regions(mask: np.ndarray):
    """
    Label 8-connected regions of unmasked pixels.

    Region ids are positive and assigned in raster order of each region's
    first pixel; eroded and masked pixels get label 0.

    Returns:
        Tuple of (label array, number of regions)
    """
    unmasked = np.asarray(mask) == UNMASKED
    if unmasked.size == 0:
        return np.zeros(unmasked.shape, dtype=np.int32), 0
    labels, count = ndimage.label(unmasked, structure=CONNECTIVITY)
    return labels.astype(np.int32), int(count)


def keep_largest_region(mask: np.ndarray) -> np.ndarray:
    """
    Keep only the largest 8-connected unmasked region.

    Ties go to the region found first in raster order. A mask with no
    unmasked pixels yields an all-zero mask.
    """
    labels, count = label_regions(mask)
    result = np.zeros(labels.shape, dtype=np.uint8)
    if count == 0:
        return result

    sizes = np.bincount(labels.ravel(), minlength=count + 1)
    sizes[0] = 0
    largest = int(np.argmax(sizes))
    result[labels == largest] = UNMASKED
    logger.debug(f"Kept region {largest} of {count} ({sizes[largest]} pixels)")
    return result


@dataclass
class DenoiseResult:
    """Outcome of denoising one mask."""
    mask: np.ndarray
    input_pixels: int
    output_pixels: int
    region_count: int

    @property
    def removed_pixels(self) -> int:
        return self.input_pixels - self.output_pixels


class MaskDenoiser:
    """Erosion/dilation followed by largest-region selection."""

    def __init__(self, passes: Optional[Sequence[int]] = None, erosion_repeats: int = 1):
        """
        Args:
            passes: Alternating erode/dilate factors, defaults to a single erosion of 8
            erosion_repeats: Repetitions of each erosion pass
        """
        self.passes = list(passes) if passes is not None else [8]
        if any(f < 0 for f in self.passes):
            raise ValueError(f"Pass factors must be non-negative: {self.passes}")
        self.erosion_repeats = erosion_repeats

    def denoise(self, mask: np.ndarray) -> DenoiseResult:
        mask = validate_mask(mask)
        input_pixels = int(np.count_nonzero(mask == UNMASKED))

        passed = apply_passes(mask, self.passes, self.erosion_repeats)
        _, region_count = label_regions(passed)
        cleaned = keep_largest_region(passed)
        output_pixels = int(np.count_nonzero(cleaned))

        if input_pixels and not output_pixels:
            logger.warning("Denoising removed every body pixel")
        logger.debug(f"Denoised mask {mask.shape}: {input_pixels} -> {output_pixels} pixels, "
                     f"{region_count} regions")
        return DenoiseResult(cleaned, input_pixels, output_pixels, region_count)
