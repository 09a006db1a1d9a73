#!/usr/bin/env python3
"""
Texture Atlas Builder Module

Builds one combined texture per texture region from the front and back
scan textures.

Key Features:
- UV bounds per region from the vertices of the region's POIs
- Pixel bounds rounded outward to a fixed interval
- Background extrapolation growing outward from the crop centre
- Back crop resized to the front crop and stacked above it
- UV remapping into the combined texture

Author: Body Scan Team
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..skeleton.anatomy import TEXTURE_REGION_COUNT, TEXTURE_REGION_NAMES, TextureRegion

logger = logging.getLogger(__name__)

DEFAULT_BACKGROUND = (0, 255, 0)
DEFAULT_INTERVAL = 30

# (left/right, up/down, diagonal) neighbour weights
VERTICAL_STRENGTH = (2, 4, 1)
HORIZONTAL_STRENGTH = (0, 4, 1)

# (min_x, max_x, min_y, max_y) in pixels
PixelBounds = Tuple[int, int, int, int]


def uv_min_max(uvs: np.ndarray) -> Tuple[float, float, float, float]:
    """
    UV bounding box ignoring values on or outside the [0, 1] border.

    Returns:
        (min_u, max_u, min_v, max_v), falling back to 0 and 1 per axis
        when no valid value exists
    """
    uvs = np.asarray(uvs, dtype=float).reshape(-1, 2)
    bounds = []
    for axis in range(2):
        values = uvs[:, axis]
        valid = values[(values > 0.0) & (values < 1.0)]
        if len(valid):
            bounds.extend([float(valid.min()), float(valid.max())])
        else:
            bounds.extend([0.0, 1.0])
    return bounds[0], bounds[1], bounds[2], bounds[3]


def pixel_bounds(uv_bounds: Sequence[float], width: int, height: int,
                 interval: int = DEFAULT_INTERVAL) -> PixelBounds:
    """
    Convert UV bounds to pixel bounds rounded outward to ``interval``.

    The result always spans at least one interval and stays inside the image.
    """
    if interval <= 0:
        raise ValueError(f"Interval must be positive, got {interval}")
    min_u, max_u, min_v, max_v = uv_bounds
    w_steps = max(1, width // interval)
    h_steps = max(1, height // interval)

    min_x = int(np.floor(min_u * w_steps)) * interval
    max_x = int(np.ceil(max_u * w_steps)) * interval
    min_y = int(np.floor(min_v * h_steps)) * interval
    max_y = int(np.ceil(max_v * h_steps)) * interval

    min_x, max_x = _clamp_span(min_x, max_x, width, interval)
    min_y, max_y = _clamp_span(min_y, max_y, height, interval)
    return min_x, max_x, min_y, max_y


def _clamp_span(low: int, high: int, size: int, interval: int) -> Tuple[int, int]:
    low = int(np.clip(low, 0, max(size - 1, 0)))
    high = int(np.clip(high, 0, size))
    if high <= low:
        high = min(size, low + interval)
        if high <= low:
            low = max(0, high - interval)
    return low, high


def remap_uvs(uvs: np.ndarray, bounds: PixelBounds, width: int, height: int,
              front: bool) -> np.ndarray:
    """
    Map scan UVs into a combined region texture.

    ``u' = (u - minU) / (maxU - minU)`` and ``v' = (v - minV) / (maxV - minV) / 2``,
    plus 0.5 for the front half. Zero-width bounds map to 0.
    """
    uvs = np.asarray(uvs, dtype=float).reshape(-1, 2)
    min_u = bounds[0] / width
    max_u = bounds[1] / width
    min_v = bounds[2] / height
    max_v = bounds[3] / height
    span_u = max_u - min_u
    span_v = max_v - min_v

    out = np.zeros_like(uvs)
    if span_u > 0:
        out[:, 0] = (uvs[:, 0] - min_u) / span_u
    if span_v > 0:
        out[:, 1] = (uvs[:, 1] - min_v) / span_v / 2.0
    if front:
        out[:, 1] += 0.5
    return out


def mask_texture(texture: np.ndarray, color_mask: Optional[np.ndarray],
                 background=DEFAULT_BACKGROUND) -> np.ndarray:
    """Copy of ``texture`` with every pixel outside the body painted ``background``."""
    masked = np.array(texture, dtype=np.uint8, copy=True)
    if color_mask is None:
        return masked
    if color_mask.shape != masked.shape[:2]:
        raise ValueError(f"Color mask {color_mask.shape} does not match texture {masked.shape[:2]}")
    masked[color_mask != 1] = background
    return masked


def crop(texture: np.ndarray, bounds: PixelBounds) -> np.ndarray:
    min_x, max_x, min_y, max_y = bounds
    return texture[min_y:max_y, min_x:max_x].copy()


def square_ring(width: int, height: int, s: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pixels on the square ring at distance ``s`` around the image centre.

    Returns:
        (xs, ys) arrays, pixels outside the image dropped
    """
    low_x = width // 2 - 1
    high_x = width // 2
    low_y = height // 2 - 1
    high_y = height // 2

    points = []
    for i in range(s - 1):
        points += [
            (low_x - i, high_y - s), (high_x + i, high_y - s),
            (low_x - i, low_y + s), (high_x + i, low_y + s),
            (high_x - s, low_y - i), (high_x - s, high_y + i),
            (low_x + s, low_y - i), (low_x + s, high_y + i),
        ]
    points += [(high_x - s, high_y - s), (high_x - s, low_y + s),
               (low_x + s, low_y + s), (low_x + s, high_y - s)]

    pts = np.array(points, dtype=np.int64).reshape(-1, 2)
    inside = (pts[:, 0] >= 0) & (pts[:, 0] < width) & (pts[:, 1] >= 0) & (pts[:, 1] < height)
    return pts[inside, 0], pts[inside, 1]


def centre_out_range(size: int) -> np.ndarray:
    """Indices from the centre to the end, then from the centre back to 0."""
    return np.concatenate([np.arange(size // 2, size), np.arange(size // 2 - 1, -1, -1)]).astype(np.int64)


def _fill_pixels(image: np.ndarray, blank: np.ndarray, xs: np.ndarray, ys: np.ndarray,
                 strength: Sequence[int]):
    """Replace blank pixels at (xs, ys) with the weighted mean of non-blank neighbours."""
    if len(xs) == 0:
        return
    sel = blank[ys, xs]
    xs, ys = xs[sel], ys[sel]
    if len(xs) == 0:
        return

    height, width = blank.shape
    lr, ud, dg = strength
    offsets = [(0, -1, ud), (0, 1, ud), (-1, 0, lr), (1, 0, lr),
               (-1, -1, dg), (-1, 1, dg), (1, -1, dg), (1, 1, dg)]

    total = np.zeros((len(xs), image.shape[2]), dtype=float)
    weight = np.zeros(len(xs), dtype=float)
    for dx, dy, w in offsets:
        if w <= 0:
            continue
        nx = xs + dx
        ny = ys + dy
        valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
        nxv = np.clip(nx, 0, width - 1)
        nyv = np.clip(ny, 0, height - 1)
        valid &= ~blank[nyv, nxv]
        total[valid] += w * image[nyv[valid], nxv[valid]]
        weight[valid] += w

    filled = weight > 0
    image[ys[filled], xs[filled]] = total[filled] / weight[filled, None]
    blank[ys[filled], xs[filled]] = False


def extrapolate_texture(texture: np.ndarray, background=DEFAULT_BACKGROUND, iterations: int = 2,
                        vertical_strength: Sequence[int] = VERTICAL_STRENGTH,
                        horizontal_strength: Sequence[int] = HORIZONTAL_STRENGTH) -> np.ndarray:
    """
    Fill background pixels from neighbouring body colours.

    A square ring grows from the image centre across the short dimension,
    then the remaining rows (tall images) or columns (wide images) are
    filled outward from the centre. Blank pixels without any non-blank
    neighbour keep their colour.
    """
    texture = np.asarray(texture)
    if texture.ndim != 3 or texture.shape[0] == 0 or texture.shape[1] == 0:
        return np.array(texture, copy=True)

    height, width = texture.shape[:2]
    image = texture.astype(float)
    blank = np.all(texture == np.asarray(background, dtype=texture.dtype), axis=2)
    if blank.all():
        logger.debug("Texture crop is entirely background, left unchanged")
        return np.array(texture, copy=True)

    vertical = height > width
    strength = vertical_strength if vertical else horizontal_strength

    for _ in range(max(0, iterations)):
        if vertical:
            y = height // 2
            for s in range(1, width - width // 2 + 1):
                xs, ys = square_ring(width, height, s)
                _fill_pixels(image, blank, xs, ys, strength)
                y += 1
            xs = centre_out_range(width)
            while y < height:
                for row in (y, height - 1 - y):
                    _fill_pixels(image, blank, xs, np.full(len(xs), row), strength)
                y += 1
        else:
            x = width // 2
            for s in range(1, height - height // 2 + 1):
                xs, ys = square_ring(width, height, s)
                _fill_pixels(image, blank, xs, ys, strength)
                x += 1
            ys = centre_out_range(height)
            while x < width:
                for col in (x, width - 1 - x):
                    _fill_pixels(image, blank, np.full(len(ys), col), ys, strength)
                x += 1

    return np.clip(np.rint(image), 0, 255).astype(texture.dtype)


def join_texture_segments(front: np.ndarray, back: np.ndarray) -> np.ndarray:
    """Resize ``back`` to ``front``'s size and stack it above ``front``."""
    fh, fw = front.shape[:2]
    if back.shape[:2] != (fh, fw):
        back = cv2.resize(back, (fw, fh), interpolation=cv2.INTER_LINEAR)
    return np.vstack([back, front])


@dataclass
class AtlasRegion:
    """Combined texture of one region and the crops it was made from."""
    region: TextureRegion
    front_bounds: PixelBounds
    back_bounds: PixelBounds
    front_size: Tuple[int, int]     # (width, height) of the front scan texture
    back_size: Tuple[int, int]
    image: Optional[np.ndarray] = None
    skipped: bool = False

    @property
    def name(self) -> str:
        return TEXTURE_REGION_NAMES[self.region]

    def remap(self, uvs: np.ndarray, front: bool) -> np.ndarray:
        bounds = self.front_bounds if front else self.back_bounds
        width, height = self.front_size if front else self.back_size
        return remap_uvs(uvs, bounds, width, height, front)


@dataclass
class TextureAtlas:
    """The five region textures."""
    regions: List[AtlasRegion] = field(default_factory=list)

    def region(self, region: int) -> AtlasRegion:
        return self.regions[region]

    def remap(self, uvs: np.ndarray, region: int, front: bool) -> np.ndarray:
        return self.regions[region].remap(uvs, front)

    @property
    def skipped_regions(self) -> List[str]:
        return [r.name for r in self.regions if r.skipped]


class TextureAtlasBuilder:
    """Crops, extrapolates and joins region textures."""

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}
        self.interval = int(config.get('interval', DEFAULT_INTERVAL))
        self.iterations = int(config.get('extrapolation_iterations', 2))
        self.background = tuple(int(c) for c in config.get('background_color', DEFAULT_BACKGROUND))
        self.vertical_strength = tuple(config.get('vertical_strength', VERTICAL_STRENGTH))
        self.horizontal_strength = tuple(config.get('horizontal_strength', HORIZONTAL_STRENGTH))

    def region_segment(self, texture: np.ndarray, uvs: np.ndarray) -> Tuple[np.ndarray, PixelBounds]:
        """Extrapolated crop of ``texture`` covering ``uvs``."""
        height, width = texture.shape[:2]
        bounds = pixel_bounds(uv_min_max(uvs), width, height, self.interval)
        segment = extrapolate_texture(crop(texture, bounds), self.background, self.iterations,
                                      self.vertical_strength, self.horizontal_strength)
        return segment, bounds

    def build(self, front_texture: np.ndarray, back_texture: np.ndarray,
              front_region_uvs: Sequence[np.ndarray], back_region_uvs: Sequence[np.ndarray]) -> TextureAtlas:
        """
        Build the atlas.

        Args:
            front_texture: Masked front scan texture (background painted)
            back_texture: Masked back scan texture
            front_region_uvs: Per region, the front scan UVs bounding it
            back_region_uvs: Per region, the back scan UVs bounding it
        """
        front_size = (front_texture.shape[1], front_texture.shape[0])
        back_size = (back_texture.shape[1], back_texture.shape[0])

        regions = []
        for region in range(TEXTURE_REGION_COUNT):
            front_uvs = np.asarray(front_region_uvs[region]).reshape(-1, 2)
            back_uvs = np.asarray(back_region_uvs[region]).reshape(-1, 2)

            if len(front_uvs) == 0 and len(back_uvs) == 0:
                default = pixel_bounds((0.0, 1.0, 0.0, 1.0), front_size[0], front_size[1], self.interval)
                back_default = pixel_bounds((0.0, 1.0, 0.0, 1.0), back_size[0], back_size[1], self.interval)
                logger.warning(f"No vertices for texture region {TEXTURE_REGION_NAMES[region]}, skipped")
                regions.append(AtlasRegion(TextureRegion(region), default, back_default,
                                           front_size, back_size, None, skipped=True))
                continue

            front_segment, front_bounds = self.region_segment(front_texture, front_uvs)
            back_segment, back_bounds = self.region_segment(back_texture, back_uvs)
            image = join_texture_segments(front_segment, back_segment)

            logger.debug(f"Atlas {TEXTURE_REGION_NAMES[region]}: front {front_bounds}, "
                         f"back {back_bounds}, image {image.shape[1]}x{image.shape[0]}")
            regions.append(AtlasRegion(TextureRegion(region), front_bounds, back_bounds,
                                       front_size, back_size, image))

        logger.info(f"Built texture atlas with {sum(1 for r in regions if not r.skipped)} regions")
        return TextureAtlas(regions)
