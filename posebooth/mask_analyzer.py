#!/usr/bin/env python3
"""
Mask Analysis Module
Derives silhouette statistics (bounding box, occupancy ratios) from a
foreground/background segmentation mask

Created: 2025
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from .types import PersonDescriptor

# Occupancy thresholds on the 0-255 scale. A pixel counts as foreground only
# when its value is strictly greater than the threshold.
PIXEL_THRESHOLD = 200
BBOX_THRESHOLD = 128


class MaskAnalyzer:
    """Turns a segmentation mask into a PersonDescriptor"""

    def __init__(self, pixel_threshold: int = PIXEL_THRESHOLD, bbox_threshold: int = BBOX_THRESHOLD):
        """
        Initialize mask analyzer
        Args:
            pixel_threshold: Occupancy (0-255) above which a pixel is counted
                as high-confidence foreground
            bbox_threshold: Occupancy (0-255) above which a pixel extends the
                bounding box
        """
        self.pixel_threshold = int(pixel_threshold)
        self.bbox_threshold = int(bbox_threshold)

    def analyze(self, mask: Optional[np.ndarray], width: int, height: int) -> Optional[PersonDescriptor]:
        """
        Analyze a segmentation mask
        Args:
            mask: HxW occupancy map (uint8 0-255 or float 0-1), or an HxWx4
                image whose alpha channel carries occupancy
            width: Frame width the mask belongs to
            height: Frame height the mask belongs to
        Returns:
            PersonDescriptor, or None when no foreground pixel is found
        """
        if mask is None or width <= 0 or height <= 0:
            return None
        if mask.size == 0:
            return None

        occupancy, full_scale = occupancy_map(mask, width, height)
        # Thresholds are compared on the mask's own scale, before any
        # quantisation to uint8.
        bbox_cut = self.bbox_threshold * full_scale / 255.0
        pixel_cut = self.pixel_threshold * full_scale / 255.0

        loose = occupancy > bbox_cut
        rows = np.flatnonzero(loose.any(axis=1))
        if rows.size == 0:
            return None
        cols = np.flatnonzero(loose.any(axis=0))

        min_y, max_y = int(rows[0]), int(rows[-1])
        min_x, max_x = int(cols[0]), int(cols[-1])
        bbox_w = max_x - min_x + 1
        bbox_h = max_y - min_y + 1

        total = float(width * height)
        foreground = int(np.count_nonzero(occupancy > pixel_cut))
        bbox_ratio = (bbox_w * bbox_h) / total

        return PersonDescriptor(
            min_x=min_x,
            max_x=max_x,
            min_y=min_y,
            max_y=max_y,
            pixel_ratio=foreground / total,
            bounding_box_ratio=bbox_ratio,
            aspect_ratio=bbox_h / float(bbox_w),
            relative_center_x=(min_x + max_x + 1) / 2.0 / width,
            relative_center_y=(min_y + max_y + 1) / 2.0 / height,
            area_ratio=bbox_ratio,
            foreground_pixels=foreground,
            width=int(width),
            height=int(height),
        )


def occupancy_map(mask: np.ndarray, width: int, height: int) -> Tuple[np.ndarray, float]:
    """HxW occupancy at frame size, on the mask's native scale.

    Returns the map together with its full-scale value: 255.0 for uint8 masks
    and float masks already on 0-255, 1.0 for float probability masks.
    The input is never modified; a new array is always returned.
    """
    m = np.asarray(mask)
    if m.ndim == 3:
        if m.shape[2] == 4:
            m = m[:, :, 3]
        elif m.shape[2] == 1:
            m = m[:, :, 0]
        else:
            rgb = m[:, :, :3] if m.dtype == np.uint8 else m[:, :, :3].astype(np.float32)
            m = cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_BGR2GRAY)

    if m.dtype == np.uint8:
        full_scale = 255.0
        m = m.copy()
    else:
        m = np.array(m, dtype=np.float32)
        full_scale = 1.0 if m.size and float(m.max()) <= 1.0 else 255.0

    if m.shape[0] != height or m.shape[1] != width:
        m = cv2.resize(m, (int(width), int(height)), interpolation=cv2.INTER_LINEAR)
    return m, full_scale


def to_occupancy(mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """Convert any supported mask layout to an HxW uint8 occupancy map."""
    m, full_scale = occupancy_map(mask, width, height)
    if m.dtype == np.uint8:
        return m
    return np.clip(np.rint(m * (255.0 / full_scale)), 0, 255).astype(np.uint8)


def to_alpha(mask: Optional[np.ndarray], width: int, height: int) -> np.ndarray:
    """Mask as an HxW float32 alpha stencil in [0, 1]."""
    if mask is None or np.asarray(mask).size == 0:
        return np.zeros((height, width), dtype=np.float32)
    return to_occupancy(mask, width, height).astype(np.float32) / 255.0
