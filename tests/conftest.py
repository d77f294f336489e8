"""Shared fixtures: synthetic masks, frames and descriptors."""

from __future__ import annotations

import numpy as np
import pytest

from posebooth.types import PersonDescriptor


def _box_mask(height, width, box=None, value=255, dtype=np.uint8):
    """HxW mask with ``value`` inside the inclusive ``box`` (x0, y0, x1, y1)."""
    mask = np.zeros((height, width), dtype=dtype)
    if box is not None:
        x0, y0, x1, y1 = box
        mask[y0 : y1 + 1, x0 : x1 + 1] = value
    return mask


def _descriptor(
    pixel_ratio=0.1,
    bounding_box_ratio=0.1,
    aspect_ratio=2.0,
    relative_center_x=0.5,
    relative_center_y=0.5,
    area_ratio=None,
):
    return PersonDescriptor(
        min_x=0,
        max_x=9,
        min_y=0,
        max_y=19,
        pixel_ratio=pixel_ratio,
        bounding_box_ratio=bounding_box_ratio,
        aspect_ratio=aspect_ratio,
        relative_center_x=relative_center_x,
        relative_center_y=relative_center_y,
        area_ratio=bounding_box_ratio if area_ratio is None else area_ratio,
    )


@pytest.fixture
def box_mask():
    return _box_mask


@pytest.fixture
def make_descriptor():
    return _descriptor


@pytest.fixture
def random_frame():
    rng = np.random.default_rng(1234)

    def _make(height=48, width=64):
        return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)

    return _make
