"""Reference pose handling: turn an uploaded image into a PersonDescriptor."""

from __future__ import annotations

import json
import os
from typing import Optional, Union

import cv2
import numpy as np

from .log import get_logger
from .mask_analyzer import MaskAnalyzer
from .segmentation.base import SegmentationProvider
from .types import PersonDescriptor

logger = get_logger(__name__)

ImageSource = Union[str, os.PathLike, np.ndarray]


def _read_image(source: ImageSource, flags: int) -> np.ndarray:
    if isinstance(source, np.ndarray):
        return source
    path = os.fspath(source)
    image = cv2.imread(path, flags)
    if image is None:
        raise FileNotFoundError(f"Could not read image: {path}")
    return image


def describe_reference_image(
    source: ImageSource,
    provider: SegmentationProvider,
    analyzer: Optional[MaskAnalyzer] = None,
) -> Optional[PersonDescriptor]:
    """Segment a reference photo and describe the person in it.

    Returns None when the provider finds nobody in the image.
    """
    image = _read_image(source, cv2.IMREAD_COLOR)
    analyzer = analyzer or MaskAnalyzer()
    height, width = image.shape[:2]

    mask = provider.segment(image)
    descriptor = analyzer.analyze(mask, width, height)
    if descriptor is None:
        logger.warning("No person found in reference image")
    else:
        logger.info(
            "Reference pose analysed: aspect=%.2f center=(%.2f, %.2f) area=%.3f",
            descriptor.aspect_ratio,
            descriptor.relative_center_x,
            descriptor.relative_center_y,
            descriptor.area_ratio,
        )
    return descriptor


def describe_reference_mask(
    source: ImageSource,
    analyzer: Optional[MaskAnalyzer] = None,
) -> Optional[PersonDescriptor]:
    """Describe a reference pose from a ready-made mask image.

    PNGs with an alpha channel use alpha as occupancy; other images are read
    as grayscale.
    """
    mask = _read_image(source, cv2.IMREAD_UNCHANGED)
    analyzer = analyzer or MaskAnalyzer()
    height, width = mask.shape[:2]
    return analyzer.analyze(mask, width, height)


def save_descriptor(descriptor: PersonDescriptor, path: Union[str, os.PathLike]) -> None:
    directory = os.path.dirname(os.fspath(path))
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(descriptor.to_dict(), fh, indent=2)


def load_descriptor(path: Union[str, os.PathLike]) -> PersonDescriptor:
    with open(path, "r", encoding="utf-8") as fh:
        return PersonDescriptor.from_dict(json.load(fh))


def load_reference(
    source: Union[str, os.PathLike],
    provider: Optional[SegmentationProvider] = None,
    analyzer: Optional[MaskAnalyzer] = None,
) -> Optional[PersonDescriptor]:
    """Load a reference from a saved descriptor (.json), or from an image.

    Images are segmented with ``provider`` when one is given, otherwise they
    are treated as masks.
    """
    path = os.fspath(source)
    if path.lower().endswith(".json"):
        return load_descriptor(path)
    if provider is not None:
        return describe_reference_image(path, provider, analyzer)
    return describe_reference_mask(path, analyzer)
