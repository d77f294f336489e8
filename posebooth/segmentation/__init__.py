"""
Segmentation providers.

The pipeline only needs a per-frame foreground mask; providers adapt a
segmentation model to that contract so the model can be swapped freely.
"""

from .base import SegmentationProvider, StaticMaskProvider

__all__ = ["SegmentationProvider", "StaticMaskProvider", "create_provider"]


def create_provider(name: str = "mediapipe", **kwargs) -> SegmentationProvider:
    """Instantiate a provider by name."""
    if name == "mediapipe":
        from .mediapipe_provider import MediaPipeSelfieSegmenter

        return MediaPipeSelfieSegmenter(**kwargs)
    raise ValueError(f"Unknown segmentation provider: {name}")
