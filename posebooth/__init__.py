#!/usr/bin/env python3
"""
Pose-matching Photo Booth
Init file for the posebooth package

Created: 2025
"""

from .mask_analyzer import MaskAnalyzer
from .distance import DistanceEstimator
from .pose_similarity import PoseSimilarityScorer
from .capture import CaptureStateMachine, ManualClock, SystemClock
from .compositor import FrameCompositor
from .backgrounds import BackgroundLoader, PRESET_BACKGROUNDS
from .pipeline import PipelineComponents, PipelineConfig, PoseBoothPipeline, SessionState, process_tick
from .config_manager import ConfigManager
from .types import (
    BackgroundKind,
    BackgroundSpec,
    CaptureEvent,
    CapturePhase,
    CaptureState,
    DistanceSample,
    PersonDescriptor,
    TickInput,
    TickResult,
)

__version__ = "1.0.0"
__author__ = "Pose Booth Team"

__all__ = [
    'MaskAnalyzer',
    'DistanceEstimator',
    'PoseSimilarityScorer',
    'CaptureStateMachine',
    'ManualClock',
    'SystemClock',
    'FrameCompositor',
    'BackgroundLoader',
    'PRESET_BACKGROUNDS',
    'PipelineComponents',
    'PipelineConfig',
    'PoseBoothPipeline',
    'SessionState',
    'process_tick',
    'ConfigManager',
    'BackgroundKind',
    'BackgroundSpec',
    'CaptureEvent',
    'CapturePhase',
    'CaptureState',
    'DistanceSample',
    'PersonDescriptor',
    'TickInput',
    'TickResult',
]
