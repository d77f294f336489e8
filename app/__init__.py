"""Application entry points for the Pose Booth project."""

from .cli import PoseBoothApp, main

__all__ = ["PoseBoothApp", "main"]
