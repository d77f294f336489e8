#!/usr/bin/env python3
"""Launcher for the Pose Booth CLI entry point."""

from app.cli import PoseBoothApp, main

__all__ = ["PoseBoothApp", "main"]


if __name__ == "__main__":
    main()
