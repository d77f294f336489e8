#!/usr/bin/env python3
"""
Configuration Management Module
Handles loading and validating configuration files

Created: 2025
"""

import json
import os
import shutil
from datetime import datetime
from typing import Any, Dict, List, Optional

from .log import get_logger

logger = get_logger(__name__)


class ConfigManager:
    """Configuration manager for the photo booth pipeline"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager
        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path or "config.json"
        self.config = self._get_default_config()

        if os.path.exists(self.config_path):
            self.load_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration"""
        return {
            "mask": {
                "pixel_threshold": 200,
                "bbox_threshold": 128,
            },
            "distance": {
                "ladder": [[0.25, 0.5], [0.15, 0.8], [0.08, 1.2], [0.04, 1.8], [0.01, 2.2]],
                "far_distance": 2.5,
                "smoothing_factor": 0.3,
                "in_range_max": 1.0,
            },
            "pose": {
                "tolerances": {"aspect": 1.5, "center_x": 0.25, "center_y": 0.25, "area": 0.3},
                "weights": {"aspect": 0.3, "center_x": 0.3, "center_y": 0.3, "area": 0.1},
            },
            "capture": {
                "trigger_threshold": 0.80,
                "cancel_threshold": 0.75,
                "countdown_start": 3,
                "step_seconds": 1.0,
                "cooldown_seconds": 3.0,
                "auto_capture": True,
            },
            "compositor": {
                "canvas_width": 1280,
                "canvas_height": 720,
                "blur_sigma": 8.0,
                "scrim_alpha": 0.5,
                "disc_alpha": 0.6,
            },
            "pipeline": {
                "enable_pose_matching": True,
                "mirror_output": False,
            },
            "camera": {
                "width": 1280,
                "height": 720,
            },
            "background": "none",
            "background_timeout": 10.0,
            "reference_image": None,
            "output_directory": "captures",
            "log_level": "INFO",
        }

    def load_config(self) -> bool:
        """
        Load configuration from file
        Returns:
            True if loaded successfully
        """
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded_config = json.load(f)

            if not isinstance(loaded_config, dict):
                raise ValueError("top-level JSON value must be an object")

            # Update default config with loaded values
            self._deep_update(self.config, loaded_config)

            logger.info("Configuration loaded from %s", self.config_path)
            return True

        except (OSError, ValueError) as e:
            logger.error("Error loading configuration: %s", e)
            return False

    def save_config(self) -> bool:
        """
        Save current configuration to file

        The previous file, if any, is kept as ``<path>.backup.<timestamp>``.

        Returns:
            True if saved successfully
        """
        try:
            if os.path.exists(self.config_path):
                timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                backup_path = f"{self.config_path}.backup.{timestamp}"
                shutil.copy2(self.config_path, backup_path)
                logger.info("Backup created: %s", backup_path)

            directory = os.path.dirname(self.config_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)

            logger.info("Configuration saved to %s", self.config_path)
            return True

        except (OSError, TypeError) as e:
            logger.error("Error saving configuration: %s", e)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value
        Args:
            key: Configuration key (supports dot notation, e.g., 'capture.cooldown_seconds')
            default: Default value if key not found
        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self.config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """
        Set configuration value
        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        # Navigate to parent of target key
        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def _deep_update(self, base_dict: Dict, update_dict: Dict):
        """
        Deep update dictionary
        Args:
            base_dict: Base dictionary to update
            update_dict: Dictionary with updates
        """
        for key, value in update_dict.items():
            if key in base_dict and isinstance(base_dict[key], dict) and isinstance(value, dict):
                self._deep_update(base_dict[key], value)
            else:
                base_dict[key] = value

    def validate_config(self) -> bool:
        """
        Validate configuration values
        Returns:
            True if configuration is valid
        """
        errors = self.collect_errors()

        if errors:
            logger.error("Configuration validation errors:")
            for error in errors:
                logger.error("  - %s", error)
            return False

        return True

    def collect_errors(self) -> List[str]:
        """List every validation problem (empty when the configuration is valid)"""
        errors = []

        pixel_th = self.get('mask.pixel_threshold', -1)
        bbox_th = self.get('mask.bbox_threshold', -1)
        if not 0 <= pixel_th <= 255:
            errors.append("mask.pixel_threshold must be between 0 and 255")
        if not 0 <= bbox_th <= 255:
            errors.append("mask.bbox_threshold must be between 0 and 255")
        if bbox_th > pixel_th:
            errors.append("mask.bbox_threshold must not exceed mask.pixel_threshold")

        alpha = self.get('distance.smoothing_factor', 0)
        if not 0 < alpha <= 1:
            errors.append("distance.smoothing_factor must be in (0, 1]")
        errors.extend(self._ladder_errors(self.get('distance.ladder', [])))
        if self.get('distance.in_range_max', 0) <= 0:
            errors.append("distance.in_range_max must be positive")

        trigger = self.get('capture.trigger_threshold', -1)
        cancel = self.get('capture.cancel_threshold', -1)
        if not 0 <= trigger <= 1:
            errors.append("capture.trigger_threshold must be between 0 and 1")
        if not 0 <= cancel <= 1:
            errors.append("capture.cancel_threshold must be between 0 and 1")
        if cancel > trigger:
            errors.append("capture.cancel_threshold must not exceed capture.trigger_threshold")
        if self.get('capture.countdown_start', 0) < 1:
            errors.append("capture.countdown_start must be at least 1")
        if self.get('capture.step_seconds', 0) <= 0:
            errors.append("capture.step_seconds must be positive")
        if self.get('capture.cooldown_seconds', -1) < 0:
            errors.append("capture.cooldown_seconds must not be negative")

        if self.get('compositor.canvas_width', 0) <= 0 or self.get('compositor.canvas_height', 0) <= 0:
            errors.append("compositor canvas size must be positive")

        weights = self.get('pose.weights', {}) or {}
        tolerances = self.get('pose.tolerances', {}) or {}
        if abs(sum(float(v) for v in weights.values()) - 1.0) > 1e-6:
            errors.append("pose.weights must sum to 1")
        if any(float(v) <= 0 for v in tolerances.values()):
            errors.append("pose.tolerances must be positive")

        return errors

    @staticmethod
    def _ladder_errors(ladder: Any) -> List[str]:
        if not isinstance(ladder, (list, tuple)) or not ladder:
            return ["distance.ladder must be a non-empty list of [ratio, distance] pairs"]
        try:
            pairs = [(float(r), float(d)) for r, d in ladder]
        except (TypeError, ValueError):
            return ["distance.ladder must be a non-empty list of [ratio, distance] pairs"]

        errors = []
        ratios = [r for r, _ in pairs]
        distances = [d for _, d in pairs]
        if any(a <= b for a, b in zip(ratios, ratios[1:])):
            errors.append("distance.ladder ratios must be strictly decreasing")
        if any(a > b for a, b in zip(distances, distances[1:])):
            errors.append("distance.ladder distances must be non-decreasing")
        return errors

    def print_config(self):
        """Print current configuration"""
        print("=== Current Configuration ===")
        self._print_dict(self.config, indent=0)

    def _print_dict(self, d: Dict, indent: int):
        """Recursively print dictionary"""
        for key, value in d.items():
            if isinstance(value, dict):
                print("  " * indent + f"{key}:")
                self._print_dict(value, indent + 1)
            else:
                print("  " * indent + f"{key}: {value}")
