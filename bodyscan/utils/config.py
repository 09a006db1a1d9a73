#!/usr/bin/env python3
"""
Reconstruction configuration loading.

Defaults live in code; a YAML file overrides any subset of them.
"""

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'denoise': {
        'depth_passes': [8],
        'color_passes': [8],
        'color_erosion_repeats': 6,
        'derive_color_mask': True,
        'color_mask_dilation': 5,
    },
    'stitching': {
        'smoothing_iterations': 3,
        'align_groups': ['Head'],
        'align_depth_offset': 0.15,
        'outlier_removal': {
            'enabled': False,
            'nb_neighbors': 20,
            'std_ratio': 2.0,
        },
    },
    'atlas': {
        'interval': 30,
        'extrapolation_iterations': 2,
        'background_color': [0, 255, 0],
        'vertical_strength': [2, 4, 1],
        'horizontal_strength': [0, 4, 1],
    },
    'logging': {
        'level': 'INFO',
        'file': None,
    },
}


def get_default_config_path() -> str:
    """Get default path to the packaged reconstruction config."""
    possible_paths = [
        os.path.join(os.path.dirname(__file__), "..", "config", "reconstruction_config.yaml"),
        os.path.join(os.getcwd(), "config", "reconstruction_config.yaml"),
    ]

    for path in possible_paths:
        if os.path.exists(path):
            return os.path.abspath(path)

    return os.path.abspath(possible_paths[0])


def merge_config(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    if not overrides:
        return merged

    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Load the reconstruction configuration.

    Args:
        config_path: YAML file to read, the packaged default when None
        overrides: Extra values applied on top of the file

    Returns:
        Complete configuration dictionary
    """
    path = config_path or get_default_config_path()
    file_config: Dict[str, Any] = {}

    if os.path.exists(path):
        try:
            with open(path, 'r') as file:
                file_config = yaml.safe_load(file) or {}
            logger.info(f"Loaded reconstruction config from: {path}")
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse reconstruction config {path}: {e}")
            raise
    elif config_path is not None:
        raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        logger.warning(f"Config file not found: {path}, using defaults")

    if not isinstance(file_config, dict):
        raise ValueError(f"Config file {path} must contain a mapping at top level")

    return merge_config(merge_config(DEFAULT_CONFIG, file_config), overrides)
