"""
Shared helper functions and utilities.

Logging setup and configuration loading/saving/validation.
"""

import copy
import json
import logging
import os


DEFAULT_CONFIG = {
    # Detection
    'detection': {
        'cosine_limit': 0.7,  # Max corner cosine for square candidates
        'threshold_block_size': 7,  # Odd adaptive threshold block size
        'min_area': 100,  # Minimum candidate area in pixels^2
        'approx_tolerance': 0.025,  # Polygon approximation, fraction of perimeter
    },

    # Threshold block size walked across frames while nothing is detected
    'threshold_walk': {
        'enabled': True,
        'min_block_size': 3,
        'max_block_size': 21,
        'step': 2,
    },

    # Calibration / pose estimation
    'calibration': {
        'calibration_file': None,  # Optional path to JSON file with camera_matrix/dist_coeffs
        'camera_matrix': [
            [570.3422241210938, 0.0, 319.5],
            [0.0, 570.3422241210938, 239.5],
            [0.0, 0.0, 1.0],
        ],
        'dist_coeffs': [0.0, 0.0, 0.0, 0.0, 0.0],
    },
    'pnp_method': 'iterative',  # 'iterative', 'epnp', 'ippe', 'ippe_square'

    # Pose filtering/smoothing
    'pose_filter': {
        'enable_smoothing': True,
        'smoothing_alpha': 0.3,  # EMA factor (0 = max smooth, 1 = no smooth)
        'enable_outlier_rejection': True,
        'max_translation_jump': 0.5,  # meters
        'max_rotation_jump': 0.5,  # radians
        'history_size': 10,
        'use_median_filter': False,
        'outlier_reset_frames': 3,  # Consecutive rejected jumps before the new pose is accepted
    },

    # Known markers: [{'id': 0, 'size': 0.1, 'position': [x, y, z], 'rotation': [rx, ry, rz]}]
    'known_markers': [],

    # Display
    'axis_length': 0.05,  # meters, used for pose visualization
}


def setup_logging(level=logging.INFO):
    """Set up logging configuration.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logger = logging.getLogger(__name__)
    logger.info("Logging initialized")


def _merge(base, override):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_config(config_path=None):
    """Load configuration from file or return defaults.

    Nested sections in the file are merged into the defaults key by key.

    Args:
        config_path: Path to configuration file (optional)

    Returns:
        dict: Configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                loaded_config = json.load(f)
            _merge(config, loaded_config)
            logging.info(f"Configuration loaded from {config_path}")
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to load config from {config_path}: {e}")
    elif config_path:
        logging.warning(f"Config file {config_path} not found, using defaults")

    return config


def save_config(config, config_path):
    """Save configuration to file.

    Args:
        config: Configuration dictionary
        config_path: Path to save configuration file

    Returns:
        bool: True if save successful, False otherwise
    """
    try:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)
        logging.info(f"Configuration saved to {config_path}")
        return True
    except (OSError, TypeError) as e:
        logging.error(f"Failed to save config to {config_path}: {e}")
        return False


def validate_config(config):
    """Validate configuration parameters.

    Args:
        config: Configuration dictionary

    Returns:
        bool: True if valid, False otherwise
    """
    required_keys = ['detection', 'calibration']

    for key in required_keys:
        if key not in config:
            logging.error(f"Missing required config key: {key}")
            return False

    detection = config['detection']
    block_size = detection.get('threshold_block_size', 7)
    if not isinstance(block_size, int) or block_size < 3 or block_size % 2 == 0:
        logging.error("Threshold block size must be an odd integer >= 3")
        return False

    cosine_limit = detection.get('cosine_limit', 0.7)
    if not 0.0 < cosine_limit <= 1.0:
        logging.error("Cosine limit must be in (0, 1]")
        return False

    if detection.get('min_area', 100) < 0:
        logging.error("Minimum area must not be negative")
        return False

    walk = config.get('threshold_walk', {})
    if walk.get('enabled', False):
        low = walk.get('min_block_size', 3)
        high = walk.get('max_block_size', 21)
        if low % 2 == 0 or high % 2 == 0 or low < 3 or high < low:
            logging.error("Threshold walk range must be odd sizes with 3 <= min <= max")
            return False
        if walk.get('step', 2) % 2 != 0:
            logging.error("Threshold walk step must be even to keep block sizes odd")
            return False

    if config.get('pose_filter', {}).get('outlier_reset_frames', 3) < 1:
        logging.error("Pose filter outlier_reset_frames must be at least 1")
        return False

    for entry in config.get('known_markers', []):
        if 'id' not in entry or not 0 <= int(entry['id']) <= 1023:
            logging.error(f"Known marker entry has an invalid id: {entry}")
            return False
        if float(entry.get('size', 1.0)) <= 0:
            logging.error(f"Known marker {entry['id']} must have a positive size")
            return False

    logging.info("Configuration validated successfully")
    return True
