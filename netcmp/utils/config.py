"""Configuration management module for netcmp."""

import copy
import yaml
import os
from typing import Any, Dict, Optional
from ..features.connection_models import TCP_STATES


DEFAULT_CONFIG: Dict[str, Any] = {
    'input': {
        'max_line_length': 255
    },
    'connections': {
        'loopback_addresses': ['127.0.0.1']
    },
    'classifier': {
        'pruned_states': ['TIME_WAIT'],
        'max_overflow_examples': 1,
        'max_pair_examples': 5
    },
    'report': {
        'color': 'auto'
    },
    'logging': {
        'level': 'INFO',
        'file': None
    }
}

COLOR_MODES = ('auto', 'always', 'never')


class Config:
    """Configuration container class."""

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize configuration from dictionary."""
        self._config = config_dict

        # Input settings
        self.max_line_length = config_dict['input']['max_line_length']

        # Connection settings
        self.loopback_addresses = list(config_dict['connections']['loopback_addresses'])

        # Classifier
        self.classifier = config_dict['classifier']

        # Report
        self.color = config_dict['report']['color']

        # Logging
        self.log_level = config_dict['logging']['level']
        self.log_file = config_dict['logging'].get('file')

    def get_raw(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return self._config


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file.

    Sections missing from the file keep their built-in defaults.

    Args:
        path: Path to YAML configuration file, or None for defaults

    Returns:
        Config object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_dict = copy.deepcopy(DEFAULT_CONFIG)

    if path is not None:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r') as f:
            user_config = yaml.safe_load(f) or {}

        if not isinstance(user_config, dict):
            raise ValueError("Configuration must be a mapping")

        merge_config(config_dict, user_config)

    validate_config(config_dict)
    return Config(config_dict)


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    """
    Merge user settings into the defaults, section by section.

    Raises:
        ValueError: If a section is unknown or not a mapping
    """
    for section, values in overrides.items():
        if section not in base:
            raise ValueError(f"Unknown configuration section: {section}")
        if not isinstance(values, dict):
            raise ValueError(f"Configuration section {section} must be a mapping")
        base[section].update(values)


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    # Check required top-level keys
    required_keys = ['input', 'connections', 'classifier', 'report', 'logging']
    for key in required_keys:
        if key not in config:
            raise ValueError(f"Missing required configuration section: {key}")

    # Validate input section
    max_line_length = config['input'].get('max_line_length')
    if not isinstance(max_line_length, int) or max_line_length <= 0:
        raise ValueError("input.max_line_length must be a positive integer")

    # Validate connections section
    loopback = config['connections'].get('loopback_addresses')
    if not isinstance(loopback, list) or not all(isinstance(ip, str) for ip in loopback):
        raise ValueError("connections.loopback_addresses must be a list of addresses")

    # Validate classifier section
    classifier_required = ['pruned_states', 'max_overflow_examples', 'max_pair_examples']
    for key in classifier_required:
        if key not in config['classifier']:
            raise ValueError(f"Missing required classifier config: {key}")

    pruned_states = config['classifier']['pruned_states']
    if not isinstance(pruned_states, list):
        raise ValueError("classifier.pruned_states must be a list")
    for state in pruned_states:
        if not isinstance(state, str) or state not in TCP_STATES:
            raise ValueError(f"classifier.pruned_states: unknown TCP state: {state}")

    for key in ('max_overflow_examples', 'max_pair_examples'):
        value = config['classifier'][key]
        if not isinstance(value, int) or value < 0:
            raise ValueError(f"classifier.{key} must be a non-negative integer")

    # Validate report section
    if config['report'].get('color') not in COLOR_MODES:
        raise ValueError(f"report.color must be one of: {', '.join(COLOR_MODES)}")

    # Validate logging section
    if 'level' not in config['logging']:
        raise ValueError("Missing required logging config: level")
