# ABOUTME: Configuration parser for the Estimote beacon scanner
# ABOUTME: Loads and validates YAML config with scan timing and optional beacon filter
from dataclasses import dataclass, field
from typing import Dict

import yaml

DEFAULT_LOG_FILE = "./logs/estimote_ble.log"


@dataclass
class AppConfig:
    """Application configuration loaded from YAML file."""
    scan_interval_seconds: int
    scan_duration_seconds: int
    devices: Dict[str, str] = field(default_factory=dict)  # beacon identifier -> friendly name
    log_file: str = DEFAULT_LOG_FILE


def load_config(path: str) -> AppConfig:
    """
    Load and validate application configuration from YAML file.

    Beacon identifiers under `devices` are nearable ids or telemetry short
    identifiers in hex; they are normalized to lowercase.

    Args:
        path: Path to YAML config file

    Returns:
        AppConfig instance with validated configuration

    Raises:
        ValueError: If config is invalid or missing required keys
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ValueError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a YAML mapping")

    required_keys = ['scan_interval_seconds', 'scan_duration_seconds']
    missing_keys = [key for key in required_keys if key not in data]
    if missing_keys:
        raise ValueError(f"Missing required config keys: {', '.join(missing_keys)}")

    for key in required_keys:
        value = data[key]
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"'{key}' must be a positive integer")

    devices = data.get('devices') or {}
    if not isinstance(devices, dict):
        raise ValueError("'devices' must be a mapping of beacon identifiers to names")

    return AppConfig(
        scan_interval_seconds=data['scan_interval_seconds'],
        scan_duration_seconds=data['scan_duration_seconds'],
        devices={str(beacon_id).lower(): name for beacon_id, name in devices.items()},
        log_file=data.get('log_file', DEFAULT_LOG_FILE)
    )
