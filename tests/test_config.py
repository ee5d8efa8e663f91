# ABOUTME: Unit tests for configuration loading and validation
# ABOUTME: Tests YAML parsing, required key validation, and default value handling
import pytest

from estimote_ble.config import load_config, AppConfig


def test_load_valid_config(tmp_path):
    """Test successful loading of a valid configuration file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: 30
scan_duration_seconds: 5
log_file: "./logs/estimote.log"
devices:
  "d1a2b3c4d5e6f708": "fridge"
  "0102030405060708": "front_door"
""")

    config = load_config(str(config_file))

    assert config.scan_interval_seconds == 30
    assert config.scan_duration_seconds == 5
    assert config.log_file == "./logs/estimote.log"
    assert config.devices == {
        "d1a2b3c4d5e6f708": "fridge",
        "0102030405060708": "front_door"
    }


def test_load_config_with_defaults(tmp_path):
    """Test that log_file and devices get defaults when not specified."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: 30
scan_duration_seconds: 5
""")

    config = load_config(str(config_file))

    assert config.log_file == "./logs/estimote_ble.log"
    assert config.devices == {}


def test_device_identifiers_are_lowercased(tmp_path):
    """Test that beacon identifiers match the decoders' lowercase hex."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: 30
scan_duration_seconds: 5
devices:
  "D1A2B3C4D5E6F708": "fridge"
""")

    config = load_config(str(config_file))

    assert config.devices == {"d1a2b3c4d5e6f708": "fridge"}


def test_empty_devices_section(tmp_path):
    """Test that an empty devices key means no filter."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: 30
scan_duration_seconds: 5
devices:
""")

    config = load_config(str(config_file))

    assert config.devices == {}


def test_missing_required_key_raises_error(tmp_path):
    """Test that missing required keys trigger ValueError."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: 30
devices:
  "d1a2b3c4d5e6f708": "fridge"
""")

    with pytest.raises(ValueError, match="Missing required config keys.*scan_duration_seconds"):
        load_config(str(config_file))


def test_non_positive_duration_raises_error(tmp_path):
    """Test that scan timings must be positive integers."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: 30
scan_duration_seconds: 0
""")

    with pytest.raises(ValueError, match="'scan_duration_seconds' must be a positive integer"):
        load_config(str(config_file))


def test_non_integer_interval_raises_error(tmp_path):
    """Test that scan timings must be integers."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: "thirty"
scan_duration_seconds: 5
""")

    with pytest.raises(ValueError, match="'scan_interval_seconds' must be a positive integer"):
        load_config(str(config_file))


def test_invalid_yaml_raises_error(tmp_path):
    """Test that invalid YAML syntax raises ValueError."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
    invalid: yaml: syntax: here
    [broken
    """)

    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config(str(config_file))


def test_non_mapping_yaml_raises_error(tmp_path):
    """Test that a YAML list at the top level is rejected."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- one\n- two\n")

    with pytest.raises(ValueError, match="must contain a YAML mapping"):
        load_config(str(config_file))


def test_nonexistent_file_raises_error(tmp_path):
    """Test that missing config file raises ValueError."""
    nonexistent = tmp_path / "doesnotexist.yaml"

    with pytest.raises(ValueError, match="Config file not found"):
        load_config(str(nonexistent))


def test_devices_must_be_dict(tmp_path):
    """Test that devices must be a dictionary mapping."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
scan_interval_seconds: 30
scan_duration_seconds: 5
devices:
  - "d1a2b3c4d5e6f708"
  - "0102030405060708"
""")

    with pytest.raises(ValueError, match="'devices' must be a mapping"):
        load_config(str(config_file))


def test_app_config_defaults():
    """Test AppConfig defaults when built directly."""
    config = AppConfig(scan_interval_seconds=30, scan_duration_seconds=5)

    assert config.devices == {}
    assert config.log_file == "./logs/estimote_ble.log"
