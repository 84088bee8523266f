"""Settings shared by the command-line tools, optionally read from YAML."""
import os

import yaml

from .errors import ConfigError

DEFAULTS = {
    "log_dir": "logs",
    "report_dir": "reports",
    "timezone": "Pacific/Auckland",
    "flight_len": 150.0,
    "dt": 0.1,
    "mode_topic": "vehicle_control_mode",
    "mode_field": "flag_control_offboard_enabled",
    "log_level": "INFO",
}


def load_config(path: str = None) -> dict:
    """Defaults overlaid with the mapping in a YAML file, if one is given."""
    config = dict(DEFAULTS)
    if not path:
        return config
    if not os.path.isfile(path):
        raise ConfigError(f"Config file {path} does not exist")

    with open(path, 'r') as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {path}: {e}") from e
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path} must hold a mapping of settings")

    unknown = sorted(set(loaded) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")
    for key in ("flight_len", "dt"):
        if key in loaded:
            try:
                loaded[key] = float(loaded[key])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{key} must be a number, got {loaded[key]!r}") from e
    config.update(loaded)
    return config


def signal(config: dict):
    return config["mode_topic"], config["mode_field"]
