"""Post-flight analysis of PX4 ulog files."""
from .crop import crop_log, crop_log_group, crop_window
from .errors import ConfigError, ModeTransitionError, NoNewLogsError
from .log import FlightLog, load_latest_log, load_log, load_log_group, load_saved_group
from .metrics import METRIC_UNITS, calculate_hover_metrics

__all__ = [
    "FlightLog",
    "load_log",
    "load_latest_log",
    "load_log_group",
    "load_saved_group",
    "crop_log",
    "crop_log_group",
    "crop_window",
    "calculate_hover_metrics",
    "METRIC_UNITS",
    "ConfigError",
    "ModeTransitionError",
    "NoNewLogsError",
]
