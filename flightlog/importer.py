"""Copy logs off an SD card into logs/<date>/<date>_<time>_<mode>.ulg."""
import glob
import logging
import os
import shutil

import numpy as np
import pandas as pd
from pyulog import ULog

from .errors import NoNewLogsError

logger = logging.getLogger(__name__)

# highest level first
MODE_FLAGS = [
    ('offboard', 'flag_control_offboard_enabled'),
    ('posctl', 'flag_control_position_enabled'),
    ('altctl', 'flag_control_altitude_enabled'),
]


def safe_get(ulog: ULog, name: str):
    """Return .data for the first dataset with this name, or None."""
    try:
        return ulog.get_dataset(name).data
    except (KeyError, IndexError):
        return None


def flight_mode_tag(path: str) -> str:
    """Highest-level control mode used during the flight."""
    status = safe_get(ULog(path, ['vehicle_control_mode']), 'vehicle_control_mode')
    if status is None:
        logger.warning("%s has no vehicle_control_mode topic", path)
        return 'manual'
    for mode, flag in MODE_FLAGS:
        if flag in status and np.any(status[flag]):
            return mode
    return 'manual'


def log_datetime(path: str, timezone: str) -> pd.Timestamp:
    """File modification time, converted from UTC to the local timezone."""
    return pd.Timestamp(os.path.getmtime(path), unit='s', tz='UTC').tz_convert(timezone)


def import_logs(drive_in: str, dest: str = 'logs', timezone: str = 'Pacific/Auckland'):
    """Copy new .ulg files from an SD card, renamed by date and flight mode.

    Returns the destination paths of the copied files.
    """
    if not os.path.isdir(drive_in):
        raise FileNotFoundError(f"Input drive {drive_in} does not exist")
    logger.info("Importing ulog files from %s", drive_in)

    to_copy = []
    planned = {}
    skipped = 0
    for src in sorted(glob.glob(os.path.join(drive_in, 'log', '*', '*.ulg'))):
        stamp = log_datetime(src, timezone)
        day = stamp.strftime('%Y-%m-%d')
        name = stamp.strftime('%Y-%m-%d_%H-%M-%S')

        if glob.glob(os.path.join(dest, day, name + '*')):
            skipped += 1
            continue
        if name in planned:
            # output names only resolve to the second
            logger.warning("Not importing %s: same timestamp %s as %s", src, name, planned[name])
            skipped += 1
            continue
        planned[name] = src
        out = os.path.join(dest, day, f"{name}_{flight_mode_tag(src)}.ulg")
        to_copy.append((src, out))

    if skipped:
        logger.info("Skipped %d existing files", skipped)
    if not to_copy:
        raise NoNewLogsError("No new files on SD card")
    logger.info("Detected %d new files", len(to_copy))

    copied = []
    for src, out in to_copy:
        os.makedirs(os.path.dirname(out), exist_ok=True)
        if os.path.exists(out):
            continue
        shutil.copy2(src, out)
        copied.append(out)

    logger.info("Copied %d new files", len(copied))
    return copied
