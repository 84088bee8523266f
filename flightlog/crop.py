"""Cropping and resampling flight logs to a common time window."""
import logging
import math

import numpy as np
import pandas as pd
from scipy.interpolate import interp1d

from .errors import ModeTransitionError
from .log import FlightLog, as_groups, restore_shape
from .quaternion import resample_quaternion

logger = logging.getLogger(__name__)

DEFAULT_SIGNAL = ('vehicle_control_mode', 'flag_control_offboard_enabled')

# fields holding [w, x, y, z] quaternions, flattened by pyulog to name[0..3]
QUATERNION_FIELDS = ('q', 'q_d', 'delta_q_reset')


def seconds(df: pd.DataFrame) -> np.ndarray:
    return df.index.total_seconds().to_numpy()


def quaternion_columns(df: pd.DataFrame):
    """{field: [col0..col3]} for quaternion fields present in df."""
    found = {}
    for name in QUATERNION_FIELDS:
        cols = [f'{name}[{i}]' for i in range(4)]
        if all(c in df.columns for c in cols):
            found[name] = cols
    return found


def last_transition_time(mode: pd.DataFrame, field: str) -> float:
    """Time (s) of the last sample before the final change of a mode signal.

    The signal is thresholded halfway between its extremes, so flags and
    multi-level signals are treated alike.
    """
    values = mode[field].to_numpy(dtype=float)
    if len(values) == 0:
        raise ModeTransitionError(f"Signal {field} is empty")
    threshold = values.min() + 0.5 * (values.max() - values.min())
    changes = np.flatnonzero(np.diff(values > threshold))
    if len(changes) == 0:
        raise ModeTransitionError(f"Signal {field} never changes state")
    return float(seconds(mode)[changes[-1]])


def last_engaged_time(mode: pd.DataFrame, field: str) -> float:
    """Time (s) of the last sample where a mode signal is engaged.

    Engaged means above the halfway threshold, or non-zero for a signal that
    never changes.
    """
    values = mode[field].to_numpy(dtype=float)
    if len(values) == 0:
        raise ModeTransitionError(f"Signal {field} is empty")
    if values.max() > values.min():
        engaged = values > values.min() + 0.5 * (values.max() - values.min())
    else:
        engaged = values != 0
    idx = np.flatnonzero(engaged)
    if len(idx) == 0:
        raise ModeTransitionError(f"Signal {field} is never engaged")
    return float(seconds(mode)[idx[-1]])


def crop_window(flog: FlightLog, flight_len: float = 150.0, signal=DEFAULT_SIGNAL):
    """Start and end (s since boot) of the window to keep.

    With a positive flight_len the window is the flight_len seconds ending at
    the last change of the signal; otherwise it is the span covered by every
    topic.
    """
    if flight_len > 0:
        topic, field = signal
        if topic not in flog or field not in flog[topic].columns:
            raise KeyError(f"{flog.filename}: no {topic}.{field} signal to crop on")
        t_end = last_transition_time(flog[topic], field)
        return t_end - flight_len, t_end

    t_start, t_end = -math.inf, math.inf
    for df in flog.topics.values():
        if df.empty:
            continue
        t = seconds(df)
        t_start = max(t_start, t[0])
        t_end = min(t_end, t[-1])
    return t_start, t_end


def resample_grid(t_start: float, t_end: float, dt: float) -> np.ndarray:
    """Timestamps on whole multiples of dt inside [t_start, t_end]."""
    k = np.arange(math.ceil(t_start / dt - 1e-9), math.floor(t_end / dt + 1e-9) + 1)
    return k * dt


def _interpolate(t, values, t_new, kind):
    if len(t) == 0:
        return np.full((len(t_new),) + values.shape[1:], np.nan)
    if len(t) == 1:
        return np.repeat(values[:1], len(t_new), axis=0)
    f = interp1d(t, values, kind=kind, axis=0, bounds_error=False,
                 fill_value='extrapolate', assume_sorted=True)
    return f(t_new)


def resample_topic(df: pd.DataFrame, t_new: np.ndarray) -> pd.DataFrame:
    """Resample one topic onto t_new (s since boot).

    Flags take the nearest sample, quaternions are slerped and every other
    column is linearly interpolated.
    """
    df = df[~df.index.duplicated(keep='last')].sort_index()
    t = seconds(df)

    quats = quaternion_columns(df)
    quat_cols = [c for cols in quats.values() for c in cols]
    flag_cols = [c for c in df.columns if df[c].dtype == bool]
    other_cols = [c for c in df.columns
                  if c not in quat_cols and c not in flag_cols
                  and pd.api.types.is_numeric_dtype(df[c])]

    out = {}
    if flag_cols and len(t) == 0:
        # nothing to take the nearest sample of
        for c in flag_cols:
            out[c] = pd.array([pd.NA] * len(t_new), dtype='boolean')
    elif flag_cols:
        flags = _interpolate(t, df[flag_cols].to_numpy(dtype=float), t_new, 'nearest')
        for i, c in enumerate(flag_cols):
            out[c] = flags[:, i] > 0.5
    for cols in quats.values():
        q = resample_quaternion(t, df[cols].to_numpy(dtype=float), t_new)
        for i, c in enumerate(cols):
            out[c] = q[:, i]
    if other_cols:
        values = _interpolate(t, df[other_cols].to_numpy(dtype=float), t_new, 'linear')
        for i, c in enumerate(other_cols):
            out[c] = values[:, i]

    columns = [c for c in df.columns if c in out]
    return pd.DataFrame(out, columns=columns,
                        index=pd.TimedeltaIndex(pd.to_timedelta(t_new, unit='s'), name='timestamp'))


def crop_log(flog: FlightLog, flight_len: float = 150.0, dt: float = -1.0,
             signal=DEFAULT_SIGNAL) -> FlightLog:
    t_start, t_end = crop_window(flog, flight_len, signal)
    return crop_between(flog, t_start, t_end, dt)


def crop_between(flog: FlightLog, t_start: float, t_end: float, dt: float = -1.0) -> FlightLog:
    """Crop every topic to [t_start, t_end] (s since boot), resampling if dt > 0."""
    if t_end < t_start:
        logger.warning("%s: topics do not overlap, cropped log will be empty", flog.filename)

    if dt > 0:
        t_new = resample_grid(t_start, t_end, dt)
        offset = pd.to_timedelta(t_new[0] if len(t_new) else t_start, unit='s')
    else:
        offset = pd.to_timedelta(t_start, unit='s')
    lo, hi = pd.to_timedelta(t_start, unit='s'), pd.to_timedelta(t_end, unit='s')

    topics = {}
    for name, df in flog.topics.items():
        if dt > 0:
            cropped = resample_topic(df, t_new)
        else:
            cropped = df[(df.index >= lo) & (df.index <= hi)].copy()
        cropped.index = pd.TimedeltaIndex(cropped.index - offset, name='timestamp')
        cropped['t'] = seconds(cropped)
        topics[name] = cropped
    return flog.with_topics(topics)


def crop_log_group(flogs, flight_len: float = 150.0, dt: float = -1.0,
                   signal=DEFAULT_SIGNAL):
    """Crop a log, a group of logs, or a list of groups.

    flight_len: seconds to keep before the last change of `signal`
        (topic, field); 0 or negative keeps the span common to all topics.
    dt: resampling step in seconds; 0 or negative only crops.

    Timestamps of the output start at zero and each topic gains a `t`
    column of elapsed seconds. The output has the same shape as the input.
    """
    groups, kind = as_groups(flogs)
    cropped = [[crop_log(flog, flight_len, dt, signal) for flog in group]
               for group in groups]
    return restore_shape(cropped, kind)
