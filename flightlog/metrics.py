"""Hover performance metrics over the end of an offboard flight."""
import logging
import math
import re

import numpy as np
import pandas as pd

from .actuators import actuator_matrix
from .crop import DEFAULT_SIGNAL, crop_between, crop_window, last_engaged_time
from .log import FlightLog, as_groups
from .quaternion import quat_conj, quat_distance, quat_mean, quat_multiply, quat_to_euler

logger = logging.getLogger(__name__)

REQUIRED_TOPICS = ('vehicle_local_position', 'vehicle_local_position_setpoint',
                   'vehicle_attitude', 'vehicle_attitude_setpoint')
POS_AXES = ('x', 'y', 'z')
ATT_AXES = ('roll', 'pitch', 'yaw')


def _units():
    units = {'group': '', 'identifier': ''}
    for stat in ('avg', 'rms', 'max'):
        for ax in POS_AXES + ('norm',):
            units[f'{stat}_pos_err_{ax}'] = 'm'
    for name in ('avg_att', 'rms_att_err', 'max_att_err'):
        for ax in ATT_AXES:
            units[f'{name}_{ax}'] = 'deg'
    for stat in ('avg', 'rms', 'max'):
        units[f'{stat}_q_dist'] = 'deg'
    for name in ('avg_pwm', 'rms_pwm', 'min_pwm', 'max_pwm'):
        units[name] = 'us'
    units['avg_thrust'] = '-'
    units['file_name'] = ''
    return units


METRIC_UNITS = _units()


def rms(values, axis=0):
    return np.sqrt(np.mean(np.square(values), axis=axis))


def safe_get(flog: FlightLog, name: str):
    """Return the topic DataFrame, or None if the log lacks it."""
    try:
        return flog[name]
    except KeyError:
        return None


def _columns(df, prefix, n=4):
    return df[[f'{prefix}[{i}]' for i in range(n)]].to_numpy(dtype=float)


def strip_repeat_suffix(identifier: str) -> str:
    return re.sub(r'_\d{2}$', '', identifier)


def position_metrics(pos: pd.DataFrame, pos_sp: pd.DataFrame) -> dict:
    err = pos_sp[list(POS_AXES)].to_numpy(dtype=float) - pos[list(POS_AXES)].to_numpy(dtype=float)
    norm = np.sqrt(np.sum(err ** 2, axis=1))

    row = {}
    for i, ax in enumerate(POS_AXES):
        row[f'avg_pos_err_{ax}'] = float(np.mean(err[:, i]))
        row[f'rms_pos_err_{ax}'] = float(rms(err[:, i]))
        row[f'max_pos_err_{ax}'] = float(np.max(np.abs(err[:, i])))
    row['avg_pos_err_norm'] = float(np.mean(norm))
    row['rms_pos_err_norm'] = float(rms(norm))
    row['max_pos_err_norm'] = float(np.max(norm))
    return row


def attitude_metrics(att: pd.DataFrame, att_sp: pd.DataFrame) -> dict:
    q = _columns(att, 'q')
    q_des = _columns(att_sp, 'q_d')

    q_err = quat_multiply(quat_conj(q), q_des)
    att_err = np.degrees(quat_to_euler(q_err))
    q_dist = np.degrees(quat_distance(q, q_des))
    avg_att = np.degrees(quat_to_euler(quat_mean(q)))

    row = {}
    for i, ax in enumerate(ATT_AXES):
        row[f'avg_att_{ax}'] = float(avg_att[i])
    for i, ax in enumerate(ATT_AXES):
        row[f'rms_att_err_{ax}'] = float(rms(att_err[:, i]))
    for i, ax in enumerate(ATT_AXES):
        row[f'max_att_err_{ax}'] = float(np.max(np.abs(att_err[:, i])))
    row['avg_q_dist'] = float(np.mean(q_dist))
    row['rms_q_dist'] = float(rms(q_dist))
    row['max_q_dist'] = float(np.max(q_dist))
    return row


def actuator_metrics(act, att_sp) -> dict:
    row = {'avg_pwm': math.nan, 'rms_pwm': math.nan, 'min_pwm': math.nan,
           'max_pwm': math.nan, 'avg_thrust': math.nan}

    if act is not None and len(act):
        pwm = actuator_matrix(act)
        if pwm.size:
            row['avg_pwm'] = float(np.mean(pwm))
            row['rms_pwm'] = float(np.mean(rms(pwm - pwm.mean(axis=0))))
            row['min_pwm'] = float(np.min(pwm))
            row['max_pwm'] = float(np.max(pwm))

    if 'thrust_body[2]' in att_sp.columns:
        row['avg_thrust'] = float(np.mean(-att_sp['thrust_body[2]']))
    elif 'thrust' in att_sp.columns:
        row['avg_thrust'] = float(np.mean(att_sp['thrust']))
    return row


def hover_window(flog: FlightLog, flight_len: float = 150.0, signal=DEFAULT_SIGNAL):
    """Start and end (s since boot) of the window metrics are computed over.

    The window is the flight_len seconds ending at the last sample where the
    signal is engaged, so a log that ends while still in offboard is measured
    up to its end. With flight_len <= 0 it is the span covered by every topic.
    """
    if flight_len <= 0:
        return crop_window(flog, flight_len, signal)
    topic, field = signal
    if topic not in flog or field not in flog[topic].columns:
        raise KeyError(f"{flog.filename}: no {topic}.{field} signal to crop on")
    t_end = last_engaged_time(flog[topic], field)
    return t_end - flight_len, t_end


def hover_metrics(flog: FlightLog, flight_len: float = 150.0, dt: float = 0.1,
                  signal=DEFAULT_SIGNAL) -> dict:
    """Metrics for one log, over the window ending where offboard was last engaged."""
    missing = [name for name in REQUIRED_TOPICS if name not in flog]
    if missing:
        raise ValueError(f"{flog.filename}: log has no {', '.join(missing)} topic")

    names = list(REQUIRED_TOPICS)
    if 'actuator_outputs' in flog:
        names.append('actuator_outputs')
    if signal[0] in flog and flight_len > 0:
        names.append(signal[0])
    sub = flog.with_topics({name: flog[name] for name in names})
    cropped = crop_between(sub, *hover_window(sub, flight_len, signal), dt)

    pos = cropped['vehicle_local_position']
    if pos.empty:
        raise ValueError(f"{flog.filename}: no samples in the analysis window")
    logger.debug("%s: %d samples in the analysis window", flog.filename, len(pos))

    row = {'group': flog.group, 'identifier': strip_repeat_suffix(flog.identifier)}
    row.update(position_metrics(pos, cropped['vehicle_local_position_setpoint']))
    row.update(attitude_metrics(cropped['vehicle_attitude'], cropped['vehicle_attitude_setpoint']))
    row.update(actuator_metrics(safe_get(cropped, 'actuator_outputs'),
                                cropped['vehicle_attitude_setpoint']))
    row['file_name'] = flog.filename
    return row


def calculate_hover_metrics(flogs, flight_len: float = 150.0, dt: float = 0.1,
                            signal=DEFAULT_SIGNAL) -> pd.DataFrame:
    """Table of hover metrics, one row per log.

    flogs may be a single log, a group, or a list of groups. Each log is
    cropped to the flight_len seconds up to its last sample in offboard mode
    and resampled every dt seconds, so estimates and setpoints line up
    sample for sample.
    """
    groups, _ = as_groups(flogs)
    rows = [hover_metrics(flog, flight_len, dt, signal)
            for group in groups for flog in group]

    metrics = pd.DataFrame(rows, columns=list(METRIC_UNITS))
    # groups keep the order they were given in
    metrics['group'] = pd.Categorical(metrics['group'],
                                      categories=list(dict.fromkeys(metrics['group'])))
    metrics['identifier'] = metrics['identifier'].astype('category')
    metrics.attrs['units'] = dict(METRIC_UNITS)
    return metrics
