"""Single-flight plots: overview of all important signals, mode labels, sensors."""
import os

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns

from .actuators import actuator_matrix, rotor_labels, rotor_map_px4_to_sim
from .crop import seconds
from .log import FlightLog
from .quaternion import quat_to_euler

plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")

X_LABEL = 'Time from boot (s)'

# label, flag, colour; highest level first
MODE_LABELS = [
    ('OFFB', 'flag_control_offboard_enabled', 'r'),
    ('POS', 'flag_control_position_enabled', 'g'),
    ('ALT', 'flag_control_altitude_enabled', 'b'),
    ('MANUAL', 'flag_control_manual_enabled', 'k'),
]


def new_figure(name, nrows=1, ncols=1, **kwargs):
    fig, axes = plt.subplots(nrows, ncols, figsize=(10, 2.6 * nrows + 1.5), **kwargs)
    fig.set_label(name)
    fig.suptitle(name)
    return fig, axes


def _draw_label(ax, x, text, color):
    x0, x1 = ax.get_xlim()
    y0, y1 = ax.get_ylim()
    ax.axvline(x, linestyle='--', color=color, linewidth=0.8, label='_nolegend_')
    ax.text(x + 0.02 * (x1 - x0), y0 + 0.05 * (y1 - y0), text,
            fontsize=8, color=color, rotation=90)


def add_mode_labels(ax, mode):
    """Mark flight-mode transitions on an axis whose x is seconds since boot.

    A mode being engaged is labelled with its own name; a mode being
    disengaged is labelled with the next lower mode still engaged. Each
    transition sample is labelled once. Returns the number of labels drawn.
    """
    if mode is None or mode.empty:
        return 0
    t = seconds(mode)
    xlim, ylim = ax.get_xlim(), ax.get_ylim()
    labelled = np.zeros(len(mode), dtype=bool)

    for ii, (text, flag, color) in enumerate(MODE_LABELS):
        if flag not in mode.columns:
            continue
        change = np.diff(mode[flag].to_numpy(dtype=int))

        for idx in np.flatnonzero(change == 1):
            if not labelled[idx]:
                _draw_label(ax, t[idx], text, color)
                labelled[idx] = True

        for idx in np.flatnonzero(change == -1):
            for lower_text, lower_flag, lower_color in MODE_LABELS[ii + 1:]:
                if lower_flag not in mode.columns or labelled[idx]:
                    continue
                if mode[lower_flag].iloc[idx]:
                    _draw_label(ax, t[idx], lower_text, lower_color)
                    labelled[idx] = True
                    break

    ax.set_xlim(xlim)
    ax.set_ylim(ylim)
    return int(labelled.sum())


def _finish(axes, mode, legend=('Estimated', 'Setpoint'), invert_last=False):
    axes = np.atleast_1d(axes)
    for ax in axes:
        ax.autoscale(enable=True, axis='both', tight=True)
    if invert_last:
        axes[-1].invert_yaxis()
    for ax in axes:
        add_mode_labels(ax, mode)
    axes[-1].set_xlabel(X_LABEL)
    if legend:
        axes[-1].legend(list(legend), loc='best')


def attitude_figure(att, att_sp, mode):
    fig, axes = new_figure('Attitude', 3, sharex=True)
    eul = np.degrees(quat_to_euler(att[[f'q[{i}]' for i in range(4)]].to_numpy()))
    eul_sp = None
    if att_sp is not None and 'q_d[0]' in att_sp.columns:
        eul_sp = np.degrees(quat_to_euler(att_sp[[f'q_d[{i}]' for i in range(4)]].to_numpy()))
    for i, name in enumerate(['Roll', 'Pitch', 'Yaw']):
        axes[i].plot(seconds(att), eul[:, i])
        if eul_sp is not None:
            axes[i].plot(seconds(att_sp), eul_sp[:, i])
        axes[i].set_ylabel(f'{name} (deg)')
    _finish(axes, mode)
    return fig


def attitude_rates_figure(att, rates_sp, mode):
    fig, axes = new_figure('Attitude rates', 3, sharex=True)
    for i, name in enumerate(['Roll', 'Pitch', 'Yaw']):
        axes[i].plot(seconds(att), np.degrees(att[f'{name.lower()}speed']))
        if rates_sp is not None:
            axes[i].plot(seconds(rates_sp), np.degrees(rates_sp[name.lower()]))
        axes[i].set_ylabel(f'{name} rate (deg/s)')
    _finish(axes, mode)
    return fig


def _ned_figure(name, pos, pos_sp, mode, columns, unit):
    fig, axes = new_figure(name, 3, sharex=True)
    for i, (col, label) in enumerate(zip(columns, ['North, x', 'East, y', 'Down, z'])):
        axes[i].plot(seconds(pos), pos[col])
        if pos_sp is not None and col in pos_sp.columns:
            axes[i].plot(seconds(pos_sp), pos_sp[col])
        else:
            axes[i].plot(seconds(pos), np.full(len(pos), np.nan))
        axes[i].set_ylabel(f'{label} {unit}')
    _finish(axes, mode, invert_last=True)
    return fig


def actuator_figures(act, mode):
    pwm = actuator_matrix(act)
    n = pwm.shape[1]
    if n == 0:
        return []
    if n in (4, 8):
        pwm = rotor_map_px4_to_sim(pwm, n)
    labels = rotor_labels(n)
    colors = sns.color_palette(n_colors=max(1, (n + 1) // 2))
    t = seconds(act)

    figs = []
    for name, values, ylabel in [
            ('Actuator outputs (simulation ordering)', pwm, 'PWM signal (us)'),
            ('Actuator output diff (simulation ordering)',
             pwm - pwm.mean(axis=1, keepdims=True), 'Delta PWM from mean (us)')]:
        fig, ax = new_figure(name)
        for i in range(n):
            ax.plot(t, values[:, i], color=colors[i // 2],
                    linestyle='--' if i % 2 else '-')
        ax.set_ylabel(ylabel)
        _finish(ax, mode, legend=labels)
        figs.append(fig)
    return figs


def rc_figure(rc, mode):
    fig, ax = new_figure('RC channels')
    cols = [f'channels[{i}]' for i in range(5) if f'channels[{i}]' in rc.columns]
    for col in cols:
        ax.step(seconds(rc), rc[col], where='post')
    ax.set_ylabel('Normalised RC input (-)')
    _finish(ax, mode, legend=['1-roll', '2-pitch', '3-throttle', '4-yaw', '5-mode'][:len(cols)])
    ax.set_ylim(-1.1, 1.1)
    return fig


def manual_figure(manual, mode):
    # older firmware logs sticks as x/y/z/r
    for sticks in (['pitch', 'roll', 'throttle', 'yaw'], ['x', 'y', 'z', 'r']):
        if all(c in manual.columns for c in sticks):
            break
    else:
        sticks = []
    has_slot = 'mode_slot' in manual.columns

    fig, axes = new_figure('Manual control setpoints', 2 if has_slot else 1)
    axes = np.atleast_1d(axes)
    for col in sticks:
        axes[0].step(seconds(manual), manual[col], where='post')
    axes[0].set_ylabel('Normalised manual control (-)')
    _finish(axes[:1], mode, legend=[f'{c} stick' for c in sticks])

    if has_slot:
        slot = manual['mode_slot'].to_numpy(dtype=float)
        axes[1].step(seconds(manual), slot, where='post')
        axes[1].set_ylabel('Mode slot (-)')
        _finish(axes[1:], mode, legend=None)
        axes[1].set_ylim(np.nanmin(slot) - 0.5, np.nanmax(slot) + 0.5)
    return fig


def battery_figure(battery, mode):
    fig, axes = new_figure('Battery status', 3, sharex=True)
    t = seconds(battery)
    axes[0].step(t, battery['voltage_v'], where='post')
    axes[0].set_ylabel('Battery voltage (V)')

    axes[1].step(t, battery['current_a'], where='post')
    axes[1].set_ylabel('Current drawn (A)')
    if 'discharged_mah' in battery.columns:
        twin = axes[1].twinx()
        twin.step(t, battery['discharged_mah'] / 1000, where='post', color='tab:orange')
        twin.set_ylabel('Energy discharged (Ah)')
        twin.grid(False)

    axes[2].step(t, battery['remaining'] * 100, where='post')
    axes[2].set_ylabel('Battery remaining (%)')
    _finish(axes, mode, legend=None)
    axes[2].set_ylim(-5, 105)
    return fig


def controller_debug_figure(att_sp, mode):
    fig, axes = new_figure('Controller debug', 3, sharex=True)
    t = seconds(att_sp)
    for i, axis in enumerate(['x', 'y', 'z']):
        for prefix in ('thrust_vec_1', 'thrust_vec_2', 'hor_thrust_2'):
            col = f'{prefix}[{i}]'
            if col in att_sp.columns:
                axes[i].step(t, att_sp[col], where='post', label=prefix)
        axes[i].set_ylabel(f'{axis}-axis thrust (-)')
    _finish(axes, mode, legend=None)
    axes[0].legend(['Baseline', 'H-inf', 'H-inf hor'], loc='best')
    return fig


def flight_overview(flog: FlightLog):
    """Figures of every important signal in a flight, in NED where relevant.

    Figures are skipped when the log lacks their topic. Down positions and
    velocities are drawn with the axis reversed.
    """
    get = flog.topics.get
    mode = get('vehicle_control_mode')
    att, att_sp = get('vehicle_attitude'), get('vehicle_attitude_setpoint')
    pos, pos_sp = get('vehicle_local_position'), get('vehicle_local_position_setpoint')

    figs = []
    if att is not None:
        figs.append(attitude_figure(att, att_sp, mode))
        figs.append(attitude_rates_figure(att, get('vehicle_rates_setpoint'), mode))
    if pos is not None:
        figs.append(_ned_figure('Position', pos, pos_sp, mode, ['x', 'y', 'z'], '(m)'))
        figs.append(_ned_figure('Velocity', pos, pos_sp, mode, ['vx', 'vy', 'vz'], 'vel (m/s)'))
    if get('actuator_outputs') is not None:
        figs.extend(actuator_figures(get('actuator_outputs'), mode))
    if get('rc_channels') is not None:
        figs.append(rc_figure(get('rc_channels'), mode))
    if get('manual_control_setpoint') is not None:
        figs.append(manual_figure(get('manual_control_setpoint'), mode))
    if get('battery_status') is not None:
        figs.append(battery_figure(get('battery_status'), mode))
    if att_sp is not None and 'thrust_vec_1[0]' in att_sp.columns:
        figs.append(controller_debug_figure(att_sp, mode))
    return figs


def compare_position_sensors(flog: FlightLog):
    """EKF2 estimate against motion capture, optical flow and lidar."""
    get = flog.topics.get
    ekf2 = flog['vehicle_local_position']
    mocap = get('vehicle_vision_position')
    flow, lidar = get('optical_flow'), get('distance_sensor')

    fig2d, axes = new_figure('2-D trajectories', 3, sharex=True)
    legend = ['EKF2']
    for i, (col, label) in enumerate(zip('xyz', ['North, x', 'East, y', 'Down, z'])):
        axes[i].plot(seconds(ekf2), ekf2[col])
        if mocap is not None:
            axes[i].plot(seconds(mocap), mocap[col])
        axes[i].set_ylabel(f'{label} (m)')
    if mocap is not None:
        legend.append('Mocap')
    if flow is not None and 'ground_distance_m' in flow.columns:
        axes[2].plot(seconds(flow), -flow['ground_distance_m'])
        legend.append('PX4Flow')
    if lidar is not None:
        axes[2].plot(seconds(lidar), -lidar['current_distance'])
        legend.append('LIDAR')
    axes[2].invert_yaxis()
    axes[2].set_xlabel(X_LABEL)
    axes[2].legend(legend, loc='best')

    fig3d = plt.figure(figsize=(8, 7))
    fig3d.set_label('3-D trajectory')
    ax = fig3d.add_subplot(projection='3d')
    ax.plot(ekf2['x'], ekf2['y'], ekf2['z'], label='EKF2')
    if mocap is not None:
        ax.plot(mocap['x'], mocap['y'], mocap['z'], label='Mocap')
        ax.plot([mocap['x'].iloc[0]], [mocap['y'].iloc[0]], [mocap['z'].iloc[0]], 'ko', label='Takeoff')
    ax.set_xlabel('North, x (m)')
    ax.set_ylabel('East, y (m)')
    ax.set_zlabel('Down, z (m)')
    ax.invert_yaxis()
    ax.invert_zaxis()
    ax.legend()
    return [fig2d, fig3d]


def save_figures(figs, output_dir, dpi=150):
    """Save figures as PNGs named after their labels, then close them."""
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for fig in figs:
        name = fig.get_label().replace(' ', '_').replace('/', '-')
        path = os.path.join(output_dir, f"{name}.png")
        fig.savefig(path, dpi=dpi, bbox_inches='tight')
        plt.close(fig)
        paths.append(path)
    return paths
