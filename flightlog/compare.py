"""Plots comparing several flights, or hover metrics across groups of flights."""
import numpy as np
import seaborn as sns

from .crop import DEFAULT_SIGNAL, seconds
from .log import as_groups
from .metrics import ATT_AXES, POS_AXES, calculate_hover_metrics
from .plots import new_figure
from .quaternion import quat_to_euler

MARKERS = ['o', 'p', '^', 'D', 'v', 'h']


def _elapsed(df):
    if 't' in df.columns:
        return df['t'].to_numpy()
    t = seconds(df)
    return t - t[0] if len(t) else t


def compare_flights(flogs):
    """Overlay position and attitude of several flights against elapsed time."""
    groups, _ = as_groups(flogs)
    flights = [flog for group in groups for flog in group]
    names = [flog.identifier or flog.filename for flog in flights]

    pos_fig, pos_axes = new_figure('Position comparison', 3, sharex=True)
    att_fig, att_axes = new_figure('Attitude comparison', 3, sharex=True)
    for flog in flights:
        pos = flog['vehicle_local_position']
        for i, col in enumerate(POS_AXES):
            pos_axes[i].plot(_elapsed(pos), pos[col])
        att = flog['vehicle_attitude']
        eul = np.degrees(quat_to_euler(att[[f'q[{i}]' for i in range(4)]].to_numpy()))
        for i in range(3):
            att_axes[i].plot(_elapsed(att), eul[:, i])

    for i, label in enumerate(['North, x', 'East, y', 'Down, z']):
        pos_axes[i].set_ylabel(f'{label} (m)')
    pos_axes[2].invert_yaxis()
    for i, name in enumerate(['Roll', 'Pitch', 'Yaw']):
        att_axes[i].set_ylabel(f'{name} (deg)')
    for axes in (pos_axes, att_axes):
        axes[-1].set_xlabel('Time (s)')
        axes[-1].legend(names, loc='best')
    return [pos_fig, att_fig]


def _scatter(ax, metrics, column, group_legend, legend):
    groups = list(metrics['group'].cat.categories)
    colors = sns.color_palette(n_colors=len(groups))
    for j, group in enumerate(groups):
        rows = metrics[metrics['group'] == group]
        ax.scatter(rows['x_val'], rows[column], marker=MARKERS[j % len(MARKERS)],
                   color=colors[j], label=group_legend[j])
    if legend:
        ax.legend(loc='best')


def _format_x(ax, x_labels, x_axis_label, use_identifier):
    if use_identifier:
        ax.set_xticks(np.arange(1, len(x_labels) + 1))
        ax.set_xticklabels(x_labels)
    ax.set_xlabel(x_axis_label)


def plot_metrics3(metrics, prefix, x_axis_label, group_legend, use_identifier):
    """One panel per axis for a 3-axis metric such as rms_pos_err."""
    x_labels = list(metrics['identifier'].cat.categories)
    units = metrics.attrs.get('units', {})
    stat = prefix[:3].capitalize()
    if 'att' in prefix:
        axes_names, kind = ATT_AXES, 'angle'
    else:
        axes_names, kind = POS_AXES, 'position'
    suffix = ' error' if 'err' in prefix else ''

    fig, axes = new_figure(f'{stat} {kind}{suffix}', 3, sharex=True)
    for i, ax_name in enumerate(axes_names):
        column = f'{prefix}_{ax_name}'
        _scatter(axes[i], metrics, column, group_legend, legend=i == 0)
        values = metrics[column]
        if values.min() > 0:
            axes[i].set_ylim(0, values.max() * 1.2)
        axes[i].set_ylabel(f'{stat} {ax_name}{suffix} ({units.get(column, "")})')
        axes[i].set_xlabel('')
    _format_x(axes[-1], x_labels, x_axis_label, use_identifier)
    return fig


def plot_pwm(metrics, x_axis_label, group_legend, use_identifier):
    x_labels = list(metrics['identifier'].cat.categories)
    fig, axes = new_figure('PWM metrics', 4, sharex=True)
    for i, (column, label) in enumerate([('avg_pwm', 'Average'), ('rms_pwm', 'RMS'),
                                         ('min_pwm', 'Min'), ('max_pwm', 'Max')]):
        _scatter(axes[i], metrics, column, group_legend, legend=i == 0)
        if column != 'rms_pwm':
            axes[i].set_ylim(1000, 2000)
        axes[i].set_ylabel(f'{label} PWM (us)')
        axes[i].set_xlabel('')
    _format_x(axes[-1], x_labels, x_axis_label, use_identifier)
    return fig


def plot_hover_thrust(metrics, x_axis_label, group_legend, use_identifier):
    x_labels = list(metrics['identifier'].cat.categories)
    fig, ax = new_figure('Hover thrust')
    data = metrics.assign(thrust_pct=metrics['avg_thrust'] * 100)
    _scatter(ax, data, 'thrust_pct', group_legend, legend=True)
    ax.set_ylabel('Mean hover throttle (%)')
    ax.set_ylim(0, 100)
    _format_x(ax, x_labels, x_axis_label, use_identifier)
    return fig


def compare_groups(flogs, x_vals=None, x_axis_label: str = '', group_legend=None,
                   flight_len: float = 150.0, dt: float = 0.1, signal=DEFAULT_SIGNAL):
    """Scatter hover metrics of each group of flights against a common x-axis.

    x_vals gives one x value per flight identifier (for example the mean wind
    speed of each test); by default identifiers are used as tick labels.
    group_legend names each group in the legend. Returns the metrics table
    and the figures.
    """
    metrics = calculate_hover_metrics(flogs, flight_len, dt, signal)
    x_labels = list(metrics['identifier'].cat.categories)
    groups = list(metrics['group'].cat.categories)

    use_identifier = x_vals is None
    if use_identifier:
        x_vals = np.arange(1, len(x_labels) + 1)
    x_vals = np.asarray(x_vals, dtype=float)
    if len(x_vals) != len(x_labels):
        raise ValueError(f"Expected {len(x_labels)} x values, one per identifier, got {len(x_vals)}")
    metrics['x_val'] = x_vals[metrics['identifier'].cat.codes.to_numpy()]

    if group_legend is None:
        group_legend = groups
    if len(group_legend) != len(groups):
        raise ValueError(f"Expected {len(groups)} entries in group_legend, got {len(group_legend)}")
    group_legend = list(group_legend)

    figs = [plot_metrics3(metrics, prefix, x_axis_label, group_legend, use_identifier)
            for prefix in ('rms_pos_err', 'max_pos_err', 'rms_att_err', 'max_att_err', 'avg_att')]
    figs.append(plot_pwm(metrics, x_axis_label, group_legend, use_identifier))
    figs.append(plot_hover_thrust(metrics, x_axis_label, group_legend, use_identifier))
    return metrics, figs
