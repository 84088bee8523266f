import numpy as np
import pandas as pd
import pytest

from conftest import frame, make_flight
from flightlog.errors import ModeTransitionError
from flightlog.metrics import (METRIC_UNITS, actuator_metrics, calculate_hover_metrics,
                               hover_metrics, hover_window, position_metrics,
                               strip_repeat_suffix)


def test_units_cover_every_column(flight):
    metrics = calculate_hover_metrics(flight)
    assert list(metrics.columns) == list(METRIC_UNITS)
    assert metrics.attrs['units']['rms_pos_err_x'] == 'm'
    assert metrics.attrs['units']['max_att_err_yaw'] == 'deg'
    assert metrics.attrs['units']['min_pwm'] == 'us'


def test_hover_metrics_of_constant_errors(flight):
    row = hover_metrics(flight, 150.0, 0.1)

    # setpoint minus estimate
    assert row['avg_pos_err_x'] == pytest.approx(-0.1)
    assert row['rms_pos_err_x'] == pytest.approx(0.1)
    assert row['max_pos_err_x'] == pytest.approx(0.1)
    assert row['rms_pos_err_z'] == pytest.approx(0.0, abs=1e-12)
    assert row['max_pos_err_norm'] == pytest.approx(0.1)

    assert row['rms_att_err_roll'] == pytest.approx(2.0)
    assert row['max_att_err_roll'] == pytest.approx(2.0)
    assert row['rms_att_err_yaw'] == pytest.approx(0.0, abs=1e-9)
    assert row['avg_q_dist'] == pytest.approx(2.0, rel=1e-6)
    assert row['avg_att_roll'] == pytest.approx(0.0, abs=1e-9)


def test_hover_metrics_actuators(flight):
    row = hover_metrics(flight, 150.0, 0.1)
    assert row['avg_pwm'] == pytest.approx(1500.0)
    assert row['min_pwm'] == pytest.approx(1490.0)
    assert row['max_pwm'] == pytest.approx(1510.0)
    assert row['rms_pwm'] == pytest.approx(0.0, abs=1e-9)
    assert row['avg_thrust'] == pytest.approx(0.5)


def test_identifier_loses_repeat_suffix(flight):
    row = hover_metrics(flight)
    assert row['identifier'] == 'hover'
    assert row['group'] == 'tether'
    assert row['file_name'] == flight.filename


def test_strip_repeat_suffix():
    assert strip_repeat_suffix('wind5_03') == 'wind5'
    assert strip_repeat_suffix('wind5') == 'wind5'
    assert strip_repeat_suffix('a_1') == 'a_1'


def test_error_only_counts_window(flight_factory):
    flog = flight_factory()
    pos = flog['vehicle_local_position']
    t = pos.index.total_seconds().to_numpy()
    # large error well before the analysis window starts
    flog.topics['vehicle_local_position'] = pos.assign(x=np.where(t < 30, 5.0, 0.1))
    row = hover_metrics(flog, 150.0, 0.1)
    assert row['max_pos_err_x'] == pytest.approx(0.1)


def test_missing_topic_raises(flight):
    del flight.topics['vehicle_attitude_setpoint']
    with pytest.raises(ValueError, match='vehicle_attitude_setpoint'):
        hover_metrics(flight)


def test_without_actuator_outputs_pwm_is_nan(flight):
    del flight.topics['actuator_outputs']
    row = hover_metrics(flight)
    assert np.isnan(row['avg_pwm'])
    assert row['avg_thrust'] == pytest.approx(0.5)


def test_actuator_metrics_rms_is_deviation_from_rotor_mean():
    t = np.arange(4.0)
    act = frame(t, noutputs=2, **{'output[0]': [1400, 1600, 1400, 1600],
                                  'output[1]': 1500.0, 'output[2]': 900.0})
    att_sp = frame(t, thrust=0.4)
    row = actuator_metrics(act, att_sp)
    assert row['rms_pwm'] == pytest.approx(50.0)
    assert row['min_pwm'] == 1400
    assert row['avg_thrust'] == pytest.approx(0.4)


def test_position_metrics_norm():
    t = np.arange(3.0)
    pos = frame(t, x=0.0, y=0.0, z=0.0)
    pos_sp = frame(t, x=3.0, y=4.0, z=0.0)
    row = position_metrics(pos, pos_sp)
    assert row['avg_pos_err_norm'] == pytest.approx(5.0)


def test_metrics_table_over_groups():
    groups = [[make_flight(identifier='a_01', group='g1'), make_flight(identifier='b_01', group='g1')],
              [make_flight(identifier='a_01', group='g2', pos_x=0.2)]]
    metrics = calculate_hover_metrics(groups, 100.0, 0.5)

    assert len(metrics) == 3
    assert isinstance(metrics['group'].dtype, pd.CategoricalDtype)
    assert list(metrics['identifier'].cat.categories) == ['a', 'b']
    assert list(metrics['group'].cat.categories) == ['g1', 'g2']
    assert metrics.loc[2, 'rms_pos_err_x'] == pytest.approx(0.2)


def test_offboard_still_engaged_at_end_of_log(flight_factory):
    flog = flight_factory(offboard=(10.0, 1e9))
    pos = flog['vehicle_local_position']
    t = pos.index.total_seconds().to_numpy()
    flog.topics['vehicle_local_position'] = pos.assign(x=np.where(t < 10, 0.0, 0.3))

    assert hover_window(flog, 150.0) == pytest.approx((69.8, 219.8))
    row = hover_metrics(flog, 150.0, 0.1)
    assert row['max_pos_err_x'] == pytest.approx(0.3)
    assert row['avg_pos_err_x'] == pytest.approx(-0.3)


def test_offboard_engaged_for_whole_log(flight_factory):
    flog = flight_factory(offboard=(0.0, 1e9))
    assert hover_window(flog, 150.0)[1] == pytest.approx(219.8)
    assert hover_metrics(flog, 150.0, 0.1)['rms_pos_err_x'] == pytest.approx(0.1)


def test_offboard_never_engaged_raises(flight_factory):
    with pytest.raises(ModeTransitionError):
        hover_metrics(flight_factory(offboard=(1e9, 1e9)))


def test_missing_mode_signal_raises(flight):
    del flight.topics['vehicle_control_mode']
    with pytest.raises(KeyError):
        hover_metrics(flight)
