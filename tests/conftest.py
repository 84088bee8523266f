import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
import matplotlib.pyplot as plt
from types import SimpleNamespace

from flightlog.log import FlightLog, topic_frame


def frame(t, bool_fields=(), **cols):
    """Topic DataFrame sampled at times t (s)."""
    t = np.asarray(t, dtype=float)
    data = {'timestamp': np.round(t * 1e6).astype(np.int64)}
    for name, values in cols.items():
        data[name] = np.broadcast_to(np.asarray(values), t.shape).copy()
    return topic_frame(data, bool_fields)


def quat_cols(prefix, q, n):
    q = np.asarray(q, dtype=float)
    return {f'{prefix}[{i}]': np.full(n, q[i]) for i in range(4)}


def roll_quat(deg):
    half = np.radians(deg) / 2
    return [np.cos(half), np.sin(half), 0.0, 0.0]


def make_flight(offboard=(10.0, 200.0), duration=220.0, pos_x=0.1, roll_sp_deg=2.0,
                pwm=(1500, 1510, 1490, 1500), identifier='hover_01', group='tether',
                filename='logs/2021-03-16/2021-03-16_10-00-00_offboard_tether_hover.ulg'):
    """A hover flight: offboard between the given times, constant errors."""
    t_mode = np.arange(0, int(duration * 5)) / 5
    mode = frame(t_mode, bool_fields=['flag_control_offboard_enabled',
                                      'flag_control_position_enabled',
                                      'flag_control_altitude_enabled',
                                      'flag_control_manual_enabled'],
                 flag_control_offboard_enabled=(t_mode >= offboard[0]) & (t_mode < offboard[1]),
                 flag_control_position_enabled=t_mode >= 2.0,
                 flag_control_altitude_enabled=t_mode >= 2.0,
                 flag_control_manual_enabled=np.zeros(len(t_mode), dtype=bool))

    t_pos = np.arange(0, int(duration * 50)) / 50
    pos = frame(t_pos, x=pos_x, y=0.0, z=-1.0, vx=0.0, vy=0.0, vz=0.0)

    t_sp = np.arange(0, int(duration * 20)) / 20
    pos_sp = frame(t_sp, x=0.0, y=0.0, z=-1.0, vx=0.0, vy=0.0, vz=0.0)

    t_att = np.arange(0, int(duration * 100)) / 100
    att = frame(t_att, rollspeed=0.0, pitchspeed=0.0, yawspeed=0.0,
                **quat_cols('q', [1.0, 0.0, 0.0, 0.0], len(t_att)))

    t_att_sp = np.arange(0, int(duration * 50)) / 50
    att_sp = frame(t_att_sp, roll_body=np.radians(roll_sp_deg), pitch_body=0.0, yaw_body=0.0,
                   **{'thrust_body[0]': 0.0, 'thrust_body[1]': 0.0, 'thrust_body[2]': -0.5},
                   **quat_cols('q_d', roll_quat(roll_sp_deg), len(t_att_sp)))

    outputs = {f'output[{i}]': float(pwm[i]) if i < len(pwm) else 0.0 for i in range(8)}
    act = frame(t_att_sp, noutputs=len(pwm), **outputs)

    topics = {
        'vehicle_control_mode': mode,
        'vehicle_local_position': pos,
        'vehicle_local_position_setpoint': pos_sp,
        'vehicle_attitude': att,
        'vehicle_attitude_setpoint': att_sp,
        'actuator_outputs': act,
    }
    return FlightLog(topics=topics, filename=filename, identifier=identifier, group=group,
                     info={'ver_hw': 'PX4_FMU_V5', 'sys_name': 'PX4'},
                     parameters={'MC_ROLL_P': 6.5, 'SYS_AUTOSTART': 4001})


def add_overview_topics(flog, duration=220.0):
    t = np.arange(0, int(duration * 10)) / 10
    flog.topics['vehicle_rates_setpoint'] = frame(t, roll=0.0, pitch=0.0, yaw=0.0)
    flog.topics['rc_channels'] = frame(t, **{f'channels[{i}]': 0.0 for i in range(8)})
    flog.topics['manual_control_setpoint'] = frame(
        t, roll=0.0, pitch=0.0, throttle=0.5, yaw=0.0, mode_slot=np.ones(len(t), dtype=np.int8))
    flog.topics['battery_status'] = frame(
        t, voltage_v=16.0 - t / 100, current_a=12.0, discharged_mah=t * 3, remaining=1 - t / 500)
    return flog


class FakeULog:
    """Stand-in for pyulog.ULog built from {topic: {field: array}}."""

    def __init__(self, topics, info=None, parameters=None, bool_fields=()):
        self.data_list = []
        for name, data in topics.items():
            fields = [SimpleNamespace(field_name=k, type_str='bool' if k in bool_fields else 'float')
                      for k in data if k != 'timestamp']
            self.data_list.append(SimpleNamespace(name=name, multi_id=0, data=data, field_data=fields))
        self.msg_info_dict = info or {}
        self.initial_parameters = parameters or {}

    def get_dataset(self, name, multi_instance=0):
        return [d for d in self.data_list if d.name == name and d.multi_id == multi_instance][0]


@pytest.fixture
def flight():
    return make_flight()


@pytest.fixture
def flight_factory():
    return make_flight


@pytest.fixture
def overview_flight():
    return add_overview_topics(make_flight())


@pytest.fixture
def fake_ulog_data():
    t = np.arange(0, 10) * 100000
    return {
        'vehicle_control_mode': {
            'timestamp': t,
            'flag_control_offboard_enabled': np.array([0, 0, 1, 1, 1, 1, 1, 0, 0, 0], dtype=np.uint8),
            'flag_control_position_enabled': np.ones(10, dtype=np.uint8),
        },
        'vehicle_local_position': {
            'timestamp': t + 5000,
            'x': np.linspace(0, 1, 10),
            'y': np.zeros(10),
            'z': -np.ones(10),
        },
    }


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')
