import os

import pandas as pd
import pytest

from conftest import make_flight
from flightlog import cli


@pytest.fixture
def group(monkeypatch):
    calls = []
    flogs = [make_flight(identifier='calm_01'), make_flight(identifier='wind_01', pos_x=0.3)]

    def fake_load_log_group(tags, dir_in='logs'):
        calls.append((tags, dir_in))
        return flogs

    monkeypatch.setattr(cli, 'load_log_group', fake_load_log_group)
    return calls


def test_parse_args():
    args = cli.parse_args(['metrics', 'tether', '--flight-len', '60'])
    assert args.command == 'metrics'
    assert args.tags == ['tether']
    assert args.flight_len == 60.0
    assert args.dt is None


def test_metrics_command(group, tmp_path, capsys):
    out = str(tmp_path / 'metrics.csv')
    assert cli.main(['--log-dir', 'flights', 'metrics', 'tether', '--dt', '0.5', '--output', out]) == 0

    assert group == [(['tether'], 'flights')]
    metrics = pd.read_csv(out)
    assert metrics['identifier'].tolist() == ['calm', 'wind']
    assert metrics['rms_pos_err_x'].tolist() == pytest.approx([0.1, 0.3])
    assert 'Saved metrics to' in capsys.readouterr().out


def test_compare_command_saves_figures(group, tmp_path):
    out_dir = str(tmp_path / 'figs')
    assert cli.main(['compare', 'tether', '--flight-len', '100', '--dt', '0.5',
                     '--flights', '--output-dir', out_dir]) == 0
    saved = sorted(os.listdir(out_dir))
    assert 'PWM_metrics.png' in saved
    assert 'Position_comparison.png' in saved


def test_config_file_sets_defaults(group, tmp_path):
    path = tmp_path / 'flightlog.yaml'
    path.write_text('log_dir: from_config\ndt: 0.5\n')
    assert cli.main(['--config', str(path), 'metrics', 'tether']) == 0
    assert group[-1][1] == 'from_config'


def test_export_command(monkeypatch, flight, tmp_path, capsys):
    monkeypatch.setattr(cli, 'load_log', lambda file_in, dir_in: flight)
    out_dir = str(tmp_path / 'csv')
    assert cli.main(['export', 'day/flight.ulg', '--output-dir', out_dir, '--crop', '--dt', '1']) == 0
    assert os.path.isfile(os.path.join(out_dir, 'vehicle_attitude.csv'))
    assert 'Exported 6 topics' in capsys.readouterr().out


def test_errors_are_reported(tmp_path, capsys):
    assert cli.main(['--config', str(tmp_path / 'missing.yaml'), 'report']) == 1
    assert capsys.readouterr().err.startswith('Error:')


def test_missing_log_dir(tmp_path, capsys):
    assert cli.main(['--log-dir', str(tmp_path / 'nothing'), 'report']) == 1
    assert 'No log folders' in capsys.readouterr().err
