import os

import pytest

from flightlog import report
from flightlog.report import (_table_pages, generate_flight_report, parameter_rows,
                              system_information, write_flight_report)


def test_report_is_a_pdf(overview_flight, tmp_path):
    out = write_flight_report(overview_flight, str(tmp_path / 'reports'))
    assert out == os.path.join(str(tmp_path / 'reports'),
                               '2021-03-16_10-00-00_offboard_tether_hover.pdf')
    with open(out, 'rb') as f:
        assert f.read(5) == b'%PDF-'


def test_rows(flight):
    assert system_information(flight) == [['sys_name', 'PX4'], ['ver_hw', 'PX4_FMU_V5']]
    assert parameter_rows(flight) == [['MC_ROLL_P', '6.5'], ['SYS_AUTOSTART', '4001']]


def test_long_tables_span_pages():
    rows = [[f'P{i:03d}', str(i)] for i in range(report.ROWS_PER_PAGE * 2 + 1)]
    pages = _table_pages('Parameters', rows, ['Parameter', 'Value'])
    assert len(pages) == 3
    assert pages[0].axes[0].get_title() == 'Parameters (1/3)'


def test_empty_table_still_gives_a_page():
    assert len(_table_pages('Parameters', [], ['Parameter', 'Value'])) == 1


def test_generate_uses_latest_log(monkeypatch, flight, tmp_path):
    loaded = []
    monkeypatch.setattr(report, 'latest_log_path', lambda dir_in: os.path.join(dir_in, 'day', 'last.ulg'))

    def fake_load(file_in, dir_in):
        loaded.append((file_in, dir_in))
        return flight

    monkeypatch.setattr(report, 'load_log', fake_load)
    out = generate_flight_report(dir_in='logs', out_dir=str(tmp_path))
    assert loaded == [(os.path.join('day', 'last.ulg'), 'logs')]
    assert os.path.isfile(out)


def test_generate_missing_log(tmp_path):
    with pytest.raises(FileNotFoundError):
        generate_flight_report('missing.ulg', str(tmp_path), str(tmp_path))
