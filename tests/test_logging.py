import json
import pytest
from dbhandle import DatabaseHandle, HandleError
from dbhandle import logging_util


def _events(err):
    return [json.loads(line) for line in err.splitlines() if line.startswith('{')]


def test_log_line_is_json(monkeypatch, capsys):
    monkeypatch.setenv('DBHANDLE_LOG_LEVEL', 'INFO')
    logging_util.info('sample_event', path='x.db', count=2)
    (rec,) = _events(capsys.readouterr().err)
    assert rec['event'] == 'sample_event'
    assert rec['level'] == 'INFO'
    assert rec['logger'] == 'dbhandle'
    assert rec['count'] == 2


def test_level_threshold(monkeypatch, capsys):
    monkeypatch.setenv('DBHANDLE_LOG_LEVEL', 'ERROR')
    logging_util.warn('hidden')
    logging_util.error('shown')
    assert [e['event'] for e in _events(capsys.readouterr().err)] == ['shown']


def test_falls_back_to_log_level(monkeypatch, capsys):
    monkeypatch.delenv('DBHANDLE_LOG_LEVEL', raising=False)
    monkeypatch.setenv('LOG_LEVEL', 'WARN')
    logging_util.info('hidden')
    logging_util.warn('shown')
    assert [e['event'] for e in _events(capsys.readouterr().err)] == ['shown']


def test_lifecycle_events(created_db, props, config, monkeypatch, capsys):
    monkeypatch.setenv('DBHANDLE_LOG_LEVEL', 'INFO')
    capsys.readouterr()
    h = DatabaseHandle(created_db, props, config=config)
    h.open()
    h.close()
    bad = DatabaseHandle(created_db, {'applicationName': 'Y', 'databaseVersion': '1'}, config=config)
    with pytest.raises(HandleError):
        bad.open()
    events = _events(capsys.readouterr().err)
    names = [e['event'] for e in events]
    assert names[:2] == ['database_opened', 'database_closed']
    mismatch = [e for e in events if e['event'] == 'compatibility_mismatch']
    assert mismatch and mismatch[0]['reason'] == 'value' and mismatch[0]['key'] == 'applicationName'
