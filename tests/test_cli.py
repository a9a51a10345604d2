import json, sys, subprocess, pathlib
from dbhandle.cli import main, EXIT_CODES
from dbhandle import ErrorKind

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
PROPS = ['--prop', 'applicationName=X', '--prop', 'databaseVersion=1']


def _out(capsys):
    return json.loads(capsys.readouterr().out)


def test_create_check_props(tmp_path, capsys):
    db = tmp_path / 'cli.db'
    schema = tmp_path / 'schema.sql'
    schema.write_text("CREATE TABLE t(id INTEGER PRIMARY KEY, name TEXT);", encoding='utf-8')

    assert main(['create', str(db), '--schema', str(schema), *PROPS]) == 0
    out = _out(capsys)
    assert out['success'] and out['properties'] == {'applicationName': 'X', 'databaseVersion': '1'}

    assert main(['check', str(db), *PROPS]) == 0
    assert _out(capsys)['valid'] is True

    assert main(['props', str(db)]) == 0
    assert _out(capsys)['properties']['databaseVersion'] == '1'


def test_exit_codes_follow_error_kind(tmp_path, capsys):
    db = tmp_path / 'cli.db'
    assert main(['check', str(db), *PROPS]) == EXIT_CODES[ErrorKind.FILE_NOT_EXISTS]
    assert _out(capsys)['kind'] == 'file_not_exists'

    assert main(['create', str(db), *PROPS]) == 0
    capsys.readouterr()
    assert main(['create', str(db), *PROPS]) == EXIT_CODES[ErrorKind.FILE_ALREADY_EXISTS]
    capsys.readouterr()

    rc = main(['check', str(db), '--prop', 'applicationName=X', '--prop', 'databaseVersion=2'])
    assert rc == EXIT_CODES[ErrorKind.FILE_NOT_VALID_APP_DATABASE]
    assert _out(capsys)['success'] is False


def test_bad_prop_is_usage_error(tmp_path):
    try:
        main(['check', str(tmp_path / 'x.db'), '--prop', 'novalue'])
    except SystemExit as e:
        assert e.code == 2
    else:
        raise AssertionError('expected usage error')


def test_health_via_module(tmp_path):
    db = tmp_path / 'health.db'
    assert main(['create', str(db), *PROPS]) == 0
    proc = subprocess.run([sys.executable, '-m', 'dbhandle.cli', 'health', str(db), *PROPS],
                          capture_output=True, text=True, cwd=PROJECT_ROOT)
    assert proc.returncode == 0, proc.stderr
    data = json.loads(proc.stdout)
    assert data['health_check']['ok'] is True
    assert data['health_check']['read_only'] is True
