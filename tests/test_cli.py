import importlib
import json
import os
import sys

import flask
import pytest

import undercroft.logging_utils as logging_utils


@pytest.fixture()
def run_module(monkeypatch):
    if 'run' in sys.modules:
        del sys.modules['run']
    # keep stdout clean for the JSON printing commands
    monkeypatch.setattr(logging_utils, 'CURRENT_LEVEL', logging_utils.LEVELS['warn'])
    return importlib.import_module('run')


def test_version_flag_outputs_version(run_module, capsys):
    with pytest.raises(SystemExit) as exc:
        run_module.parse_args(['--version'])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert run_module.__version__ in out
    assert 'Undercroft' in out


def test_default_command_is_generate(run_module):
    ns = run_module.parse_args([])
    assert ns.command == 'generate'
    assert ns.depth == 1 and ns.seed is None


def test_generate_json(run_module, capsys):
    code = run_module.main(['generate', '--seed', 'goblin-king', '--depth', '2', '--width', '40', '--height', '28', '--json'])
    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data['depth'] == 2
    assert data['grid']['width'] == 40
    assert len(data['grid']['tiles']) == 28


def test_generate_map_without_color(run_module, capsys):
    code = run_module.main(['generate', '--seed', '5', '--width', '30', '--height', '20', '--no-color'])
    assert code == 0
    out = capsys.readouterr().out
    rows = out.splitlines()
    assert rows[0] == '#' * 30
    assert '\x1b[' not in out
    assert 'seed=5 depth=1' in out
    assert 'stairs path:' in out


def test_render_map_colours_tiles(run_module):
    text = run_module.render_map(['#<>#'], color=True)
    assert text.count(run_module.Style.RESET_ALL) == 4
    assert run_module.render_map(['#<>#'], color=False) == '#<>#'


def test_generate_rejects_bad_input(run_module, capsys):
    assert run_module.main(['generate', '--width', '10', '--height', '10']) == 2
    assert 'error:' in capsys.readouterr().err
    assert run_module.main(['generate', '--kind', 'volcano', '--width', '30', '--height', '20']) == 2


def test_diagnose_reports_clean_floors(run_module, capsys):
    code = run_module.main(['diagnose', '1', 'goblin-king', '--depths', '2', '--width', '40', '--height', '28'])
    data = json.loads(capsys.readouterr().out)
    assert code == 0
    assert len(data['results']) == 4
    for r in data['results']:
        assert r['ok'], r
        assert set(r['issues']) == {'stairs_unreachable', 'corner_cuts', 'nondeterministic', 'not_frozen'}


def test_serve_runs_the_app(monkeypatch, run_module, capsys):
    calls = {}

    def fake_run(self, host=None, port=None, debug=None, **kwargs):
        calls.update(host=host, port=port, debug=debug, blueprints=set(self.blueprints))

    monkeypatch.setattr(flask.Flask, 'run', fake_run)
    monkeypatch.setenv('PORT', '5555')
    assert run_module.main(['serve', '--host', '127.0.0.1', '--debug']) == 0
    assert calls == {'host': '127.0.0.1', 'port': 5555, 'debug': True, 'blueprints': {'floor_api'}}
    assert 'Undercroft floor API' in capsys.readouterr().out


def test_env_file_argument(run_module, tmp_path, capsys):
    env_file = tmp_path / '.env'
    env_file.write_text('UNDERCROFT_WIDTH=32\nUNDERCROFT_HEIGHT=22\n')
    try:
        code = run_module.main(['--env-file', str(env_file), 'generate', '--seed', '3', '--json'])
    finally:
        os.environ.pop('UNDERCROFT_WIDTH', None)
        os.environ.pop('UNDERCROFT_HEIGHT', None)
    assert code == 0
    grid = json.loads(capsys.readouterr().out)['grid']
    assert (grid['width'], grid['height']) == (32, 22)


def test_default_command_keeps_generate_options(run_module):
    ns = run_module.parse_args(['--seed', '5', '--depth', '2'])
    assert ns.command == 'generate'
    assert ns.seed == '5' and ns.depth == 2
    ns = run_module.parse_args(['--env-file', 'local.env', '--seed', '5'])
    assert ns.command == 'generate'
    assert ns.env_file == 'local.env' and ns.seed == '5'


def test_generate_options_without_subcommand(run_module, capsys):
    assert run_module.main(['--seed', '5', '--width', '30', '--height', '20', '--json']) == 0
    data = json.loads(capsys.readouterr().out)
    assert data['seed'] == 5 and data['depth'] == 1


def test_generate_reports_generation_failure(monkeypatch, run_module, capsys):
    import undercroft.dungeon as dungeon

    def failing_floor(*args, **kwargs):
        raise dungeon.GenerationError('no valid candidate for seed 5')

    monkeypatch.setattr(dungeon, 'Floor', failing_floor)
    assert run_module.main(['generate', '--seed', '5', '--width', '30', '--height', '20']) == 1
    assert 'generation failed:' in capsys.readouterr().err


def test_diagnose_reports_bad_sizes_as_failures(run_module, capsys):
    code = run_module.main(['diagnose', '1', '--depths', '1', '--width', '10', '--height', '10'])
    data = json.loads(capsys.readouterr().out)
    assert code == 1
    assert data['results'] == [{'seed': '1', 'depth': 1, 'ok': False, 'error': data['results'][0]['error']}]
    assert '10x10' in data['results'][0]['error']
