import json

import pytest

from x1library import cli


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, 'setup_runtime_monitor', lambda **kwargs: None)

    games = tmp_path / 'games'
    (games / 'Halo').mkdir(parents=True)
    (games / 'Halo' / 'Halo 2.iso').write_bytes(b'halo')
    (games / 'Fable.cso').write_bytes(b'fable')

    catalog = tmp_path / 'X1_Covers.txt'
    catalog.write_text("Halo 2.png\nFable (USA).png\nreadme.md\n", encoding='utf-8')

    settings = tmp_path / 'settings.json'
    settings.write_text(json.dumps({'staging_dir': str(tmp_path / 'stage')}))

    base = ['--settings', str(settings), '--catalog', str(catalog)]
    return {'games': games, 'settings': settings, 'base': base}


def test_no_folder_prints_help(env, capsys):
    assert cli.run_cli(env['base']) == 1
    assert '--folder is required' in capsys.readouterr().out


def test_missing_folder_is_an_error(env, tmp_path, capsys):
    assert cli.run_cli(env['base'] + ['--folder', str(tmp_path / 'nowhere')]) == 1
    assert 'folder not found' in capsys.readouterr().err


def test_lookup_without_folder(env, capsys):
    code = cli.run_cli(env['base'] + ['--json', '--lookup', 'Halo 2 (USA)', '--lookup', 'Zzz'])
    assert code == 0
    result = json.loads(capsys.readouterr().out)
    assert result['Halo 2 (USA)'].endswith('/Halo%202.png')
    assert result['Zzz'] is None


def test_lookup_with_folder_prints_one_json_document(env, capsys):
    code = cli.run_cli(env['base'] + ['--folder', str(env['games']), '--lookup', 'Fable', '--json'])
    assert code == 0
    result = json.loads(capsys.readouterr().out)
    assert list(result) == ['Fable']
    assert result['Fable'].endswith('/Fable%20%28USA%29.png')
    # the folder is still remembered
    assert json.loads(env['settings'].read_text())['games_folder'] == str(env['games'])


def test_lists_games_as_json_with_covers(env, capsys):
    code = cli.run_cli(env['base'] + ['--folder', str(env['games']), '--json', '--covers'])
    assert code == 0

    games = json.loads(capsys.readouterr().out)
    assert [g['relative_path'] for g in games] == ['Fable.cso', 'Halo/Halo 2.iso']
    assert games[1]['cover_url'].endswith('/Halo%202.png')

    # folder is remembered for the next run
    saved = json.loads(env['settings'].read_text())
    assert saved['games_folder'] == str(env['games'])


def test_text_listing(env, capsys):
    assert cli.run_cli(env['base'] + ['--folder', str(env['games'])]) == 0
    out = capsys.readouterr().out
    assert 'Found 2 games' in out
    assert 'Halo/Halo 2.iso' in out


def test_select_unknown_game(env, capsys):
    code = cli.run_cli(env['base'] + ['--folder', str(env['games']), '--select', 'Nope.iso'])
    assert code == 1
    assert 'not in library' in capsys.readouterr().err


def test_select_game(env):
    code = cli.run_cli(env['base'] + ['-q', '--folder', str(env['games']), '--select', 'Halo/Halo 2.iso'])
    assert code == 0
    saved = json.loads(env['settings'].read_text())
    assert saved['dvd_path'].endswith('Halo 2.iso')


def test_convert_without_converter(env, tmp_path, capsys):
    missing = str(tmp_path / 'no-extract-xiso')
    code = cli.run_cli(env['base'] + [
        '--folder', str(env['games']), '--converter', missing, '--convert', 'Halo/Halo 2.iso',
    ])
    assert code == 1
    assert 'not available' in capsys.readouterr().err
    assert not (env['games'] / 'Halo' / 'Halo 2.xiso.iso').exists()


def test_convert_refuses_existing_output(env, capsys):
    (env['games'] / 'Halo' / 'Halo 2.xiso.iso').write_bytes(b'done already')
    code = cli.run_cli(env['base'] + ['--folder', str(env['games']), '--convert', 'Halo/Halo 2.iso'])
    assert code == 1
    assert 'use --overwrite' in capsys.readouterr().err
    assert (env['games'] / 'Halo' / 'Halo 2.xiso.iso').read_bytes() == b'done already'
