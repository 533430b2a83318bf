import json

from x1library.settings import (
    DEFAULT_SETTINGS, _deep_merge, load_settings, save_settings, update_settings,
)


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / 'nope.json'))
    assert settings == DEFAULT_SETTINGS
    settings['catalog']['source'] = 'changed'
    assert DEFAULT_SETTINGS['catalog']['source'] != 'changed'


def test_partial_file_is_merged_over_defaults(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({
        'games_folder': '/games',
        'catalog': {'base_url': 'https://mirror.example.com/'},
    }))

    settings = load_settings(str(path))

    assert settings['games_folder'] == '/games'
    assert settings['catalog']['base_url'] == 'https://mirror.example.com/'
    assert settings['catalog']['source'] == DEFAULT_SETTINGS['catalog']['source']
    assert settings['display_mode'] == 'list'


def test_bad_display_mode_falls_back_to_list(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'display_mode': 'carousel'}))
    assert load_settings(str(path))['display_mode'] == 'list'


def test_corrupt_or_wrong_shape_gives_defaults(tmp_path):
    corrupt = tmp_path / 'corrupt.json'
    corrupt.write_text('{not json')
    listing = tmp_path / 'list.json'
    listing.write_text('[1, 2]')

    assert load_settings(str(corrupt)) == DEFAULT_SETTINGS
    assert load_settings(str(listing)) == DEFAULT_SETTINGS


def test_save_then_update(tmp_path):
    path = str(tmp_path / 'nested' / 'settings.json')
    settings = load_settings(path)
    settings['box_art_lookup'] = False
    save_settings(settings, path)

    updated = update_settings(path, dvd_path='/games/Halo 2.iso')

    assert updated['box_art_lookup'] is False
    assert load_settings(path)['dvd_path'] == '/games/Halo 2.iso'


def test_deep_merge_keeps_base_untouched():
    base = {'a': {'b': 1, 'c': 2}, 'd': 3}
    merged = _deep_merge(base, {'a': {'b': 5}, 'e': 6})
    assert merged == {'a': {'b': 5, 'c': 2}, 'd': 3, 'e': 6}
    assert base == {'a': {'b': 1, 'c': 2}, 'd': 3}
