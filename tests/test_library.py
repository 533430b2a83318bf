import json
import os
import threading

import pytest

from x1library.catalog import CoverCatalogIndex
from x1library.converter import FunctionConverter
from x1library.library import LibraryService
from x1library.models import JobState
from x1library.settings import load_settings
from x1library.shared_config import DISPLAY_MODE_IDS

BASE = "https://covers.example.com/"
CATALOG = ["Halo 2.png", "Fable (USA).png"]


def _fake_xiso(input_path, output_path):
    with open(input_path, 'rb') as src, open(output_path, 'wb') as dst:
        dst.write(b'XISO' + src.read())


@pytest.fixture
def games_dir(tmp_path):
    root = tmp_path / 'games'
    (root / 'Halo').mkdir(parents=True)
    (root / 'Halo' / 'Halo 2.iso').write_bytes(b'halo')
    (root / 'Fable.cso').write_bytes(b'fable')
    (root / 'readme.txt').write_text('not a game')
    return root


@pytest.fixture
def service(tmp_path):
    settings_path = str(tmp_path / 'settings.json')
    settings = load_settings(settings_path)
    settings['staging_dir'] = str(tmp_path / 'stage')
    return LibraryService(
        settings=settings,
        settings_path=settings_path,
        converter=FunctionConverter(_fake_xiso),
        index=CoverCatalogIndex(base_url=BASE, lines=CATALOG),
    )


def _saved(service):
    with open(service.settings_path, encoding='utf-8') as f:
        return json.load(f)


def test_no_folder_means_no_games(service):
    loaded = []
    assert service.root is None
    assert service.load_games(loaded.append) is None
    assert loaded == [[]]
    assert service.refresh() == []
    assert service.orchestrator is None
    assert not service.can_convert()


def test_set_folder_persists_and_scans(service, games_dir):
    service.set_folder(str(games_dir))

    assert _saved(service)['games_folder'] == str(games_dir)
    games = service.refresh()
    assert [g.relative_path for g in games] == ['Fable.cso', 'Halo/Halo 2.iso']


def test_load_games_in_background(service, games_dir):
    service.set_folder(str(games_dir))
    done = threading.Event()
    loaded = []

    def _on_loaded(records):
        loaded.append(records)
        done.set()

    worker = service.load_games(_on_loaded)
    worker.join(5)

    assert done.is_set()
    assert [g.title for g in loaded[0]] == ['Fable', 'Halo 2']
    assert service.games == loaded[0]


def test_cover_url_needs_grid_and_lookup(service, games_dir):
    service.set_folder(str(games_dir))
    halo = [g for g in service.refresh() if g.title == 'Halo 2'][0]

    assert service.cover_url(halo) is None

    service.set_display_mode('grid')
    assert service.cover_url(halo) == BASE + "Halo%202.png"

    service.set_box_art_lookup(False)
    assert service.cover_url(halo) is None
    assert _saved(service)['box_art_lookup'] is False


def test_covers_for_whole_library(service, games_dir):
    service.set_folder(str(games_dir))
    service.set_display_mode('grid')
    service.refresh()

    assert service.covers() == {
        'Fable.cso': BASE + "Fable%20%28USA%29.png",
        'Halo/Halo 2.iso': BASE + "Halo%202.png",
    }


def test_unknown_display_mode_rejected(service):
    with pytest.raises(ValueError):
        service.set_display_mode('carousel')


def test_set_folder_forgets_cached_covers(service, games_dir, tmp_path):
    service.set_display_mode('grid')
    service.set_folder(str(games_dir))
    assert service.resolver.resolve("Halo 2") is not None
    assert len(service.resolver.cache) == 1

    other = tmp_path / 'other'
    other.mkdir()
    service.set_folder(str(other))
    assert len(service.resolver.cache) == 0


def test_select_game_remembers_disc(service, games_dir):
    service.set_folder(str(games_dir))
    service.settings['skip_game_picker'] = True
    halo = [g for g in service.refresh() if g.title == 'Halo 2'][0]

    service.select_game(halo)

    saved = _saved(service)
    assert saved['dvd_path'] == os.path.join(str(games_dir), 'Halo', 'Halo 2.iso')
    assert saved['skip_game_picker'] is False


def test_convert_rescans_library(service, games_dir):
    service.set_folder(str(games_dir))
    halo = [g for g in service.refresh() if g.title == 'Halo 2'][0]

    assert service.convertible_games() == [halo]
    assert service.can_convert()
    assert service.prepare_conversion(halo).output_name == 'Halo 2.xiso.iso'

    assert service.convert(halo) is None
    assert 'Halo/Halo 2.xiso.iso' in [g.relative_path for g in service.games]
    assert service.convertible_games() == [halo]


def test_start_conversion_reports_job(service, games_dir):
    service.set_folder(str(games_dir))
    halo = [g for g in service.refresh() if g.title == 'Halo 2'][0]
    jobs = []

    worker = service.start_conversion(halo, on_done=jobs.append)
    worker.join(5)

    assert [job.state for job in jobs] == [JobState.DONE]
    assert (games_dir / 'Halo' / 'Halo 2.xiso.iso').read_bytes() == b'XISOhalo'


def test_conversion_without_folder_raises(service, games_dir):
    service.set_folder(str(games_dir))
    halo = [g for g in service.refresh() if g.title == 'Halo 2'][0]
    service.set_folder('')

    with pytest.raises(FileNotFoundError):
        service.convert(halo)


def test_folder_change_mid_conversion_keeps_single_job(tmp_path, games_dir):
    (games_dir / 'Other.iso').write_bytes(b'other')
    started = threading.Event()
    release = threading.Event()

    def slow(input_path, output_path):
        started.set()
        release.wait(5)
        _fake_xiso(input_path, output_path)

    settings_path = str(tmp_path / 'settings.json')
    settings = load_settings(settings_path)
    settings['staging_dir'] = str(tmp_path / 'stage')
    service = LibraryService(
        settings=settings,
        settings_path=settings_path,
        converter=FunctionConverter(slow),
        index=CoverCatalogIndex(base_url=BASE, lines=CATALOG),
    )
    service.set_folder(str(games_dir))
    records = {g.relative_path: g for g in service.refresh()}

    first = service.start_conversion(records['Halo/Halo 2.iso'])
    assert started.wait(5)

    service.set_folder(str(games_dir))
    assert not service.can_convert()
    assert service.start_conversion(records['Other.iso']) is None

    release.set()
    first.join(5)

    assert not (games_dir / 'Other.xiso.iso').exists()
    assert (games_dir / 'Halo' / 'Halo 2.xiso.iso').exists()
    assert service.can_convert()


def test_every_display_mode_is_accepted(service):
    for mode in DISPLAY_MODE_IDS:
        service.set_display_mode(mode)
        assert service.settings['display_mode'] == mode
