"""
Library facade - the single entry point a front end talks to.

Holds the current folder, display flags and scan results, and wires the
scanner, cover resolver and converter together.
"""

import logging
import os
import threading
from typing import Callable, Dict, List, Optional

from .catalog import CoverCatalogIndex
from .converter import (
    ConversionOrchestrator, Converter, ExtractXisoConverter, is_convertible_iso,
)
from .handles import FolderHandle, LocalFolderHandle
from .models import ConversionJob, ConversionPlan, GameRecord, JobState, LibraryState
from .monitor import monitor_action
from .resolver import CoverResolver
from .scanner import LibraryScanner, ScanCoordinator
from .settings import DEFAULT_SETTINGS_PATH, load_settings, save_settings
from .shared_config import COVER_BASE_URL, DISPLAY_MODE_IDS, STAGING_DIR

logger = logging.getLogger(__name__)


class LibraryService:
    """Game library state plus the operations the UI triggers on it."""

    def __init__(self, settings: Optional[Dict] = None,
                 settings_path: str = DEFAULT_SETTINGS_PATH,
                 converter: Optional[Converter] = None,
                 index: Optional[CoverCatalogIndex] = None,
                 persist: bool = True):
        self.settings = settings if settings is not None else load_settings(settings_path)
        self.settings_path = settings_path
        self.persist = persist

        catalog = self.settings.get('catalog', {})
        self.index = index if index is not None else CoverCatalogIndex(
            source=catalog.get('source') or None,
            base_url=catalog.get('base_url') or COVER_BASE_URL,
        )
        self.resolver = CoverResolver(self.index)

        if converter is None:
            conv = self.settings.get('converter', {})
            converter = ExtractXisoConverter(
                binary=conv.get('binary') or None,
                timeout=conv.get('timeout') or None,
            )
        self.converter = converter

        self.scans = ScanCoordinator()
        self.state = LibraryState(folder=self.settings.get('games_folder', ''))
        self._orchestrator: Optional[ConversionOrchestrator] = None
        self._orchestrator_lock = threading.Lock()
        # outlives orchestrator swaps so a folder change never admits a second job
        self._conversion_gate = threading.Lock()

    # ── settings ─────────────────────────────────────────────

    def _save(self) -> None:
        if self.persist:
            save_settings(self.settings, self.settings_path)

    @property
    def folder(self) -> str:
        return self.state.folder

    @property
    def root(self) -> Optional[FolderHandle]:
        folder = self.state.folder
        if not folder or not os.path.isdir(folder):
            return None
        return LocalFolderHandle(folder)

    @property
    def games(self) -> List[GameRecord]:
        return self.state.games

    @property
    def use_cover_grid(self) -> bool:
        return self.settings.get('display_mode') == 'grid'

    @property
    def box_art_lookup(self) -> bool:
        return bool(self.settings.get('box_art_lookup', True))

    def set_folder(self, folder: str) -> None:
        """Switch library root. Forgets every cached cover lookup."""
        monitor_action(f"library folder: {folder}")
        self.settings['games_folder'] = folder
        self.state.folder = folder
        self.resolver.clear_cache()
        with self._orchestrator_lock:
            self._orchestrator = None
        self._save()

    def set_display_mode(self, mode: str) -> None:
        if mode not in DISPLAY_MODE_IDS:
            raise ValueError(f"Unknown display mode: {mode}")
        self.settings['display_mode'] = mode
        self._save()

    def set_box_art_lookup(self, enabled: bool) -> None:
        self.settings['box_art_lookup'] = bool(enabled)
        self._save()

    def select_game(self, record: GameRecord) -> None:
        """Remember ``record`` as the disc to boot next."""
        monitor_action(f"select game: {record.relative_path}")
        self.settings['dvd_path'] = str(record.locator)
        self.settings['skip_game_picker'] = False
        self._save()

    # ── scanning ─────────────────────────────────────────────

    def load_games(self, on_loaded: Optional[Callable[[List[GameRecord]], None]] = None
                   ) -> Optional[threading.Thread]:
        """
        Rescan the library in the background.

        ``on_loaded`` gets the records of the most recently started scan only.
        Returns the worker thread, or None when no usable folder is set.
        """
        root = self.root
        if root is None:
            self.scans.invalidate()
            self.state.games = []
            if on_loaded:
                on_loaded([])
            return None

        def _apply(records: List[GameRecord]) -> None:
            self.state.games = records
            self.state.generation = self.scans.generation
            if on_loaded:
                on_loaded(records)

        return self.scans.start(root, _apply)

    def refresh(self) -> List[GameRecord]:
        """Scan on the calling thread and make the result current."""
        root = self.root
        self.scans.invalidate()
        self.state.games = LibraryScanner.scan_folder(root) if root is not None else []
        self.state.generation = self.scans.generation
        return self.state.games

    # ── covers ───────────────────────────────────────────────

    def cover_url(self, record: GameRecord) -> Optional[str]:
        if not self.use_cover_grid or not self.box_art_lookup:
            return None
        return self.resolver.resolve(record.title)

    def covers(self, records: Optional[List[GameRecord]] = None) -> Dict[str, Optional[str]]:
        return {r.relative_path: self.cover_url(r) for r in (records or self.games)}

    # ── conversion ───────────────────────────────────────────

    @property
    def orchestrator(self) -> Optional[ConversionOrchestrator]:
        root = self.root
        if root is None:
            return None
        with self._orchestrator_lock:
            if self._orchestrator is None:
                self._orchestrator = ConversionOrchestrator(
                    root, self.converter,
                    staging_dir=self.settings.get('staging_dir') or STAGING_DIR,
                    busy_lock=self._conversion_gate,
                )
            return self._orchestrator

    def convertible_games(self) -> List[GameRecord]:
        return [g for g in self.games if is_convertible_iso(g)]

    def can_convert(self) -> bool:
        orchestrator = self.orchestrator
        return (
            orchestrator is not None
            and orchestrator.is_available()
            and not orchestrator.busy
            and bool(self.convertible_games())
        )

    def prepare_conversion(self, record: GameRecord) -> ConversionPlan:
        orchestrator = self._require_orchestrator()
        return orchestrator.plan(record)

    def convert(self, record: GameRecord, overwrite: bool = False) -> Optional[str]:
        """Convert on the calling thread; rescans after success."""
        error = self._require_orchestrator().convert(record, overwrite=overwrite)
        if error is None:
            self.refresh()
        return error

    def start_conversion(self, record: GameRecord, overwrite: bool = False,
                         on_done: Optional[Callable[[ConversionJob], None]] = None
                         ) -> Optional[threading.Thread]:
        """Convert in the background. None means another conversion is running."""
        def _done(job: ConversionJob) -> None:
            if job.state == JobState.DONE:
                self.load_games()
            if on_done:
                on_done(job)

        return self._require_orchestrator().start(record, overwrite=overwrite, on_done=_done)

    def _require_orchestrator(self) -> ConversionOrchestrator:
        orchestrator = self.orchestrator
        if orchestrator is None:
            raise FileNotFoundError("No library folder selected")
        return orchestrator
