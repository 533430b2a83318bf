"""
Library scanner - finds disc images under the library root
"""

import logging
import threading
from typing import Callable, List, Optional

from .handles import FolderHandle
from .models import GameRecord
from .monitor import start_monitored_thread
from .shared_config import GAME_EXTENSIONS, XISO_SUFFIX

logger = logging.getLogger(__name__)


class LibraryScanner:
    """Walks a folder tree and builds GameRecords for supported images"""

    @staticmethod
    def is_supported_game(name: str) -> bool:
        """Check if a file name looks like a playable disc image"""
        lower = name.lower()
        if lower.endswith(XISO_SUFFIX):
            return True
        if '.' not in lower:
            return False
        return lower.rsplit('.', 1)[1] in GAME_EXTENSIONS

    @staticmethod
    def to_game_title(name: str) -> str:
        """
        Derive the display title from a file name.

        "Halo 2.xiso.iso" -> "Halo 2", "Fable.cso" -> "Fable", "README" -> "README"
        """
        if name.lower().endswith(XISO_SUFFIX):
            title = name[:-len(XISO_SUFFIX)]
        elif '.' in name:
            title = name.rsplit('.', 1)[0]
        else:
            title = name
        # ".iso" and friends would otherwise produce an empty title
        return title or name

    @staticmethod
    def scan_folder(root: FolderHandle,
                    progress_callback: Optional[Callable[[int], None]] = None
                    ) -> List[GameRecord]:
        """
        Scan the library tree.

        Unreadable directories are skipped; this never raises for them.

        Args:
            root: Library root handle
            progress_callback: Optional callback(games_found)

        Returns:
            GameRecords sorted by lowercase title
        """
        games: List[GameRecord] = []
        stack = [(root, '')]

        while stack:
            node, prefix = stack.pop()
            try:
                children = node.list_children()
            except OSError as e:
                logger.debug("Skipping unreadable folder %s: %s", prefix or '<root>', e)
                continue

            for child in children:
                name = child.name
                if not name:
                    continue
                if child.is_dir():
                    stack.append((child, f"{prefix}{name}/"))
                    continue
                if not child.is_file() or not LibraryScanner.is_supported_game(name):
                    continue
                games.append(GameRecord(
                    title=LibraryScanner.to_game_title(name),
                    locator=child,
                    relative_path=prefix + name,
                    size_bytes=child.size(),
                ))
                if progress_callback:
                    progress_callback(len(games))

        games.sort(key=lambda g: g.title.lower())
        logger.info("Scan found %d games", len(games))
        return games


class ScanCoordinator:
    """
    Runs scans in the background and applies only the newest one.

    Every start() bumps the generation. When a scan finishes its generation is
    compared with the current one; older scans are dropped, whatever order
    they finish in.
    """

    def __init__(self, scan: Callable[[FolderHandle], List[GameRecord]] = LibraryScanner.scan_folder):
        self._scan = scan
        self._generation = 0
        self._lock = threading.RLock()

    @property
    def generation(self) -> int:
        return self._generation

    def start(self, root: FolderHandle,
              on_result: Callable[[List[GameRecord]], None]) -> threading.Thread:
        """Scan ``root`` off-thread; ``on_result`` runs only if still current."""
        with self._lock:
            self._generation += 1
            generation = self._generation

        def _run():
            records = self._scan(root)
            self.apply(generation, records, on_result)

        return start_monitored_thread(_run, name=f"library-scan-{generation}")

    def invalidate(self) -> None:
        """Make every scan still in flight stale."""
        with self._lock:
            self._generation += 1

    def apply(self, generation: int, records: List[GameRecord],
              on_result: Callable[[List[GameRecord]], None]) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping stale scan %d (current %d)", generation, self._generation)
                return False
            on_result(records)
            return True
