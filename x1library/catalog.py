"""
Cover catalog index - exact, collapsed and token indexes over the cover list
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote_plus

import requests

from .models import CatalogEntry
from .normalizer import (
    collapse_to_alnum, normalize_key, numeric_tokens,
    strip_trailing_parenthetical, tokenize,
)
from .shared_config import CATALOG_FILE, COVER_BASE_URL

logger = logging.getLogger(__name__)


def cover_url(filename: str, base_url: str = COVER_BASE_URL) -> str:
    """Build the download URL for a catalog filename (spaces as %20, ~ as %7E)."""
    encoded = quote_plus(filename, safe='*')
    return base_url + encoded.replace('+', '%20').replace('~', '%7E')


def read_catalog_lines(source: str, session: Optional[requests.Session] = None,
                       timeout: int = 30) -> List[str]:
    """
    Read the raw catalog listing.

    Args:
        source: Local file path or http(s) URL
        session: Optional requests session for remote listings
        timeout: Request timeout in seconds

    Returns:
        List of lines (unfiltered)
    """
    if source.startswith(('http://', 'https://')):
        http = session or requests.Session()
        resp = http.get(source, timeout=timeout)
        resp.raise_for_status()
        return resp.text.splitlines()

    with open(source, 'r', encoding='utf-8') as f:
        return f.read().splitlines()


class CoverCatalogIndex:
    """
    Lookup tables over the cover catalog.

    Built once, on first use, from whatever the source yields. If the source
    can't be read the index stays empty and every lookup misses.
    """

    def __init__(self, source: Optional[str] = None,
                 base_url: str = COVER_BASE_URL,
                 lines: Optional[Iterable[str]] = None,
                 session: Optional[requests.Session] = None):
        """
        Args:
            source: Path or URL of the catalog listing (default: app data copy)
            base_url: Prefix for cover URLs
            lines: Catalog lines given directly; skips reading ``source``
            session: requests session used for remote sources
        """
        self.source = source or CATALOG_FILE
        self.base_url = base_url
        self._lines = list(lines) if lines is not None else None
        self._session = session

        self.by_key: Dict[str, str] = {}
        self.by_collapsed: Dict[str, str] = {}
        self.entries: List[CatalogEntry] = []

        self._build_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._built = threading.Event()

    @property
    def is_built(self) -> bool:
        return self._built.is_set()

    def ensure_built(self) -> None:
        """Build the indexes exactly once; concurrent callers wait for it."""
        if self._built.is_set():
            return
        with self._build_lock:
            if self._built.is_set():
                return
            lines = self._load_lines()
            self._build_indexes(lines)
            self._built.set()
            logger.info("Cover index ready: %d entries, %d keys",
                        len(self.entries), len(self.by_key))

    def _load_lines(self) -> List[str]:
        if self._lines is not None:
            return self._lines
        try:
            return read_catalog_lines(self.source, session=self._session)
        except (OSError, UnicodeDecodeError, requests.RequestException) as e:
            logger.warning("Cover catalog unavailable (%s): %s", self.source, e)
            return []

    def _build_indexes(self, lines: Iterable[str]) -> None:
        seen = set()
        for line in lines:
            filename = line.strip()
            if not filename or not filename.lower().endswith('.png'):
                continue
            game_name = filename[:-4].strip()
            url = cover_url(filename, self.base_url)

            exact_key = normalize_key(game_name)
            stripped_key = strip_trailing_parenthetical(exact_key)
            if exact_key:
                self.by_key.setdefault(exact_key, url)
            if stripped_key:
                self.by_key.setdefault(stripped_key, url)

            canonical = stripped_key or exact_key
            collapsed = collapse_to_alnum(canonical)
            if collapsed:
                self.by_collapsed.setdefault(collapsed, url)

            if canonical and (canonical, url) not in seen:
                seen.add((canonical, url))
                tokens = tokenize(canonical)
                self.entries.append(CatalogEntry(
                    collapsed=collapsed,
                    tokens=tokens,
                    numeric_tokens=numeric_tokens(tokens),
                    url=url,
                ))

    def lookup(self, key: str) -> Optional[str]:
        return self.by_key.get(key)

    def lookup_collapsed(self, collapsed: str) -> Optional[str]:
        return self.by_collapsed.get(collapsed)

    def remember(self, key: str, url: str) -> str:
        """Insert key -> url unless the key is already mapped. Returns the kept URL."""
        with self._write_lock:
            return self.by_key.setdefault(key, url)

    def remember_collapsed(self, collapsed: str, url: str) -> str:
        with self._write_lock:
            return self.by_collapsed.setdefault(collapsed, url)

    def get_stats(self) -> Dict:
        """Get statistics about the loaded catalog"""
        return {
            'source': self.source if self._lines is None else '<inline>',
            'loaded': self.is_built,
            'entries': len(self.entries),
            'by_key': len(self.by_key),
            'by_collapsed': len(self.by_collapsed),
        }
