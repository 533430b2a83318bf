"""
Cover resolver - maps a game title to a box-art URL from the catalog.

Lookup order:
1. Resolution cache: hits per caller title, misses per cleaned title
2. Exact normalized key
3. Alphanumeric-collapsed key
4. Fuzzy token overlap (numbers must agree)
"""

import logging
import threading
from typing import Dict, FrozenSet, Iterable, List, Optional

from .catalog import CoverCatalogIndex
from .models import MISS, CacheEntry, CatalogEntry
from .normalizer import (
    clean_for_lookup, collapse_to_alnum, normalize_key, numeric_tokens,
    strip_trailing_parenthetical, tokenize,
)

logger = logging.getLogger(__name__)

# Empirical scoring constants; changing them changes which covers match.
FUZZY_THRESHOLD = 55
OVERLAP_WEIGHT = 70
CONTAINS_BONUS = 20
CLOSE_LENGTH_BONUS = 10
NEAR_LENGTH_BONUS = 5

# Miss keys share the cache map with hit keys but can never collide with them
MISS_KEY_PREFIX = '\0miss:'


class ResolutionCache:
    """Thread-safe title key -> hit/miss map. First outcome stored for a key wins."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def store_hit(self, key: str, url: str) -> CacheEntry:
        return self._store(key, CacheEntry(url))

    def store_miss(self, key: str) -> CacheEntry:
        return self._store(key, MISS)

    def _store(self, key: str, entry: CacheEntry) -> CacheEntry:
        with self._lock:
            return self._entries.setdefault(key, entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict:
        entries = list(self._entries.values())
        hits = sum(1 for e in entries if e.is_hit)
        return {'hits': hits, 'misses': len(entries) - hits}


def score_match(candidate_collapsed: str, candidate_tokens: FrozenSet[str],
                candidate_numbers: FrozenSet[str], entry: CatalogEntry) -> int:
    """Score how well one candidate key fits one catalog entry (0..100)."""
    if candidate_collapsed == entry.collapsed:
        return 100

    # "Halo 2" must never pick up "Halo 3"
    if candidate_numbers and entry.numeric_tokens and candidate_numbers != entry.numeric_tokens:
        return 0

    overlap = len(candidate_tokens & entry.tokens)
    if overlap == 0:
        return 0

    score = (overlap * OVERLAP_WEIGHT) // max(len(candidate_tokens), len(entry.tokens))

    if candidate_collapsed in entry.collapsed or entry.collapsed in candidate_collapsed:
        score += CONTAINS_BONUS

    delta = abs(len(candidate_collapsed) - len(entry.collapsed))
    if delta <= 4:
        score += CLOSE_LENGTH_BONUS
    elif delta <= 10:
        score += NEAR_LENGTH_BONUS

    return score


def find_closest(candidates: Iterable[str], entries: List[CatalogEntry]) -> Optional[str]:
    """Best-scoring catalog URL over all candidate keys, or None below threshold."""
    best_url = None
    best_score = 0
    for candidate in candidates:
        collapsed = collapse_to_alnum(candidate)
        tokens = tokenize(candidate)
        if not collapsed or not tokens:
            continue
        numbers = numeric_tokens(tokens)
        for entry in entries:
            score = score_match(collapsed, tokens, numbers, entry)
            if score > best_score:
                best_score = score
                best_url = entry.url
    return best_url if best_score >= FUZZY_THRESHOLD else None


def build_candidates(title: str) -> List[str]:
    """
    Ordered, de-duplicated lookup keys for a title.

    Each variant contributes its normalized form and that form with a trailing
    parenthetical removed.
    """
    clean = clean_for_lookup(title)
    variants = [
        title,
        clean,
        clean.replace(':', ''),
        clean.split(' - ', 1)[0].strip(),
        clean.split(':', 1)[0].strip(),
    ]
    keys: Dict[str, None] = {}
    for raw in variants:
        if not raw.strip():
            continue
        normalized = normalize_key(raw)
        if not normalized:
            continue
        keys.setdefault(normalized)
        stripped = strip_trailing_parenthetical(normalized)
        if stripped:
            keys.setdefault(stripped)
    return list(keys)


class CoverResolver:
    """Resolves titles to cover URLs against a CoverCatalogIndex."""

    def __init__(self, index: CoverCatalogIndex, cache: Optional[ResolutionCache] = None):
        self.index = index
        self.cache = cache if cache is not None else ResolutionCache()
        self._stats = {'cached': 0, 'exact': 0, 'collapsed': 0, 'fuzzy': 0, 'miss': 0}
        self._stats_lock = threading.Lock()

    def _count(self, outcome: str) -> None:
        with self._stats_lock:
            self._stats[outcome] += 1

    def resolve(self, title: str) -> Optional[str]:
        """
        Find the cover URL for a title.

        Args:
            title: Game title as shown in the library

        Returns:
            Cover URL, or None when nothing in the catalog is close enough
        """
        cache_key = normalize_key(title)
        cached = self.cache.get(cache_key)
        if cached is not None:
            self._count('cached')
            return cached.url

        self.index.ensure_built()

        normalized_title = normalize_key(clean_for_lookup(title))
        if not normalized_title:
            return None

        # misses are keyed on the cleaned title so region variants share one
        miss_key = MISS_KEY_PREFIX + normalized_title
        if self.cache.get(miss_key) is not None:
            self._count('cached')
            return None

        url = self._lookup(title)
        if url:
            return self.cache.store_hit(cache_key, url).url

        self._count('miss')
        logger.debug("No cover for %r", title)
        self.cache.store_miss(miss_key)
        return None

    def _lookup(self, title: str) -> Optional[str]:
        candidates = build_candidates(title)

        for key in candidates:
            found = self.index.lookup(key)
            if found:
                self._count('exact')
                return found

        for key in candidates:
            collapsed = collapse_to_alnum(key)
            if not collapsed:
                continue
            found = self.index.lookup_collapsed(collapsed)
            if found:
                self.index.remember(key, found)
                self._count('collapsed')
                return found

        found = find_closest(candidates, self.index.entries)
        if found:
            for key in candidates:
                self.index.remember(key, found)
                collapsed = collapse_to_alnum(key)
                if collapsed:
                    self.index.remember_collapsed(collapsed, found)
            self._count('fuzzy')
            logger.debug("Fuzzy cover match for %r: %s", title, found)
            return found

        return None

    def resolve_many(self, titles: Iterable[str]) -> Dict[str, Optional[str]]:
        return {title: self.resolve(title) for title in titles}

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_stats(self) -> Dict:
        with self._stats_lock:
            stats = dict(self._stats)
        stats.update(self.cache.get_stats())
        stats['index'] = self.index.get_stats()
        return stats
