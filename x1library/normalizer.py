"""
Title normalization pipeline used for cover lookups.

All functions are pure; each stage builds on normalize_key so keys coming from
file names and keys coming from the cover catalog compare equal.
"""

import re
from typing import FrozenSet

STOPWORDS = frozenset({'the', 'a', 'an', 'and', 'of', 'for', 'in', 'on', 'to'})

_BRACKET_RE = re.compile(r'\[[^\]]*\]')
_PAREN_RE = re.compile(r'\([^)]*\)')
_TRAILING_PAREN_RE = re.compile(r'\s*\([^)]*\)\s*$')
_WHITESPACE_RE = re.compile(r'\s+')
_NON_ALNUM_RE = re.compile(r'[^a-z0-9]+')

# Right single quote, and the same character decoded as cp1252 from UTF-8 bytes
_APOSTROPHES = ('’', 'â€™')


def clean_for_lookup(title: str) -> str:
    """
    Drop scene-style tags from a title.

    "Halo_2 (USA) [!]" -> "Halo 2"
    """
    title = title.strip().replace('_', ' ')
    title = _BRACKET_RE.sub(' ', title)
    title = _PAREN_RE.sub(' ', title)
    return _WHITESPACE_RE.sub(' ', title).strip()


def normalize_key(text: str) -> str:
    """Lowercase, unify apostrophes and collapse whitespace."""
    key = text.lower().replace('_', ' ')
    for quote in _APOSTROPHES:
        key = key.replace(quote, "'")
    return _WHITESPACE_RE.sub(' ', key).strip()


def strip_trailing_parenthetical(text: str) -> str:
    """Remove one trailing "(...)" group such as a region tag."""
    return _TRAILING_PAREN_RE.sub('', text).strip()


def collapse_to_alnum(text: str) -> str:
    return _NON_ALNUM_RE.sub('', normalize_key(text))


def tokenize(text: str) -> FrozenSet[str]:
    """
    Split into distinct words of two or more characters, minus stopwords.

    Numbers are kept whatever their length so "Halo 2" and "Halo 3" differ.
    """
    words = _NON_ALNUM_RE.sub(' ', normalize_key(text)).split(' ')
    return frozenset(
        word for word in words
        if (len(word) >= 2 or word.isdigit()) and word not in STOPWORDS
    )


def numeric_tokens(tokens: FrozenSet[str]) -> FrozenSet[str]:
    """Tokens carrying a digit; sequel numbers, years, editions."""
    return frozenset(t for t in tokens if any(ch.isdigit() for ch in t))
