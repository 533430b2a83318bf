"""
Data models for the game library
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class GameRecord:
    """A disc image discovered under the library root"""
    title: str
    locator: Any
    relative_path: str
    size_bytes: int = 0

    @property
    def filename(self) -> str:
        return self.relative_path.rsplit('/', 1)[-1]

    def to_dict(self) -> Dict:
        return {
            'title': self.title,
            'locator': str(self.locator),
            'relative_path': self.relative_path,
            'size_bytes': self.size_bytes,
        }


@dataclass(frozen=True)
class CatalogEntry:
    """One cover in the catalog, pre-digested for fuzzy scoring"""
    collapsed: str
    tokens: FrozenSet[str]
    numeric_tokens: FrozenSet[str]
    url: str


@dataclass(frozen=True)
class CacheEntry:
    """Outcome of a title lookup: a hit carries a URL, a miss carries None"""
    url: Optional[str] = None

    @property
    def is_hit(self) -> bool:
        return self.url is not None


MISS = CacheEntry()


class JobState(Enum):
    IDLE = 'idle'
    STAGING = 'staging'
    CONVERTING = 'converting'
    VERIFYING = 'verifying'
    COMMITTING = 'committing'
    DONE = 'done'
    FAILED = 'failed'


@dataclass
class ConversionJob:
    """A single ISO -> XISO conversion request and its progress"""
    record: GameRecord
    output_name: str
    overwrite: bool = False
    state: JobState = JobState.IDLE
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.state in (JobState.DONE, JobState.FAILED)


@dataclass
class ConversionPlan:
    """What a conversion of a record would write, for the confirm prompt"""
    record: GameRecord
    output_name: str
    output_exists: bool = False
    output_is_dir: bool = False

    @property
    def needs_overwrite(self) -> bool:
        return self.output_exists and not self.output_is_dir


@dataclass
class LibraryState:
    """What the UI currently shows"""
    folder: str = ''
    games: list = field(default_factory=list)
    generation: int = 0
