"""
X1 Library - a browsable library of Xbox disc images

Finds box art for each title in the X1 cover catalog and converts raw ISO
dumps to the XISO layout.
"""

__version__ = '1.0.0'
__author__ = 'X1 Library'

from .models import (
    GameRecord, CatalogEntry, CacheEntry, ConversionJob, ConversionPlan,
    JobState, LibraryState,
)
from .handles import FolderHandle, LocalFolderHandle
from .scanner import LibraryScanner, ScanCoordinator
from .catalog import CoverCatalogIndex
from .resolver import CoverResolver, ResolutionCache
from .converter import (
    ConversionOrchestrator, Converter, FunctionConverter, ExtractXisoConverter,
    ConversionError, ConversionBusyError, ConverterUnavailableError,
)
from .library import LibraryService
from .utils import format_size, truncate_string


__all__ = [
    'GameRecord',
    'CatalogEntry',
    'CacheEntry',
    'ConversionJob',
    'ConversionPlan',
    'JobState',
    'LibraryState',
    'FolderHandle',
    'LocalFolderHandle',
    'LibraryScanner',
    'ScanCoordinator',
    'CoverCatalogIndex',
    'CoverResolver',
    'ResolutionCache',
    'ConversionOrchestrator',
    'Converter',
    'FunctionConverter',
    'ExtractXisoConverter',
    'ConversionError',
    'ConversionBusyError',
    'ConverterUnavailableError',
    'LibraryService',
    'format_size',
    'truncate_string',
]
