"""
Shared configuration for the library core and its front ends.
Keeps file-type rules, catalog addresses and app-local paths in one place.
"""

import os

# Disc image extensions shown in the library (matched on the final suffix)
GAME_EXTENSIONS = {'iso', 'xiso', 'cso', 'cci'}

# Already-normalized images carry this double suffix
XISO_SUFFIX = '.xiso.iso'

# Cover catalog: one "<Game Name>.png" per line, hosted under COVER_BASE_URL
COVER_BASE_URL = 'https://raw.githubusercontent.com/izzy2lost/X1_Covers/main/'
CATALOG_FILENAME = 'X1_Covers.txt'

# Display modes handed to the core by the UI
DISPLAY_MODES = [
    {'id': 'list', 'name': 'List', 'desc': 'Title, size and path per row'},
    {'id': 'grid', 'name': 'Cover Grid', 'desc': 'Box art tiles'},
]
DISPLAY_MODE_IDS = tuple(mode['id'] for mode in DISPLAY_MODES)

# App data directory: ~/.x1library unless X1LIBRARY_HOME overrides it
APP_DATA_DIR = os.environ.get('X1LIBRARY_HOME') or os.path.expanduser('~/.x1library')
LOGS_DIR = os.path.join(APP_DATA_DIR, 'logs')
STAGING_DIR = os.path.join(APP_DATA_DIR, 'xiso-convert')
CATALOG_FILE = os.path.join(APP_DATA_DIR, CATALOG_FILENAME)
SETTINGS_FILE = os.path.join(APP_DATA_DIR, 'settings.json')


def ensure_app_directories() -> None:
    """Create required app-local directories at startup."""
    for path in (
        APP_DATA_DIR,
        LOGS_DIR,
        STAGING_DIR,
    ):
        os.makedirs(path, exist_ok=True)
