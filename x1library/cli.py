"""
Command-line interface for X1 Library
"""

import argparse
import json
import logging
import os
import sys

from . import __version__
from .converter import ConversionError
from .library import LibraryService
from .monitor import monitor_action, setup_runtime_monitor, shutdown_runtime_monitor
from .settings import DEFAULT_SETTINGS_PATH, load_settings
from .shared_config import ensure_app_directories
from .utils import format_size, truncate_string

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog='x1library',
        description='X1 Library - browse Xbox disc images, find box art, convert ISOs to XISO',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  %(prog)s --folder ~/games
  %(prog)s --folder ~/games --covers --json
  %(prog)s --lookup "Halo 2 (USA)"
  %(prog)s --folder ~/games --convert "Halo/Halo 2.iso" --overwrite
        '''
    )

    lib_group = parser.add_argument_group('Library')

    lib_group.add_argument(
        '--folder', '-f',
        type=str,
        help='Library folder to scan (remembered for next time)'
    )

    lib_group.add_argument(
        '--covers', '-c',
        action='store_true',
        help='Resolve a box-art URL for every game'
    )

    lib_group.add_argument(
        '--lookup', '-l',
        type=str,
        action='append',
        metavar='TITLE',
        help='Resolve box art for a title and exit (can be specified multiple times)'
    )

    lib_group.add_argument(
        '--select',
        type=str,
        metavar='RELPATH',
        help='Remember a game (path relative to the folder) as the disc to boot'
    )

    lib_group.add_argument(
        '--catalog',
        type=str,
        metavar='SOURCE',
        help='Cover catalog listing: file path or http(s) URL'
    )

    conv_group = parser.add_argument_group('Conversion')

    conv_group.add_argument(
        '--convert',
        type=str,
        metavar='RELPATH',
        help='Convert an .iso (path relative to the folder) to .xiso.iso'
    )

    conv_group.add_argument(
        '--overwrite',
        action='store_true',
        help='Replace an existing .xiso.iso output'
    )

    conv_group.add_argument(
        '--converter',
        type=str,
        metavar='PATH',
        help='Path to the extract-xiso binary (default: search PATH)'
    )

    out_group = parser.add_argument_group('Output')

    out_group.add_argument(
        '--json',
        action='store_true',
        help='Print machine-readable JSON'
    )

    out_group.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress progress output'
    )

    out_group.add_argument(
        '--monitor',
        action='store_true',
        help='Echo runtime log events to stderr'
    )

    out_group.add_argument(
        '--log-dir',
        type=str,
        help='Folder for runtime logs (default: ~/.x1library/logs)'
    )

    out_group.add_argument(
        '--settings',
        type=str,
        default=DEFAULT_SETTINGS_PATH,
        help='Settings file (default: ~/.x1library/settings.json)'
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser


def _find_game(service: LibraryService, relative_path: str):
    wanted = relative_path.replace(os.sep, '/').strip('/')
    for game in service.games:
        if game.relative_path == wanted:
            return game
    return None


def run_cli(args=None):
    """Run the CLI"""
    parser = create_parser()
    args = parser.parse_args(args)

    setup_runtime_monitor(log_dir=args.log_dir, echo=args.monitor)
    monitor_action('cli: start')

    quiet = args.quiet

    def log(msg):
        if not quiet and not args.json:
            print(msg)

    settings = load_settings(args.settings)
    if args.catalog:
        settings['catalog']['source'] = args.catalog
    if args.converter:
        settings['converter']['binary'] = args.converter

    service = LibraryService(settings=settings, settings_path=args.settings)

    if args.folder:
        folder = os.path.abspath(os.path.expanduser(args.folder))
        if not os.path.isdir(folder):
            print(f"Error: folder not found: {folder}", file=sys.stderr)
            return 1
        service.set_folder(folder)

    if args.lookup:
        results = service.resolver.resolve_many(args.lookup)
        if args.json:
            print(json.dumps(results, indent=2, ensure_ascii=False))
        else:
            for title, url in results.items():
                print(f"{title}: {url or '(no cover)'}")
        return 0

    if not service.folder:
        parser.print_help()
        print("\nError: --folder is required (no library folder remembered).")
        return 1

    log(f"Scanning: {service.folder}")
    games = service.refresh()
    log(f"   Found {len(games):,} games")

    if args.select:
        game = _find_game(service, args.select)
        if game is None:
            print(f"Error: not in library: {args.select}", file=sys.stderr)
            return 1
        service.select_game(game)
        log(f"Selected: {game.title}")

    if args.convert:
        return _convert(service, args, log)

    covers = {}
    if args.covers:
        covers = {g.relative_path: service.resolver.resolve(g.title) for g in games}

    if args.json:
        payload = []
        for game in games:
            item = game.to_dict()
            if args.covers:
                item['cover_url'] = covers.get(game.relative_path)
            payload.append(item)
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    for game in games:
        line = f"{truncate_string(game.title, 48):<48} {format_size(game.size_bytes):>10}  {game.relative_path}"
        if args.covers:
            line += f"\n    cover: {covers.get(game.relative_path) or '(none)'}"
        print(line)

    if args.covers:
        stats = service.resolver.get_stats()
        log(f"\nCovers: {stats['hits']} found, {stats['misses']} missing "
            f"({stats['index']['entries']:,} in catalog)")
    return 0


def _convert(service: LibraryService, args, log) -> int:
    game = _find_game(service, args.convert)
    if game is None:
        print(f"Error: not in library: {args.convert}", file=sys.stderr)
        return 1

    try:
        plan = service.prepare_conversion(game)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if plan.output_is_dir:
        print(f"Error: {plan.output_name} exists and is a folder", file=sys.stderr)
        return 1
    if plan.needs_overwrite and not args.overwrite:
        print(f"Error: {plan.output_name} already exists (use --overwrite)", file=sys.stderr)
        return 1

    log(f"Converting: {game.title} -> {plan.output_name}")
    try:
        error = service.convert(game, overwrite=args.overwrite)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if error:
        print(f"Conversion failed: {error}", file=sys.stderr)
        return 1

    log(f"Done! Wrote {plan.output_name}")
    return 0


def main():
    """Entry point"""
    ensure_app_directories()
    try:
        code = run_cli()
    finally:
        shutdown_runtime_monitor()
    sys.exit(code)


if __name__ == '__main__':
    main()
