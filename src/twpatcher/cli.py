"""
CLI entry point for twpatcher.

Usage:
    twpatcher -g warhammer_3 -l load_order.txt -i -e      Patch and launch options
    twpatcher -g troy -t es                               Translate the load order
    twpatcher -g warhammer_3 --sql_script "fix.sql;1.5"   Run a SQL script
    twpatcher --write-config                              Write a default config file

Exit status: 0 success, 2 load order failure, 3 decode failure, 4 write
failure, 1 anything else.
"""

import argparse
import logging
import sys
from pathlib import Path

from twpatcher import __version__
from twpatcher.config import get_config, write_default_config
from twpatcher.errors import PatcherError
from twpatcher.games import game_keys
from twpatcher.logs import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twpatcher",
        description="Total War launch-time patcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    twpatcher -g warhammer_3 -l load_order.txt -i -e -m 2.0
    twpatcher -g attila -t es
    twpatcher -g warhammer_3 --sql_script "scripts/more_ammo.sql;ammo=1.5"
"""
    )
    parser.add_argument('--version', action='version', version=f'twpatcher {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('-g', '--game', choices=game_keys(), help='Game to patch')
    parser.add_argument('-l', '--load-order-path', type=Path, help='Load order file (or user.script.txt)')
    parser.add_argument('-p', '--pack-path', type=Path, help='Custom output pack path')
    parser.add_argument('-e', '--enable-logging', action='store_true', help='Enable script logging')
    parser.add_argument('-i', '--skip-intros', action='store_true', help='Skip intro videos')
    parser.add_argument('-r', '--remove-trait-limit', action='store_true', help='Remove the character trait limit')
    parser.add_argument('-a', '--remove-siege-attacker', action='store_true',
                        help='Only war machines can attack walls without siege equipment')
    parser.add_argument('-t', '--translation-language', metavar='LANG',
                        help='Apply translations for this language (e.g. es, de)')
    parser.add_argument('-m', '--unit-multiplier', type=float, metavar='FACTOR', help='Unit size multiplier')
    parser.add_argument('-u', '--universal-rebalancer', metavar='PACK',
                        help='Base pack for the universal rebalancer (not supported)')
    parser.add_argument('--sql_script', '--sql-script', dest='sql_scripts', action='append', default=[],
                        metavar='PATH[;PARAM...]', help='SQL script to run, repeatable')
    parser.add_argument('-d', '--enable-dev-ui', action='store_true', help='Show dev-only UI')
    parser.add_argument('--game-path', type=Path, help='Game install folder')
    parser.add_argument('-c', '--config', type=Path, help='Config file')
    parser.add_argument('--write-config', nargs='?', const='', default=None, metavar='PATH',
                        help='Write a default config file and exit')
    return parser


def cmd_write_config(args) -> int:
    """Write a default config file."""
    try:
        path = write_default_config(Path(args.write_config) if args.write_config else None)
    except OSError as e:
        print(f"Cannot write config: {e}", file=sys.stderr)
        return 1
    print(f"Wrote {path}")
    return 0


def cmd_patch(args) -> int:
    """Build the patch pack for the requested game."""
    from twpatcher.pipeline import LaunchOptions, run_pipeline

    config = get_config(args.config)
    setup_logging(args.verbose, config.log_path)

    if args.unit_multiplier is not None and args.unit_multiplier <= 0:
        print(f"Unit multiplier must be positive, got {args.unit_multiplier}", file=sys.stderr)
        return 1

    options = LaunchOptions(
        game=args.game,
        load_order_path=args.load_order_path,
        game_path=args.game_path,
        output_path=args.pack_path,
        skip_intro_videos=args.skip_intros,
        enable_logging=args.enable_logging,
        remove_trait_limit=args.remove_trait_limit,
        remove_siege_attacker=args.remove_siege_attacker,
        enable_dev_ui=args.enable_dev_ui,
        unit_multiplier=args.unit_multiplier,
        universal_rebalancer=args.universal_rebalancer,
        translation_language=args.translation_language,
        sql_scripts=args.sql_scripts,
    )

    try:
        report = run_pipeline(options, config)
    except PatcherError as e:
        print(f"Error ({e.stage}): {e}", file=sys.stderr)
        return e.exit_code

    print(f"Patched: {report.output_path}")
    if report.warnings:
        print(f"{len(report.warnings)} warnings:")
        for warning in report.warnings:
            print(f"  - {warning}")
    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.write_config is not None:
        return cmd_write_config(args)

    if args.game is None:
        parser.print_help()
        return 1

    return cmd_patch(args)


if __name__ == "__main__":
    sys.exit(main())
