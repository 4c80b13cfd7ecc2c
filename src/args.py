"""Argument parsing functionality for alsymbols."""

import argparse


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="alsymbols",
        description=(
            "alsymbols - Resolve and download Business Central symbol packages for an AL app"
        ),
        add_help=True,
    )

    parser.add_argument("app_dir",
                        metavar="APP_DIR",
                        help="App directory containing app.json (or the app.json path)",
                        type=str)

    parser.add_argument("-s", "--feed",
                        dest="FEEDS",
                        help="NuGet feed URL (V3 service index or flat container). Repeat for several feeds; order is priority.",
                        action="append",
                        type=str,
                        default=[])
    parser.add_argument("--cache-root",
                        dest="CACHE_ROOT",
                        help="Root directory of the symbol cache",
                        action="store",
                        type=str)
    parser.add_argument("--refresh",
                        dest="REFRESH",
                        help="Ignore the existing lock-file and resolve everything from the feeds.",
                        action="store_true")
    parser.add_argument("--fail-on-conflicts",
                        dest="FAIL_ON_CONFLICTS",
                        help="Exit with a non-zero status code if any version conflict was resolved best-effort.",
                        action="store_true")

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Write the resolution report as JSON to this path",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not print the resolution summary to the console.",
                        action="store_true")

    return parser.parse_args(argv)
